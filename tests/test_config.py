"""
Tests for settings validation.
"""
import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.input_max_chars == 2000
    assert settings.structured_temperature == 0.7
    assert settings.retry_temperature == 0.2
    assert settings.gemini_model == "gemini-2.5-flash"


def test_dev_auth_forbidden_in_prod():
    with pytest.raises(ValidationError) as exc_info:
        Settings(service_env="prod", auth_mode="dev")
    assert "AUTH_MODE=dev is forbidden" in str(exc_info.value)


def test_dev_auth_allowed_in_dev():
    assert Settings(service_env="dev", auth_mode="dev").auth_mode == "dev"


def test_invalid_credentials_json():
    with pytest.raises(ValidationError):
        Settings(firebase_credentials_json="{not json")


def test_blank_credentials_json_is_none():
    assert Settings(firebase_credentials_json="").firebase_credentials_json is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MODEL_BACKEND", "gemini")
    monkeypatch.setenv("INPUT_MAX_CHARS", "500")

    settings = Settings()

    assert settings.model_backend == "gemini"
    assert settings.input_max_chars == 500


@pytest.mark.parametrize("field,value", [
    ("input_max_chars", 10),
    ("retry_temperature", 3.0),
    ("model_backend", "llama"),
    ("plan_store_backend", "sqlite"),
])
def test_out_of_range_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})
