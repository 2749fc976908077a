"""
Application configuration from environment variables.
PII-safe: no sensitive data in defaults or logs.
"""
import json
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Firebase configuration
    firebase_project_id: Optional[str] = Field(
        default=None,
        description="Firebase project ID for token verification and Firestore"
    )
    firebase_credentials_json: Optional[str] = Field(
        default=None,
        description="Firebase service account JSON string (optional, uses ADC if not set)"
    )
    google_application_credentials: Optional[str] = Field(
        default=None,
        description="Path to service account JSON file (GOOGLE_APPLICATION_CREDENTIALS)"
    )

    # Service configuration
    service_env: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Service environment"
    )

    # Authentication mode
    auth_mode: Literal["firebase", "dev"] = Field(
        default="firebase",
        description="Auth mode: 'firebase' for production, 'dev' for local testing without Firebase"
    )
    dev_bearer_token: str = Field(
        default="dev-token",
        description="Bearer token accepted in dev auth mode (only used when AUTH_MODE=dev)"
    )

    # Generative model backend
    model_backend: Literal["mock", "openai_compat", "gemini"] = Field(
        default="mock",
        description="Generation backend: 'mock' for testing, 'openai_compat' or 'gemini' for inference"
    )

    # OpenAI-compatible backend configuration (LM Studio, Ollama, vLLM, etc.)
    openai_compat_base_url: str = Field(
        default="http://127.0.0.1:1234/v1",
        description="Base URL for OpenAI-compatible API"
    )
    openai_compat_model: str = Field(
        default="",
        description="Model name for OpenAI-compatible inference"
    )
    openai_compat_api_key: Optional[str] = Field(
        default=None,
        description="Optional bearer key for the OpenAI-compatible API"
    )
    openai_compat_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        le=120000,
        description="Timeout for OpenAI-compatible requests in milliseconds"
    )

    # Gemini (Google AI) backend configuration
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL for the Gemini generateContent API"
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model name"
    )
    gemini_api_key: Optional[str] = Field(
        default=None,
        description="Google AI API key"
    )
    gemini_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        le=120000,
        description="Timeout for Gemini requests in milliseconds"
    )

    # Plan generation pipeline
    input_max_chars: int = Field(
        default=2000,
        ge=100,
        le=20000,
        description="Maximum sanitized input length (including truncation marker)"
    )
    structured_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the structured-output attempt"
    )
    retry_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the freeform JSON retry"
    )
    top_p: float = Field(default=0.95, ge=0.0, le=1.0, description="Nucleus sampling")
    top_k: int = Field(default=40, ge=1, le=200, description="Top-k sampling")
    max_output_tokens: int = Field(
        default=2048,
        ge=256,
        le=8192,
        description="Max tokens requested from the model"
    )

    # Persistence
    plan_store_backend: Literal["memory", "firestore"] = Field(
        default="memory",
        description="Saved plan storage: 'memory' for dev/testing, 'firestore' for production"
    )

    # Rate limiting / telemetry
    rate_limit_per_hour: int = Field(
        default=120,
        ge=1,
        le=10000,
        description="Plan requests allowed per user per hour"
    )
    telemetry_cooldown_s: int = Field(
        default=60,
        ge=0,
        le=86400,
        description="Cooldown in seconds between identical telemetry events (0 = no cooldown)"
    )

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    @field_validator("firebase_credentials_json", mode="before")
    @classmethod
    def validate_credentials_json(cls, v: Optional[str]) -> Optional[str]:
        """Validate that credentials JSON is valid if provided."""
        if v is None or v == "":
            return None
        try:
            json.loads(v)
            return v
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in FIREBASE_CREDENTIALS_JSON: {e}")

    @field_validator("auth_mode", mode="after")
    @classmethod
    def validate_auth_mode_not_dev_in_prod(cls, v: str, info) -> str:
        """Prevent dev auth mode in production environment."""
        service_env = info.data.get("service_env", "dev")
        if v == "dev" and service_env == "prod":
            raise ValueError(
                "SECURITY ERROR: AUTH_MODE=dev is forbidden when SERVICE_ENV=prod. "
                "This would bypass Firebase authentication in production."
            )
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
