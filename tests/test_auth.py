"""
Unit tests for auth module.
PII-safe: tests use mock tokens, never real credentials.
"""
import pytest
from unittest.mock import patch, MagicMock
from fastapi import HTTPException, Request
from firebase_admin import auth

from app.core.auth import (
    DEV_USER_ID,
    AuthErrorCode,
    _classify_auth_exception,
    extract_bearer_token,
    get_current_user_id,
    init_firebase,
    verify_auth_header,
    verify_firebase_token,
)


def _request_with_header(value):
    mock_request = MagicMock(spec=Request)
    mock_request.headers.get.return_value = value
    return mock_request


class TestExtractBearerToken:
    """Tests for extract_bearer_token function."""

    def test_missing_authorization_header(self):
        with pytest.raises(HTTPException) as exc_info:
            extract_bearer_token(_request_with_header(None))

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Missing Authorization header"

    @pytest.mark.parametrize("header", ["Basic abc123", "Bearer token extra", "Bearer ", "Bearer"])
    def test_invalid_format(self, header):
        with pytest.raises(HTTPException) as exc_info:
            extract_bearer_token(_request_with_header(header))

        assert exc_info.value.status_code == 401
        assert "Invalid Authorization header format" in exc_info.value.detail

    def test_valid_bearer_token(self):
        assert extract_bearer_token(_request_with_header("Bearer valid_token_here")) == "valid_token_here"

    def test_bearer_case_insensitive(self):
        assert extract_bearer_token(_request_with_header("BEARER valid_token")) == "valid_token"


class TestVerifyFirebaseToken:
    """Tests for verify_firebase_token in firebase mode."""

    @patch('app.core.auth.get_settings')
    @patch('app.core.auth._firebase_app', MagicMock())
    @patch('app.core.auth.auth.verify_id_token')
    def test_invalid_token_returns_401_with_error_code(self, mock_verify, mock_settings):
        mock_settings.return_value.auth_mode = "firebase"
        mock_verify.side_effect = auth.InvalidIdTokenError("Invalid token")

        with pytest.raises(HTTPException) as exc_info:
            verify_firebase_token("invalid_mock_token")

        assert exc_info.value.status_code == 401
        assert "TOKEN_INVALID" in exc_info.value.detail

    @patch('app.core.auth.get_settings')
    @patch('app.core.auth._firebase_app', MagicMock())
    @patch('app.core.auth.auth.verify_id_token')
    def test_expired_token_returns_401_with_error_code(self, mock_verify, mock_settings):
        mock_settings.return_value.auth_mode = "firebase"
        mock_verify.side_effect = auth.ExpiredIdTokenError("Token expired", cause=None)

        with pytest.raises(HTTPException) as exc_info:
            verify_firebase_token("expired_mock_token")

        assert "TOKEN_EXPIRED" in exc_info.value.detail

    @patch('app.core.auth.get_settings')
    @patch('app.core.auth._firebase_app', MagicMock())
    @patch('app.core.auth.auth.verify_id_token')
    def test_valid_token_returns_uid(self, mock_verify, mock_settings):
        """Should return uid for valid tokens (uid not logged)."""
        mock_settings.return_value.auth_mode = "firebase"
        mock_verify.return_value = {"uid": "mock_uid_123"}

        uid = verify_firebase_token("valid_mock_token")

        assert uid == "mock_uid_123"
        mock_verify.assert_called_once_with("valid_mock_token")

    @patch('app.core.auth.get_settings')
    @patch('app.core.auth._firebase_app', MagicMock())
    @patch('app.core.auth.auth.verify_id_token')
    def test_exception_detail_does_not_contain_token(self, mock_verify, mock_settings):
        mock_settings.return_value.auth_mode = "firebase"
        mock_verify.side_effect = auth.InvalidIdTokenError("bad token content")

        with pytest.raises(HTTPException) as exc_info:
            verify_firebase_token("my_secret_token_12345")

        assert "my_secret_token_12345" not in exc_info.value.detail
        assert "Authentication failed" in exc_info.value.detail


class TestClassifyAuthException:
    """Tests for _classify_auth_exception helper."""

    @pytest.mark.parametrize("exc,expected", [
        (auth.ExpiredIdTokenError("expired", cause=None), AuthErrorCode.TOKEN_EXPIRED),
        (auth.RevokedIdTokenError("revoked"), AuthErrorCode.TOKEN_REVOKED),
        (auth.InvalidIdTokenError("invalid"), AuthErrorCode.TOKEN_INVALID),
        (auth.InvalidIdTokenError("wrong audience (aud)"), AuthErrorCode.PROJECT_MISMATCH),
        (auth.InvalidIdTokenError("issued in the future (iat)"), AuthErrorCode.CLOCK_SKEW),
        (auth.CertificateFetchError("cannot fetch", cause=None), AuthErrorCode.CERT_FETCH_FAILED),
        (ConnectionError("connection refused"), AuthErrorCode.NETWORK_ERROR),
        (ValueError("some unknown error"), AuthErrorCode.UNKNOWN_AUTH_ERROR),
    ])
    def test_classification(self, exc, expected):
        assert _classify_auth_exception(exc) == expected

    def test_error_codes_are_generic(self):
        for code in AuthErrorCode:
            assert "@" not in code.value
            assert len(code.value) < 30


class TestDevAuthMode:
    """Tests for dev auth mode (AUTH_MODE=dev)."""

    @patch('app.core.auth.auth.verify_id_token')
    @patch('app.core.auth.get_settings')
    def test_valid_dev_token_returns_dev_user(self, mock_settings, mock_verify):
        mock_settings.return_value.auth_mode = "dev"
        mock_settings.return_value.dev_bearer_token = "dev-token"

        assert verify_firebase_token("dev-token") == DEV_USER_ID
        mock_verify.assert_not_called()

    @patch('app.core.auth.get_settings')
    def test_invalid_dev_token_returns_401(self, mock_settings):
        mock_settings.return_value.auth_mode = "dev"
        mock_settings.return_value.dev_bearer_token = "dev-token"

        with pytest.raises(HTTPException) as exc_info:
            verify_firebase_token("wrong-token")

        assert exc_info.value.status_code == 401
        assert "TOKEN_INVALID" in exc_info.value.detail


class TestRequestDependencies:

    @pytest.mark.asyncio
    @patch('app.core.auth.verify_firebase_token', return_value="uid-1")
    async def test_verify_auth_header_stores_user_id(self, mock_verify):
        request = _request_with_header("Bearer abc")
        request.state = MagicMock()

        await verify_auth_header(request)

        assert request.state.user_id == "uid-1"
        mock_verify.assert_called_once_with("abc")

    @pytest.mark.asyncio
    async def test_current_user_id_requires_auth(self):
        request = MagicMock(spec=Request)
        request.state = object()

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_id(request)

        assert exc_info.value.status_code == 401


class TestInitFirebase:

    @patch('app.core.auth._firebase_app', None)
    @patch('app.core.auth.firebase_admin.initialize_app')
    @patch('app.core.auth.get_settings')
    def test_adc_with_project_id(self, mock_settings, mock_init, monkeypatch):
        monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)
        mock_settings.return_value.firebase_credentials_json = None
        mock_settings.return_value.google_application_credentials = None
        mock_settings.return_value.firebase_project_id = "demo-project"

        init_firebase()

        mock_init.assert_called_once_with(options={"projectId": "demo-project"})

    @patch('app.core.auth._firebase_app', None)
    @patch('app.core.auth.credentials.Certificate')
    @patch('app.core.auth.firebase_admin.initialize_app')
    @patch('app.core.auth.get_settings')
    def test_service_account_json(self, mock_settings, mock_init, mock_cert):
        mock_settings.return_value.firebase_credentials_json = '{"type": "service_account"}'
        mock_settings.return_value.firebase_project_id = None

        init_firebase()

        mock_cert.assert_called_once_with({"type": "service_account"})
        mock_init.assert_called_once_with(mock_cert.return_value, None)
