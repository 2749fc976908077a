"""
Firebase authentication module.
PII-safe: never log tokens, user ids, emails or headers.
"""
import json
import os
import socket
from enum import Enum
from typing import Optional

import firebase_admin
from firebase_admin import auth, credentials
from fastapi import HTTPException, Request, status

from app.core.config import get_settings
from app.core.logging import get_safe_logger

logger = get_safe_logger(__name__)

DEV_USER_ID = "dev_user"

# Global Firebase app instance
_firebase_app: Optional[firebase_admin.App] = None


class CredentialMode(str, Enum):
    """Firebase credential initialization mode."""
    SERVICE_ACCOUNT_JSON = "service_account_json"
    SERVICE_ACCOUNT_FILE = "service_account_file"
    ADC = "adc"


class AuthErrorCode(str, Enum):
    """
    PII-safe error codes for authentication failures.
    These codes are safe to log and return to clients.
    """
    CERT_FETCH_FAILED = "CERT_FETCH_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_REVOKED = "TOKEN_REVOKED"
    TOKEN_INVALID = "TOKEN_INVALID"
    PROJECT_MISMATCH = "PROJECT_MISMATCH"
    CLOCK_SKEW = "CLOCK_SKEW"
    UNKNOWN_AUTH_ERROR = "UNKNOWN_AUTH_ERROR"


def init_firebase() -> firebase_admin.App:
    """
    Initialize the Firebase Admin SDK singleton (auth and Firestore).

    Priority order:
    1. FIREBASE_CREDENTIALS_JSON env var (JSON string)
    2. GOOGLE_APPLICATION_CREDENTIALS setting / env var (file path)
    3. Application Default Credentials (ADC)
    """
    global _firebase_app

    if _firebase_app is not None:
        return _firebase_app

    settings = get_settings()
    credential_mode: CredentialMode = CredentialMode.ADC
    cred: Optional[credentials.Base] = None

    try:
        if settings.firebase_credentials_json:
            cred = credentials.Certificate(json.loads(settings.firebase_credentials_json))
            credential_mode = CredentialMode.SERVICE_ACCOUNT_JSON
        elif settings.google_application_credentials:
            cred = credentials.Certificate(settings.google_application_credentials)
            credential_mode = CredentialMode.SERVICE_ACCOUNT_FILE
        elif os.environ.get("GOOGLE_APPLICATION_CREDENTIALS"):
            cred = credentials.Certificate(os.environ["GOOGLE_APPLICATION_CREDENTIALS"])
            credential_mode = CredentialMode.SERVICE_ACCOUNT_FILE

        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        if cred is not None:
            _firebase_app = firebase_admin.initialize_app(cred, options)
        else:
            _firebase_app = firebase_admin.initialize_app(options=options)

        logger.info("Firebase initialized", credential_mode=credential_mode.value)
        return _firebase_app

    except Exception as e:
        logger.error(
            "Failed to initialize Firebase",
            error_code="FIREBASE_INIT_ERROR",
            exception_class=type(e).__name__
        )
        raise


def _classify_auth_exception(exc: Exception) -> AuthErrorCode:
    """
    Classify Firebase auth exceptions into PII-safe error codes.
    Exception messages are inspected but NEVER logged.
    """
    exc_class_name = type(exc).__name__.lower()
    exc_message_lower = str(exc).lower()

    if isinstance(exc, auth.ExpiredIdTokenError):
        return AuthErrorCode.TOKEN_EXPIRED

    if isinstance(exc, auth.RevokedIdTokenError):
        return AuthErrorCode.TOKEN_REVOKED

    if isinstance(exc, auth.InvalidIdTokenError):
        if "wrong audience" in exc_message_lower or "aud" in exc_message_lower:
            return AuthErrorCode.PROJECT_MISMATCH
        if "issued in the future" in exc_message_lower or "iat" in exc_message_lower:
            return AuthErrorCode.CLOCK_SKEW
        if "has expired" in exc_message_lower:
            return AuthErrorCode.TOKEN_EXPIRED
        return AuthErrorCode.TOKEN_INVALID

    if isinstance(exc, auth.CertificateFetchError):
        return AuthErrorCode.CERT_FETCH_FAILED

    if isinstance(exc, (socket.timeout, socket.gaierror, ConnectionError)):
        return AuthErrorCode.NETWORK_ERROR

    if "cert" in exc_class_name:
        return AuthErrorCode.CERT_FETCH_FAILED

    if "network" in exc_class_name or "connection" in exc_class_name or "timeout" in exc_class_name:
        return AuthErrorCode.NETWORK_ERROR

    return AuthErrorCode.UNKNOWN_AUTH_ERROR


def verify_firebase_token(token: str) -> str:
    """
    Verify token and return the user's id.

    Behavior depends on AUTH_MODE setting:
    - firebase: Uses Firebase Admin SDK to verify the ID token
    - dev: Accepts DEV_BEARER_TOKEN and returns DEV_USER_ID

    Raises:
        HTTPException: 401 with a PII-safe error code in the detail
    """
    settings = get_settings()

    if settings.auth_mode == "dev":
        if token == settings.dev_bearer_token:
            return DEV_USER_ID

        logger.warning(
            "Token verification failed",
            error_code=AuthErrorCode.TOKEN_INVALID.value,
            exception_class="DevAuthError"
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Authentication failed ({AuthErrorCode.TOKEN_INVALID.value})"
        )

    if _firebase_app is None:
        init_firebase()

    try:
        decoded_token = auth.verify_id_token(token)
        # DO NOT LOG
        return decoded_token["uid"]

    except Exception as exc:
        error_code = _classify_auth_exception(exc)
        logger.warning(
            "Token verification failed",
            error_code=error_code.value,
            exception_class=type(exc).__name__
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Authentication failed ({error_code.value})"
        )


def extract_bearer_token(request: Request) -> str:
    """
    Extract Bearer token from the Authorization header.

    Raises:
        HTTPException: If header is missing or malformed
    """
    auth_header = request.headers.get("Authorization")

    if not auth_header:
        logger.warning("Missing authorization header", error_code="NO_AUTH_HEADER")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header"
        )

    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        logger.warning("Invalid authorization header format", error_code="INVALID_AUTH_FORMAT")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: Bearer <token>"
        )

    return parts[1].strip()


async def verify_auth_header(request: Request) -> None:
    """
    Router-level dependency that verifies auth BEFORE body parsing.

    Only reads headers, so FastAPI runs it before validating the JSON body.
    Stores the authenticated id in request.state.user_id (never logged).

    Raises:
        HTTPException 401: If token missing, malformed, or invalid.
    """
    token = extract_bearer_token(request)
    request.state.user_id = verify_firebase_token(token)


async def get_current_user_id(request: Request) -> str:
    """
    Route dependency returning the id stored by verify_auth_header.

    Raises:
        HTTPException 401: If the router-level dependency did not run.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header"
        )
    return user_id
