"""
PII-safe logging module.

Log lines read `message | key=value | key=value`. Only allow-listed context keys
are written; anything else passed by a caller is dropped silently. String values
that still match a PII pattern (a client-supplied request id holding an email,
for example) are replaced with [REDACTED].

CRITICAL: Never log user input, prompts, model output, plan text, titles or
user ids.
"""
import logging
import sys
from typing import Any, Optional

from app.core.config import get_settings
from app.services.safety.input_sanitizer import contains_pii

REDACTED = "[REDACTED]"
MAX_VALUE_CHARS = 2000

# Request/response envelope
REQUEST_FIELDS = frozenset({
    "request_id",
    "latency_ms",
    "status",
    "status_code",
    "error_code",
    "method",
    "path",
    "reset_seconds",
})

# Plan pipeline counters and codes
PIPELINE_FIELDS = frozenset({
    "tier",
    "failure_reason",
    "plan_source",
    "safety_verdict",
    "safety_categories",
    "input_truncated",
    "step_count",
    "bullet_count",
    "theme_count",
    "plan_count",
    "telemetry_event",
    "telemetry_payload",
    "cooldown_s",
})

# Infrastructure
BACKEND_FIELDS = frozenset({
    "backend",
    "store_backend",
    "model_version",
    "inference_ms",
    "credential_mode",
    "exception_class",
})


def setup_logging() -> None:
    """Configure application logging with PII-safe format."""
    settings = get_settings()

    log_level = logging.DEBUG if settings.service_env == "dev" else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True
    )

    # Third-party loggers may print URLs or payloads at DEBUG
    for noisy in ("uvicorn.access", "httpcore", "httpx", "google.auth", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        value = ",".join(str(item) for item in value)

    text = str(value)
    if contains_pii(text):
        return REDACTED
    return text[:MAX_VALUE_CHARS]


class SafeLogger:
    """
    PII-safe logger wrapper around a stdlib logger.
    Context keys outside SAFE_FIELDS never reach the handler.
    """

    SAFE_FIELDS = REQUEST_FIELDS | PIPELINE_FIELDS | BACKEND_FIELDS

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _render(self, message: str, context: dict[str, Any]) -> str:
        parts = [
            f"{key}={_format_value(value)}"
            for key, value in context.items()
            if key in self.SAFE_FIELDS and value is not None
        ]
        return " | ".join([message, *parts])

    def _log(self, level: int, message: str, context: dict[str, Any]) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._render(message, context))

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, context)

    def error(
        self,
        message: str,
        error_code: Optional[str] = None,
        **context: Any
    ) -> None:
        """
        Log an error. Pass the exception class name, never the exception
        message: messages can echo user text.
        """
        if error_code:
            context["error_code"] = error_code
        self._log(logging.ERROR, message, context)


def get_safe_logger(name: str) -> SafeLogger:
    """Get a PII-safe logger instance."""
    return SafeLogger(name)
