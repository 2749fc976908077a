"""
Telemetry events for the plan pipeline.

Events are written as one structured log line (`telemetry_payload` holds the
JSON record). Payloads carry reason codes, hashes, counts and verdicts only:
keys that name user content are dropped, and string values that still match a
PII pattern are replaced before anything is written.
"""
import json
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional

from app.core.logging import REDACTED, get_safe_logger
from app.services.safety.input_sanitizer import contains_pii

logger = get_safe_logger(__name__)

# Compared case-insensitively
PII_FORBIDDEN_KEYS: FrozenSet[str] = frozenset({
    "text",
    "input",
    "userinput",
    "user_input",
    "prompt",
    "output",
    "content",
    "raw",
    "plan",
    "title",
    "email",
    "phone",
    "name",
    "uid",
    "user_id",
    "userid",
})


class _Cooldowns:
    """Last emit time per event name."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last: Dict[str, float] = {}

    def acquire(self, event_name: str, cooldown_s: int) -> bool:
        """Claim the slot for event_name; False while it is cooling down."""
        if cooldown_s <= 0:
            return True
        now = time.time()
        with self._lock:
            last = self._last.get(event_name)
            if last is not None and now - last < cooldown_s:
                return False
            self._last[event_name] = now
            return True

    def last(self, event_name: str) -> Optional[float]:
        with self._lock:
            return self._last.get(event_name)

    def clear(self) -> None:
        with self._lock:
            self._last.clear()


_cooldowns = _Cooldowns()


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return _sanitize_payload(value)
    if isinstance(value, (list, tuple)):
        return [_scrub(item) for item in value]
    if isinstance(value, str) and contains_pii(value):
        return REDACTED
    return value


def _sanitize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of payload without forbidden keys, at any depth."""
    return {
        key: _scrub(value)
        for key, value in payload.items()
        if str(key).lower() not in PII_FORBIDDEN_KEYS
    }


def emit_event(
    name: str,
    payload: Dict[str, Any],
    cooldown_s: int = 0,
    force: bool = False
) -> bool:
    """
    Emit a telemetry event, at most once per cooldown_s for the same name.

    Args:
        name: Event name, e.g. "structured_tier_failed"
        payload: Reason codes, hashes and counters
        cooldown_s: Minimum seconds between two emits of this name (0 = none)
        force: Emit even inside the cooldown

    Returns:
        True if emitted, False if suppressed by the cooldown
    """
    if not force and not _cooldowns.acquire(name, cooldown_s):
        logger.debug("Telemetry event suppressed", telemetry_event=name, cooldown_s=cooldown_s)
        return False

    record = {
        "event": name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **_sanitize_payload(payload),
    }
    logger.info(
        "Telemetry event emitted",
        telemetry_event=name,
        telemetry_payload=json.dumps(record, default=str, sort_keys=True),
    )
    return True


def reset_rate_limits() -> None:
    """Clear all cooldowns (for testing)."""
    _cooldowns.clear()


def get_last_emit_time(event_name: str) -> Optional[float]:
    """Unix time of the last cooldown-tracked emit of event_name, or None."""
    return _cooldowns.last(event_name)
