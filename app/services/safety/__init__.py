"""
Safety layer for plan generation: PII sanitization, crisis-language
classification and the fixed crisis response.
"""
from app.services.safety.crisis_responder import build_crisis_response
from app.services.safety.input_sanitizer import (
    TRUNCATION_MARKER,
    contains_pii,
    is_truncated,
    sanitize_input,
)
from app.services.safety.safety_classifier import (
    SafetyScan,
    SafetyVerdict,
    classify_safety,
    get_safety_rules_hash,
    scan_safety,
)

__all__ = [
    "build_crisis_response",
    "sanitize_input",
    "contains_pii",
    "is_truncated",
    "TRUNCATION_MARKER",
    "SafetyScan",
    "SafetyVerdict",
    "classify_safety",
    "scan_safety",
    "get_safety_rules_hash",
]
