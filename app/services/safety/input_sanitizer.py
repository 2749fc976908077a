"""
PII sanitizer for free-text wellness input.
Runs before classification, prompting and any logging.

Rules (applied in order):
- Email addresses -> [EMAIL]
- Phone numbers (NANP style, optional +1) -> [PHONE]
- Government IDs (SSN style ddd-dd-dddd) -> [GOV_ID]
- Payment card numbers (13-19 digits, optional separators) -> [CARD]
Whitespace is collapsed before masking; the length cap is applied last and
includes the truncation marker.

Never log the original or sanitized content.
"""
import re
from typing import Optional

DEFAULT_MAX_INPUT_CHARS = 2000
TRUNCATION_MARKER = " [truncated]"

# Order matters: phone before card so 10-digit phones get the phone token.
PII_PATTERNS = [
    (r"\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b", "[EMAIL]"),
    (r"(?<![\w+])(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\w)", "[PHONE]"),
    (r"(?<!\d)\d{3}-\d{2}-\d{4}(?!\d)", "[GOV_ID]"),
    (r"(?<!\d)(?:\d[ -]?){12,18}\d(?!\d)", "[CARD]"),
]

_COMPILED_PATTERNS = [(re.compile(p, re.IGNORECASE), r) for p, r in PII_PATTERNS]


def _mask_pii(text: str) -> str:
    for pattern, replacement in _COMPILED_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def sanitize_input(raw: Optional[str], max_chars: Optional[int] = None) -> str:
    """
    Mask PII and cap length.

    Total: accepts any string (or None) and always returns a string no longer
    than max_chars. Sanitizing an already sanitized string returns it unchanged.

    Args:
        raw: Untrusted user text
        max_chars: Length cap including the truncation marker

    Returns:
        Sanitized text
    """
    if not raw:
        return ""

    limit = max_chars if max_chars is not None else DEFAULT_MAX_INPUT_CHARS

    # Collapse first: "555  123  4567" must still be seen as a phone number
    result = " ".join(raw.split())
    result = _mask_pii(result)

    if len(result) <= limit:
        return result

    keep = max(limit - len(TRUNCATION_MARKER), 0)
    # Cutting a digit run can expose a fresh match, so mask the cut body again
    body = _mask_pii(result[:keep]).rstrip()[:keep]
    return body + TRUNCATION_MARKER


def is_truncated(sanitized: str) -> bool:
    """True if the sanitizer cut this text."""
    return sanitized.endswith(TRUNCATION_MARKER)


def contains_pii(text: str) -> bool:
    """
    Quick check whether text still contains a recognizable PII pattern.
    Returns True if any pattern matches.
    """
    if not text:
        return False

    for pattern, _ in _COMPILED_PATTERNS:
        if pattern.search(text):
            return True

    return False
