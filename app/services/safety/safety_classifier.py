"""
Two-tier keyword safety classifier.

Maps sanitized text to a SafetyVerdict (none / concerning / critical).
Pattern sets are plain data so they can be audited and versioned without
touching control flow; `get_safety_rules_hash()` fingerprints them.

This is a heuristic filter, not a clinical judgment. It runs locally with no
external calls, so false positives and negatives are accepted.
"""
import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

SAFETY_RULES_VERSION = "v2-two-tier"


class SafetyVerdict(str, Enum):
    """Outcome of heuristic crisis-language detection."""
    NONE = "none"
    CONCERNING = "concerning"
    CRITICAL = "critical"


# (category, pattern). Any match means the tier applies.
CRITICAL_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("suicidal_ideation", r"\bsuicid(?:e|al)\b"),
    ("suicidal_ideation", r"\bkill(?:ing)?\s+myself\b"),
    ("suicidal_ideation", r"\bend(?:ing)?\s+my\s+(?:own\s+)?life\b"),
    ("suicidal_ideation", r"\btake\s+my\s+(?:own\s+)?life\b"),
    ("suicidal_ideation", r"\bwant(?:s|ed)?\s+to\s+die\b"),
    ("suicidal_ideation", r"\bbetter\s+off\s+dead\b"),
    ("suicidal_ideation", r"\bno\s+reason\s+to\s+live\b"),
    ("suicidal_ideation", r"\bdon'?t\s+want\s+to\s+(?:live|be\s+alive)\b"),
    ("self_harm", r"\bself[-\s]?harm(?:ing)?\b"),
    ("self_harm", r"\bhurt(?:ing)?\s+myself\b"),
    ("self_harm", r"\bcut(?:ting)?\s+myself\b"),
    ("self_harm", r"\boverdos(?:e|ed|ing)\b"),
    ("crisis_intent", r"\bend\s+it\s+all\b"),
    ("crisis_intent", r"\bsay(?:ing)?\s+goodbye\s+(?:to\s+everyone|forever)\b"),
    ("crisis_intent", r"\bwon'?t\s+be\s+(?:here|around)\s+(?:much\s+longer|tomorrow)\b"),
)

CONCERNING_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("hopelessness", r"\bhopeless(?:ness)?\b"),
    ("hopelessness", r"\bworthless\b"),
    ("hopelessness", r"\bno\s+point\s+(?:in\s+)?(?:anything|trying)\b"),
    ("hopelessness", r"\bnothing\s+matters\b"),
    ("hopelessness", r"\bcan'?t\s+go\s+on\b"),
    ("hopelessness", r"\bgive\s+up\s+on\s+everything\b"),
    ("hopelessness", r"\bempty\s+inside\b"),
    ("crisis_adjacent", r"\bno\s+way\s+out\b"),
    ("crisis_adjacent", r"\btrapped\b"),
    ("crisis_adjacent", r"\bbreaking\s+down\b"),
    ("crisis_adjacent", r"\bfalling\s+apart\b"),
    ("crisis_adjacent", r"\bcan'?t\s+cope\b"),
    ("crisis_adjacent", r"\bnobody\s+(?:cares|would\s+care)\b"),
    ("crisis_adjacent", r"\bburden\s+(?:to|on)\s+(?:everyone|others)\b"),
    ("crisis_adjacent", r"\bpanic\s+attacks?\b"),
)

_COMPILED_CRITICAL = [(c, re.compile(p, re.IGNORECASE)) for c, p in CRITICAL_PATTERNS]
_COMPILED_CONCERNING = [(c, re.compile(p, re.IGNORECASE)) for c, p in CONCERNING_PATTERNS]

_CACHED_HASH: Optional[str] = None


@dataclass
class SafetyScan:
    """Verdict plus the categories that produced it (categories are PII-free)."""
    verdict: SafetyVerdict
    categories: List[str] = field(default_factory=list)


def _normalize(text: str) -> str:
    # Curly apostrophes from mobile keyboards
    return text.replace("’", "'").replace("‘", "'")


def _matched_categories(text: str, compiled) -> List[str]:
    categories: List[str] = []
    for category, pattern in compiled:
        if category not in categories and pattern.search(text):
            categories.append(category)
    return categories


def scan_safety(text: Optional[str]) -> SafetyScan:
    """
    Evaluate both tiers independently and return the strongest verdict.
    Critical matches always take precedence over concerning ones.
    """
    if not text:
        return SafetyScan(verdict=SafetyVerdict.NONE)

    normalized = _normalize(text)

    critical = _matched_categories(normalized, _COMPILED_CRITICAL)
    if critical:
        return SafetyScan(verdict=SafetyVerdict.CRITICAL, categories=critical)

    concerning = _matched_categories(normalized, _COMPILED_CONCERNING)
    if concerning:
        return SafetyScan(verdict=SafetyVerdict.CONCERNING, categories=concerning)

    return SafetyScan(verdict=SafetyVerdict.NONE)


def classify_safety(text: Optional[str]) -> SafetyVerdict:
    """Map text to a three-valued safety verdict."""
    return scan_safety(text).verdict


def get_safety_rules_hash() -> str:
    """
    Deterministic fingerprint of both pattern sets.
    Format per rule: "{tier}|{category}|{pattern}", joined in declaration order.
    """
    global _CACHED_HASH
    if _CACHED_HASH is None:
        canonical = [f"critical|{c}|{p}" for c, p in CRITICAL_PATTERNS]
        canonical += [f"concerning|{c}|{p}" for c, p in CONCERNING_PATTERNS]
        _CACHED_HASH = hashlib.sha256("\n".join(canonical).encode("utf-8")).hexdigest()[:16]
    return _CACHED_HASH
