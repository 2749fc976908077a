"""
Tests for the PII input sanitizer.
"""
import pytest

from app.services.safety.input_sanitizer import (
    DEFAULT_MAX_INPUT_CHARS,
    TRUNCATION_MARKER,
    contains_pii,
    is_truncated,
    sanitize_input,
)


class TestMasking:

    def test_email_masked(self):
        assert sanitize_input("Email me at jane.doe@example.com please") == "Email me at [EMAIL] please"

    @pytest.mark.parametrize("phone", [
        "555-123-4567",
        "555.123.4567",
        "(555) 123-4567",
        "+1 (555) 123-4567",
        "5551234567",
    ])
    def test_phone_masked(self, phone):
        assert sanitize_input(f"Call {phone} tonight") == "Call [PHONE] tonight"

    def test_gov_id_masked(self):
        assert sanitize_input("My SSN is 123-45-6789.") == "My SSN is [GOV_ID]."

    @pytest.mark.parametrize("card", [
        "4111 1111 1111 1111",
        "4111-1111-1111-1111",
        "4111111111111111",
    ])
    def test_card_masked(self, card):
        assert sanitize_input(f"card {card} expired") == "card [CARD] expired"

    def test_multiple_kinds_in_one_input(self):
        result = sanitize_input("Reach me at 555.123.4567 or me@mail.io, SSN 123-45-6789")
        assert result == "Reach me at [PHONE] or [EMAIL], SSN [GOV_ID]"

    def test_whitespace_split_phone_still_masked(self):
        assert sanitize_input("number 555  123  4567") == "number [PHONE]"

    def test_short_numbers_left_alone(self):
        text = "I slept 4 hours and walked 3000 steps in 2024"
        assert sanitize_input(text) == text


class TestTotality:

    @pytest.mark.parametrize("raw", ["", None])
    def test_empty_input(self, raw):
        assert sanitize_input(raw) == ""

    def test_whitespace_collapsed(self):
        assert sanitize_input("  feeling \n\n  tired\t today ") == "feeling tired today"


class TestTruncation:

    def test_long_input_capped_with_marker(self):
        result = sanitize_input("a" * 5000)
        assert len(result) == DEFAULT_MAX_INPUT_CHARS
        assert result.endswith(TRUNCATION_MARKER)
        assert is_truncated(result)

    def test_custom_cap(self):
        result = sanitize_input("word " * 200, max_chars=100)
        assert len(result) <= 100
        assert result.endswith(TRUNCATION_MARKER)

    def test_input_at_cap_not_truncated(self):
        text = "b" * DEFAULT_MAX_INPUT_CHARS
        assert sanitize_input(text) == text
        assert not is_truncated(text)

    def test_pii_near_cut_point_not_leaked(self):
        raw = "x" * 1975 + " contact 555-123-4567 thanks"
        result = sanitize_input(raw)
        assert len(result) <= DEFAULT_MAX_INPUT_CHARS
        assert "555-123-4567" not in result
        assert not contains_pii(result)


class TestIdempotence:

    @pytest.mark.parametrize("raw", [
        "Email jane@example.com or call 555-123-4567",
        "SSN 123-45-6789 and card 4111 1111 1111 1111",
        "plain text with no personal data",
        "call me " * 600 + "555-123-4567",
        "z" * 3000,
    ])
    def test_sanitizing_twice_is_noop(self, raw):
        once = sanitize_input(raw)
        assert sanitize_input(once) == once
        assert not contains_pii(once)


class TestContainsPii:

    def test_detects_raw_pii(self):
        assert contains_pii("me@example.com")
        assert contains_pii("123-45-6789")

    def test_placeholders_are_not_pii(self):
        assert not contains_pii("[EMAIL] [PHONE] [GOV_ID] [CARD]")
        assert not contains_pii("")
