"""
Tests for the PII-safe logger.
"""
import logging

from app.core.logging import REDACTED, get_safe_logger


def test_unknown_fields_dropped(caplog):
    caplog.set_level(logging.INFO, logger="tests.safe")
    logger = get_safe_logger("tests.safe")

    logger.info("Plan built", tier="structured", user_input="I feel awful", step_count=4)

    message = caplog.records[-1].getMessage()
    assert message == "Plan built | tier=structured | step_count=4"


def test_values_formatted(caplog):
    caplog.set_level(logging.INFO, logger="tests.safe")
    logger = get_safe_logger("tests.safe")

    logger.info("Scan", safety_categories=["self_harm", "crisis_intent"], input_truncated=True, backend=None)

    assert caplog.records[-1].getMessage() == (
        "Scan | safety_categories=self_harm,crisis_intent | input_truncated=true"
    )


def test_pii_in_allowed_field_redacted(caplog):
    caplog.set_level(logging.INFO, logger="tests.safe")
    logger = get_safe_logger("tests.safe")

    logger.info("Request", request_id="jane@example.com")

    message = caplog.records[-1].getMessage()
    assert "jane@example.com" not in message
    assert f"request_id={REDACTED}" in message


def test_error_code_included(caplog):
    caplog.set_level(logging.ERROR, logger="tests.safe")
    logger = get_safe_logger("tests.safe")

    logger.error("Failed", error_code="STORE_ERROR", exception_class="NotFound")

    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert "error_code=STORE_ERROR" in record.getMessage()
    assert "exception_class=NotFound" in record.getMessage()
