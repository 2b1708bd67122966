"""
Tests for structured logging
"""

import io
import json
import logging

from rental_billing.logging_config import JSONFormatter, setup_logging, log_action


def capture(logger_name):
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger = logging.getLogger(logger_name)
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger, stream


class TestStructuredLogging:

    def test_log_action_fields(self):
        logger, stream = capture("rental_billing.test.actions")

        log_action(logger, "info", "Created missing payment", lease_id="lease_001",
                   action="missing_payment_created", extra={"amount": "1500.00"})

        entry = json.loads(stream.getvalue())
        assert entry["level"] == "INFO"
        assert entry["message"] == "Created missing payment"
        assert entry["lease_id"] == "lease_001"
        assert entry["action"] == "missing_payment_created"
        assert entry["extra"] == {"amount": "1500.00"}
        assert "agreement_id" not in entry

    def test_log_action_respects_level(self):
        logger, stream = capture("rental_billing.test.levels")
        logger.setLevel(logging.WARNING)

        log_action(logger, "info", "ignored")

        assert stream.getvalue() == ""

    def test_exception_is_included(self):
        logger, stream = capture("rental_billing.test.errors")

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.error("Failed", exc_info=True)

        entry = json.loads(stream.getvalue())
        assert "RuntimeError: boom" in entry["exception"]

    def test_setup_logging(self):
        logger = setup_logging("DEBUG", "json", logger_name="rental_billing.test.setup")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

        logger = setup_logging("WARNING", "text", logger_name="rental_billing.test.setup")
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
