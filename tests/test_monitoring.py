"""Tests for logging setup."""

import json
import logging

import pytest

from concierge_booking.config import ObservabilityConfig
from concierge_booking.monitoring import StructuredFormatter, configure_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger("concierge_booking")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_structured_formatter_includes_extra_fields():
    record = logging.LogRecord(
        "concierge_booking.services.booking_initiator",
        logging.INFO,
        __file__,
        1,
        "Booking created",
        None,
        None,
    )
    record.booking_id = "bk_1"

    payload = json.loads(StructuredFormatter().format(record))

    assert payload["message"] == "Booking created"
    assert payload["level"] == "INFO"
    assert payload["booking_id"] == "bk_1"
    assert "lineno" not in payload


def test_configure_logging_replaces_handlers(package_logger):
    configure_logging(ObservabilityConfig(level="debug", structured=True))
    configure_logging(ObservabilityConfig(level="warning", structured=True))

    assert len(package_logger.handlers) == 1
    assert isinstance(package_logger.handlers[0].formatter, StructuredFormatter)
    assert package_logger.level == logging.WARNING
    assert not package_logger.propagate


def test_plain_format(package_logger):
    configure_logging(ObservabilityConfig(structured=False))

    assert not isinstance(package_logger.handlers[0].formatter, StructuredFormatter)
