"""Tests for configuration loading."""

from concierge_booking.config import PaymentConfig, get_config, reset_config


def test_defaults():
    config = get_config()

    assert config.backend.mode == "http"
    assert config.backend.base_url == "http://localhost:5000/api"
    assert config.payment.processor == "stripe"
    assert config.ocr.strict_check_digits
    assert config.pricing.locale == "en_US"


def test_config_is_cached():
    assert get_config() is get_config()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("BOOKING_BACKEND_MODE", "sandbox")
    monkeypatch.setenv("BOOKING_PAYMENT_WAIVER_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("BOOKING_OCR_STRICT_CHECK_DIGITS", "false")
    reset_config()

    config = get_config()

    assert config.backend.mode == "sandbox"
    assert config.payment.waiver_delay_seconds == 0.5
    assert not config.ocr.strict_check_digits


def test_return_url_for():
    config = PaymentConfig(return_url_template="https://shop.test/return?booking_id={booking_id}")

    assert config.return_url_for("bk_1") == "https://shop.test/return?booking_id=bk_1"
