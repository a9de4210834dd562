"""Centralized configuration using Pydantic Settings.

This module provides a single source of truth for all configuration:
OCR engine settings, backend endpoints, payment processor keys,
display locale and logging.

Configuration can be overridden via environment variables:
- BOOKING_BACKEND_MODE=sandbox
- BOOKING_BACKEND_BASE_URL=https://api.example.com/api
- BOOKING_PAYMENT_PUBLISHABLE_KEY=pk_test_...
- BOOKING_OCR_TESSERACT_CMD=/usr/local/bin/tesseract
- etc.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MRZ_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789<"


class OCRConfig(BaseSettings):
    """OCR and MRZ decoding configuration.

    Environment variables prefixed with BOOKING_OCR_.
    """

    model_config = SettingsConfigDict(env_prefix="BOOKING_OCR_")

    tesseract_cmd: Optional[str] = None
    language: str = "eng"
    char_whitelist: str = MRZ_ALPHABET
    page_segmentation_mode: int = 6
    min_line_length: int = 20
    strict_check_digits: bool = True
    correct_future_birth_dates: bool = True
    scan_workers: int = 1


class BackendConfig(BaseSettings):
    """Booking backend configuration.

    Environment variables prefixed with BOOKING_BACKEND_.
    """

    model_config = SettingsConfigDict(env_prefix="BOOKING_BACKEND_")

    mode: Literal["http", "sandbox"] = "http"
    base_url: str = "http://localhost:5000/api"
    timeout_seconds: float = 30.0
    max_retries: int = 2
    backoff_factor: float = 0.5
    api_token: Optional[str] = None
    idempotency_ttl_seconds: float = 24 * 3600


class PaymentConfig(BaseSettings):
    """Payment processor configuration.

    Environment variables prefixed with BOOKING_PAYMENT_.
    """

    model_config = SettingsConfigDict(env_prefix="BOOKING_PAYMENT_")

    processor: Literal["stripe", "sandbox"] = "stripe"
    publishable_key: str = ""
    return_url_template: str = (
        "http://localhost:3000/booking/confirmation?booking_id={booking_id}"
    )
    waiver_delay_seconds: float = 2.0

    def return_url_for(self, booking_id: str) -> str:
        """Return URL the processor sends the user back to after a challenge."""
        return self.return_url_template.format(booking_id=booking_id)


class PricingConfig(BaseSettings):
    """Price display configuration.

    Environment variables prefixed with BOOKING_PRICING_.
    """

    model_config = SettingsConfigDict(env_prefix="BOOKING_PRICING_")

    locale: str = "en_US"


class ObservabilityConfig(BaseSettings):
    """Logging and observability configuration.

    Environment variables prefixed with BOOKING_LOG_.
    """

    model_config = SettingsConfigDict(env_prefix="BOOKING_LOG_")

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    structured: bool = False  # Set True for JSON logging


class AppConfig(BaseSettings):
    """Main application configuration aggregating all sub-configs.

    This is the main entry point for configuration. Sub-configurations
    can be accessed via attributes:

        config = get_config()
        print(config.backend.base_url)
        print(config.payment.waiver_delay_seconds)

    Environment variables prefixed with BOOKING_.
    """

    model_config = SettingsConfigDict(env_prefix="BOOKING_")

    ocr: OCRConfig = Field(default_factory=OCRConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    payment: PaymentConfig = Field(default_factory=PaymentConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the singleton application configuration.

    Configuration is loaded once and cached. To reload configuration
    (e.g., in tests), use reset_config() first.

    Returns:
        The application configuration instance.
    """
    return AppConfig()


def reset_config() -> None:
    """Reset the configuration cache.

    Call this in tests to ensure a fresh configuration is loaded.
    """
    get_config.cache_clear()
