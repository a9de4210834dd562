"""Dependency injection container.

This module provides a simple DI container without external frameworks.
It allows registering and resolving dependencies for the application.

Design principles:
1. No magic - explicit registration and resolution
2. Testable - easy to swap implementations
3. Lazy loading - adapters instantiated on first use
4. Thread-safe - for web server contexts
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from .config import AppConfig, get_config

if TYPE_CHECKING:
    from .domain.models import Offer
    from .services import BookingWizard


@dataclass
class Container:
    """Dependency injection container.

    Usage:
        # Production
        container = Container.create_default()
        wizard = container.new_wizard(offer, primary_email="ana@example.com")
        wizard.scan_document_async(0, image_bytes, container.resolve(Executor))

        # Testing
        container = Container()
        container.register(OCREnginePort, lambda: FakeOCR(text))
        ocr = container.resolve(OCREnginePort)

    Attributes:
        config: Application configuration
    """

    config: AppConfig = field(default_factory=get_config)

    _factories: Dict[type[Any], Callable[[], Any]] = field(
        default_factory=dict, repr=False
    )
    _singletons: Dict[type[Any], Any] = field(default_factory=dict, repr=False)
    _singleton_types: set[type[Any]] = field(default_factory=set, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def register(
        self,
        port_type: type[Any],
        factory: Callable[[], Any],
        singleton: bool = True,
    ) -> None:
        """Register a factory for a port type.

        Args:
            port_type: The type (usually a Protocol) to register.
            factory: A callable that creates instances of the type.
            singleton: If True, only one instance is created.
        """
        with self._lock:
            self._factories[port_type] = factory
            if singleton:
                self._singleton_types.add(port_type)

    def resolve(self, port_type: type[Any]) -> Any:
        """Resolve an instance of a port type.

        Args:
            port_type: The type to resolve.

        Returns:
            An instance of the requested type.

        Raises:
            KeyError: If the type is not registered.
        """
        with self._lock:
            if port_type not in self._factories:
                raise KeyError(f"Type not registered: {port_type}")

            if port_type in self._singleton_types:
                if port_type not in self._singletons:
                    self._singletons[port_type] = self._factories[port_type]()
                return self._singletons[port_type]

            return self._factories[port_type]()

    def is_registered(self, port_type: type[Any]) -> bool:
        """Check if a type is registered.

        Args:
            port_type: The type to check.

        Returns:
            True if the type is registered.
        """
        return port_type in self._factories

    def clear_singletons(self) -> None:
        """Clear all cached singletons.

        Call this in tests to ensure fresh instances.
        """
        with self._lock:
            self._singletons.clear()

    def clear_all(self) -> None:
        """Clear all registrations and singletons.

        Call this to completely reset the container.
        """
        with self._lock:
            self._factories.clear()
            self._singletons.clear()
            self._singleton_types.clear()

    def new_wizard(
        self,
        offer: Offer,
        primary_email: str = "",
        primary_phone: str = "",
    ) -> BookingWizard:
        """Create a wizard for one booking.

        Each wizard gets its own PaymentOrchestrator, so payment state is
        never shared between two bookings in progress.
        """
        from .services import (
            BookingInitiator,
            BookingWizard,
            MrzExtractor,
            PaymentOrchestrator,
        )

        return BookingWizard(
            offer=offer,
            initiator=self.resolve(BookingInitiator),
            orchestrator=self.resolve(PaymentOrchestrator),
            extractor=self.resolve(MrzExtractor),
            primary_email=primary_email,
            primary_phone=primary_phone,
        )

    @classmethod
    def create_default(cls, config: Optional[AppConfig] = None) -> Container:
        """Create a container with default production bindings.

        Backend and payment processor are chosen from configuration
        (http/sandbox, stripe/sandbox). Adapters are only built when
        first resolved, so a sandbox setup never needs a Stripe key.

        Args:
            config: Optional configuration override.

        Returns:
            A configured Container instance.
        """
        from .adapters.backend import HttpBookingBackend, SandboxBookingBackend
        from .adapters.ocr import TesseractOCRAdapter
        from .adapters.payment import SandboxPaymentProcessor, StripePaymentProcessor
        from .ports.backend import BookingBackendPort
        from .ports.ocr import OCREnginePort
        from .ports.payment import PaymentProcessorPort
        from .services import BookingInitiator, MrzExtractor, PaymentOrchestrator

        config = config or get_config()
        container = cls(config=config)

        # OCR
        container.register(
            OCREnginePort,
            lambda: TesseractOCRAdapter(config.ocr),
        )

        # Booking backend based on config
        def create_backend() -> BookingBackendPort:
            if config.backend.mode == "sandbox":
                return SandboxBookingBackend(config=config.backend)
            return HttpBookingBackend(config.backend)

        container.register(BookingBackendPort, create_backend)

        # Payment processor based on config
        def create_processor() -> PaymentProcessorPort:
            if config.payment.processor == "sandbox":
                return SandboxPaymentProcessor()
            return StripePaymentProcessor(config.payment)

        container.register(PaymentProcessorPort, create_processor)

        # Worker pool for document scans run off the caller thread
        container.register(
            Executor,
            lambda: ThreadPoolExecutor(
                max_workers=config.ocr.scan_workers,
                thread_name_prefix="mrz-scan",
            ),
        )

        # Services
        container.register(
            MrzExtractor,
            lambda: MrzExtractor(container.resolve(OCREnginePort), config.ocr),
        )
        container.register(
            BookingInitiator,
            lambda: BookingInitiator(container.resolve(BookingBackendPort)),
        )
        container.register(
            PaymentOrchestrator,
            lambda: PaymentOrchestrator(
                backend=container.resolve(BookingBackendPort),
                processor=container.resolve(PaymentProcessorPort),
                config=config.payment,
            ),
            singleton=False,
        )

        return container


# Global default container (lazy initialized)
_default_container: Optional[Container] = None
_container_lock = threading.Lock()


def get_container() -> Container:
    """Get the default application container.

    Returns:
        The default Container instance (creates one if needed).
    """
    global _default_container
    if _default_container is None:
        with _container_lock:
            if _default_container is None:
                _default_container = Container.create_default()
    return _default_container


def reset_container() -> None:
    """Reset the default container.

    Call this in tests to ensure a fresh container.
    """
    global _default_container
    with _container_lock:
        if _default_container is not None:
            _default_container.clear_all()
        _default_container = None
