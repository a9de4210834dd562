"""OCR port - Abstraction for optical character recognition engines.

This protocol defines the contract for OCR engines, allowing
different implementations (Tesseract, a hosted service, a fake in
tests) to be used by the MRZ extractor.
"""

from __future__ import annotations

from typing import Any, Protocol


class OCREnginePort(Protocol):
    """Port for OCR engines.

    Implementation: adapters/ocr/tesseract_adapter.py

    An engine instance serves one recognition at a time and releases
    whatever it acquired for a call (image handles, engine sessions)
    before returning, whether the call succeeded or not.
    """

    def recognize_text(self, image: Any, char_whitelist: str) -> str:
        """Run OCR over a full image.

        Args:
            image: Path, raw bytes, file object or PIL image.
            char_whitelist: Only these characters may be recognized.

        Returns:
            The raw recognized text, lines separated by newlines.

        Raises:
            OCREngineError: If the engine could not process the image.
        """
        ...

    @property
    def engine_name(self) -> str:
        """Return the engine identifier (e.g. 'tesseract')."""
        ...
