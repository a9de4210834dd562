"""Tesseract OCR adapter.

This adapter wraps pytesseract with:
- Configuration injection (binary path, language, segmentation mode)
- A character whitelist passed as tessedit_char_whitelist
- Exclusive use: one recognition at a time per adapter instance
- Scoped sessions: the decoded image is closed after every call,
  whether recognition succeeded or failed
"""

from __future__ import annotations

import io
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

import pytesseract
from PIL import Image, UnidentifiedImageError

from ...config import OCRConfig, get_config
from ...domain.errors import OCREngineError


@dataclass
class TesseractOCRAdapter:
    """Tesseract-based OCR engine.

    This adapter implements OCREnginePort.

    Attributes:
        config: OCR configuration
    """

    config: OCRConfig = field(default_factory=lambda: get_config().ocr)

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

    @property
    def engine_name(self) -> str:
        return "tesseract"

    @contextmanager
    def session(self, image: Any) -> Iterator[Image.Image]:
        """Hold the engine and an opened image for one recognition.

        The lock is released and any image opened here is closed on exit.
        """
        with self._lock:
            opened = None
            try:
                if isinstance(image, Image.Image):
                    pil_image = image
                else:
                    source = io.BytesIO(image) if isinstance(image, (bytes, bytearray)) else image
                    opened = pil_image = Image.open(source)
                yield pil_image
            except (UnidentifiedImageError, OSError) as e:
                raise OCREngineError(
                    "The image could not be read",
                    engine=self.engine_name,
                    cause=e,
                )
            finally:
                if opened is not None:
                    opened.close()
                    self._logger.debug("OCR session released")

    def recognize_text(self, image: Any, char_whitelist: str) -> str:
        """Run Tesseract over the full image.

        Raises:
            OCREngineError: If the image cannot be read or Tesseract fails.
        """
        tess_config = (
            f"--psm {self.config.page_segmentation_mode} "
            f"-c tessedit_char_whitelist={char_whitelist}"
        )
        source = str(image) if isinstance(image, (str, Path)) else type(image).__name__

        with self.session(image) as pil_image:
            start_time = time.time()
            try:
                text = pytesseract.image_to_string(
                    pil_image.convert("L"),
                    lang=self.config.language,
                    config=tess_config,
                )
            except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
                self._logger.error(
                    "Tesseract recognition failed",
                    extra={"error": str(e), "source": source},
                )
                raise OCREngineError(
                    "Text recognition failed",
                    engine=self.engine_name,
                    cause=e,
                )

            self._logger.info(
                "Recognition complete",
                extra={
                    "elapsed_seconds": round(time.time() - start_time, 2),
                    "lines": len(text.splitlines()),
                    "source": source,
                },
            )
            return text
