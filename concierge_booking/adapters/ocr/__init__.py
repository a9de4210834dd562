"""OCR adapters - Implementations of OCREnginePort.

Available implementations:
- TesseractOCRAdapter: Tesseract via pytesseract
"""

from .tesseract_adapter import TesseractOCRAdapter

__all__ = ["TesseractOCRAdapter"]
