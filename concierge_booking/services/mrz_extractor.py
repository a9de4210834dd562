"""MRZ extraction service - document image to identity data.

The extraction runs as a sequence of stages, each failing with its own
error so the user gets a hint that matches what went wrong:

    OCR -> candidate lines -> MRZ block -> decode -> normalize -> completeness

- OCREngineError: the engine could not run
- DetectionFailure: no machine readable zone in the text
- ParseFailure: the zone was found but does not decode
- IncompleteDataFailure: decoded, but a required field is empty
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from ..config import OCRConfig, get_config
from ..dates import parse_mrz_birth_date, parse_mrz_expiry_date
from ..domain.errors import (
    DetectionFailure,
    IncompleteDataFailure,
    ParseFailure,
    ScanFailure,
)
from ..domain.models import DocumentType, Gender, ScanOutcome, ScannedDocumentData
from ..mrz import MrzRecord, candidate_lines, parse, select_block
from ..ports.ocr import OCREnginePort

_SEX = {"M": Gender.MALE, "F": Gender.FEMALE}


def document_type_for(document_code: str) -> DocumentType:
    """Map an ICAO document code to a DocumentType.

    P is a passport, V a visa, and I, A or C an identity card. Unknown
    codes are treated as identity cards, which use the same fields.
    """
    first = document_code[:1]
    if first == "P":
        return DocumentType.PASSPORT
    if first == "V":
        return DocumentType.VISA
    return DocumentType.IDENTITY_CARD


def gender_for(sex: str) -> Gender:
    """'M' and 'F' map to a gender, anything else to UNSPECIFIED."""
    return _SEX.get(sex.upper(), Gender.UNSPECIFIED)


@dataclass
class MrzExtractor:
    """Extracts ScannedDocumentData from a passport or ID card image.

    Attributes:
        ocr: OCR engine used for the full-image recognition
        config: OCR configuration (whitelist, thresholds, strictness)
    """

    ocr: OCREnginePort
    config: OCRConfig = field(default_factory=lambda: get_config().ocr)

    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def extract(self, image: Any) -> ScannedDocumentData:
        """Run every stage and return the decoded document data.

        Args:
            image: Image path, encoded bytes or PIL image.

        Raises:
            OCREngineError: If the OCR engine fails.
            DetectionFailure: If no MRZ lines are found.
            ParseFailure: If the MRZ does not decode.
            IncompleteDataFailure: If required fields are empty.
        """
        start_time = time.time()

        text = self.ocr.recognize_text(image, self.config.char_whitelist)
        record = self.decode(text)
        data = self.normalize(record)
        self._check_complete(data)

        self._logger.info(
            "Document scanned",
            extra={
                "mrz_format": record.format,
                "document_type": data.document_type.value,
                "elapsed_seconds": round(time.time() - start_time, 2),
            },
        )
        return data

    def extract_safe(self, image: Any) -> ScanOutcome:
        """Extract without raising scan failures.

        Returns:
            ScanOutcome with either the data or the scan failure.
        """
        try:
            return ScanOutcome(data=self.extract(image))
        except ScanFailure as e:
            self._logger.warning(
                "Document scan failed",
                extra={"failure": type(e).__name__, "reason": e.message},
            )
            return ScanOutcome(error=e)

    def decode(self, text: str) -> MrzRecord:
        """Find the MRZ block in OCR text and decode it."""
        candidates = candidate_lines(text, self.config.min_line_length)
        block = select_block(candidates)
        if not block:
            raise DetectionFailure(
                "MRZ zone not found",
                candidate_lines=len(candidates),
            )

        self._logger.debug(
            "MRZ block selected",
            extra={"candidates": len(candidates), "line_lengths": [len(line) for line in block]},
        )
        record = parse(block, strict=self.config.strict_check_digits)
        if record.invalid_checks:
            self._logger.warning(
                "MRZ check digits failed, accepted in lenient mode",
                extra={"fields": list(record.invalid_checks)},
            )
        return record

    def normalize(self, record: MrzRecord) -> ScannedDocumentData:
        """Convert raw MRZ fields to domain values (ISO dates, Gender)."""
        try:
            birth_date = parse_mrz_birth_date(
                record.birth_date,
                correct_future=self.config.correct_future_birth_dates,
            )
        except ValueError as e:
            raise ParseFailure("Birth date is not a valid date", field_name="birth_date", cause=e)
        try:
            expiry_date = parse_mrz_expiry_date(record.expiry_date)
        except ValueError as e:
            raise ParseFailure("Expiry date is not a valid date", field_name="expiry_date", cause=e)

        return ScannedDocumentData(
            document_type=document_type_for(record.document_code),
            issuing_state=record.issuing_state,
            last_name=record.surname,
            first_name=record.given_names,
            document_number=record.document_number,
            nationality=record.nationality,
            birth_date=birth_date,
            expiry_date=expiry_date,
            gender=gender_for(record.sex),
            personal_number=record.optional_data,
        )

    def _check_complete(self, data: ScannedDocumentData) -> None:
        missing = tuple(
            name
            for name, value in (
                ("document_number", data.document_number),
                ("last_name", data.last_name),
            )
            if not value
        )
        if missing:
            raise IncompleteDataFailure(
                "The document was read but some details are missing",
                missing_fields=missing,
            )
