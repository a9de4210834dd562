"""ICAO 9303 MRZ decoding for TD1 (ID card), TD2 and TD3 (passport) layouts.

Decoding and check digit validation are done by the ``mrz`` package
checkers. This module prepares the isolated lines for them (OCR
confusions in numeric fields) and maps their report to MrzRecord and
ParseFailure. Dates stay YYMMDD and sex stays a single character;
normalization happens in the extraction service.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from mrz.checker.td1 import TD1CodeChecker
from mrz.checker.td2 import TD2CodeChecker
from mrz.checker.td3 import TD3CodeChecker

from ..domain.errors import ParseFailure
from .lines import TD1_LENGTH, TD2_LENGTH, TD3_LENGTH

_VALID_LINE = re.compile(r"^[A-Z0-9<]+$")

# OCR confusions that can only be wrong inside a numeric field.
_DIGIT_FIXES = str.maketrans(
    {"O": "0", "Q": "0", "D": "0", "I": "1", "L": "1", "Z": "2", "S": "5", "G": "6", "B": "8"}
)

# (line index, start, end) of the dates and check digits of each layout
_NUMERIC_SPANS: Dict[str, List[Tuple[int, int, int]]] = {
    "TD3": [(1, 9, 10), (1, 13, 20), (1, 21, 28), (1, 42, 44)],
    "TD2": [(1, 9, 10), (1, 13, 20), (1, 21, 28), (1, 35, 36)],
    "TD1": [(0, 14, 15), (1, 0, 7), (1, 8, 15), (1, 29, 30)],
}

_CHECKERS = {
    "TD3": TD3CodeChecker,
    "TD2": TD2CodeChecker,
    "TD1": TD1CodeChecker,
}

# Checker report entries for check digits, most specific first
_CHECK_DIGITS = (
    ("document number hash", "document_number"),
    ("birth date hash", "birth_date"),
    ("expiry date hash", "expiry_date"),
    ("optional data hash", "personal_number"),
    ("final hash", "composite"),
)


@dataclass(frozen=True, slots=True)
class MrzRecord:
    """Decoded MRZ fields.

    Attributes:
        format: 'TD1', 'TD2' or 'TD3'
        document_code: One or two letter document code (e.g. 'P', 'ID')
        issuing_state: Three letter issuing state, fillers removed
        surname: Primary identifier
        given_names: Secondary identifier, space separated
        document_number: Document number, fillers removed
        nationality: Three letter nationality, fillers removed
        birth_date: YYMMDD
        sex: 'M', 'F' or another raw character
        expiry_date: YYMMDD
        optional_data: Personal number or optional data, fillers removed
        invalid_checks: Fields whose check digit failed (lenient mode only)
    """

    format: str
    document_code: str
    issuing_state: str
    surname: str
    given_names: str
    document_number: str
    nationality: str
    birth_date: str
    sex: str
    expiry_date: str
    optional_data: str = ""
    invalid_checks: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.invalid_checks


def parse(lines: Sequence[str], strict: bool = True) -> MrzRecord:
    """Decode an MRZ block.

    Args:
        lines: Two (TD2/TD3) or three (TD1) MRZ lines.
        strict: Raise on a failed check digit instead of recording it.

    Raises:
        ParseFailure: If the layout is malformed or (strict) a check digit fails.
    """
    lines = [line.strip().upper() for line in lines]
    for line in lines:
        if not _VALID_LINE.match(line):
            raise ParseFailure(
                "MRZ contains characters outside A-Z, 0-9 and '<'",
                field_name="layout",
            )

    mrz_format = _layout(lines)
    lines = _fix_digits(lines, _NUMERIC_SPANS[mrz_format])
    try:
        checker = _CHECKERS[mrz_format]("\n".join(lines))
    except ValueError as e:
        raise ParseFailure(f"{mrz_format} MRZ could not be read", field_name="layout", cause=e)

    failed = _failed_check_digits(checker)
    if failed and strict:
        raise ParseFailure(
            f"Check digit mismatch in {failed[0].replace('_', ' ')}",
            field_name=failed[0],
        )

    surname, given_names = _names(checker)
    fields = checker.fields()
    return MrzRecord(
        format=mrz_format,
        document_code=fields.document_type,
        issuing_state=fields.country.replace("<", ""),
        surname=surname,
        given_names=given_names,
        document_number=fields.document_number.replace("<", ""),
        nationality=fields.nationality.replace("<", ""),
        birth_date=fields.birth_date,
        sex=fields.sex,
        expiry_date=fields.expiry_date,
        optional_data=(fields.optional_data + getattr(fields, "optional_data_2", "")).replace("<", ""),
        invalid_checks=failed,
    )


def _layout(lines: List[str]) -> str:
    lengths = [len(line) for line in lines]
    if lengths == [TD3_LENGTH] * 2:
        return "TD3"
    if lengths == [TD2_LENGTH] * 2:
        return "TD2"
    if lengths == [TD1_LENGTH] * 3:
        return "TD1"
    raise ParseFailure(
        f"Unrecognised MRZ layout with line lengths {lengths}",
        field_name="layout",
    )


def _failed_check_digits(checker) -> Tuple[str, ...]:
    falses = {description for description, _ in checker.report.falses}
    return tuple(name for description, name in _CHECK_DIGITS if description in falses)


def _names(checker) -> Tuple[str, str]:
    """Surname and given names, or empty strings for an empty name field."""
    report = checker.report
    if ("identifier", False) not in report.falses:
        fields = checker.fields()
        return fields.surname.strip(), fields.name.strip()
    if "empty identifier" in report.errors:
        return "", ""
    raise ParseFailure("The name in the MRZ could not be read", field_name="name")


def _fix_digits(lines: List[str], spans: List[Tuple[int, int, int]]) -> List[str]:
    fixed = [list(line) for line in lines]
    for index, start, end in spans:
        fixed[index][start:end] = list(lines[index][start:end].translate(_DIGIT_FIXES))
    return ["".join(chars) for chars in fixed]
