"""Traveler record store - the travelers step's working data.

An ordered, index-addressed, immutable sequence of TravelerInfo. Every
operation returns a new store, so a scan running in the background
always merges into the records it was started against or is dropped.

Records are not validated while they are being edited; validate() is
the gate run before any booking is created. It also holds the number
of records to the number the offer was priced for.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Callable, Dict, Iterator, Optional, Sequence, Tuple

from ..dates import parse_date_input
from ..domain.errors import ValidationError
from ..domain.models import (
    DocumentType,
    Gender,
    Offer,
    ScannedDocumentData,
    TravelDocument,
    TravelerInfo,
    TravelerType,
)

logger = logging.getLogger(__name__)

_TEXT_FIELDS = (
    "first_name",
    "last_name",
    "nationality",
    "email",
    "phone_country_code",
    "phone",
)
_DOCUMENT_FIELDS = {
    "document_number": "number",
    "document_expiry_date": "expiry_date",
    "document_issuing_country": "issuing_country",
}
EDITABLE_FIELDS = frozenset(_TEXT_FIELDS + ("date_of_birth", "gender") + tuple(_DOCUMENT_FIELDS))

_GENDER_ALIASES = {"M": Gender.MALE, "F": Gender.FEMALE}

# row number and seat letter, e.g. 12A
_SEAT_NUMBER = re.compile(r"^[1-9][0-9]{0,2}[A-K]$")


def coerce_gender(value: Any) -> Gender:
    """Accept a Gender, its name, or the one-letter MRZ form."""
    if isinstance(value, Gender):
        return value
    text = str(value or "").strip().upper()
    if not text:
        return Gender.UNSPECIFIED
    if text in _GENDER_ALIASES:
        return _GENDER_ALIASES[text]
    try:
        return Gender[text]
    except KeyError:
        raise ValueError(f"Unknown gender {value!r}") from None


def _field_path(index: int, name: str) -> str:
    return f"travelers[{index}].{name}"


@dataclass(frozen=True, slots=True)
class TravelerRecordStore:
    """Immutable traveler records for one booking.

    Index 0 is the primary traveler, who carries the contact details
    and cannot be removed.
    """

    travelers: Tuple[TravelerInfo, ...] = ()

    @classmethod
    def for_offer(
        cls,
        offer: Offer,
        primary_email: str = "",
        primary_phone: str = "",
        phone_country_code: str = "1",
    ) -> TravelerRecordStore:
        """One blank record per traveler priced in the offer."""
        pricings = offer.traveler_pricings
        if pricings:
            seeds = [(tp.traveler_id, tp.traveler_type) for tp in pricings]
        else:
            seeds = [("1", TravelerType.ADULT)]

        travelers = []
        for position, (traveler_id, traveler_type) in enumerate(seeds):
            primary = position == 0
            travelers.append(
                TravelerInfo(
                    traveler_id=traveler_id,
                    traveler_type=traveler_type,
                    email=primary_email if primary else "",
                    phone_country_code=phone_country_code,
                    phone=primary_phone if primary else "",
                )
            )
        return cls(tuple(travelers))

    def __len__(self) -> int:
        return len(self.travelers)

    def __getitem__(self, index: int) -> TravelerInfo:
        return self.travelers[index]

    def __iter__(self) -> Iterator[TravelerInfo]:
        return iter(self.travelers)

    def uid_at(self, index: int) -> str:
        """Identity of the logical traveler currently at index."""
        self._check_index(index)
        return self.travelers[index].uid

    def update(self, index: int, field_name: str, value: Any) -> TravelerRecordStore:
        """Set one editable field of one traveler.

        Raises:
            ValidationError: If there is no traveler at index, the field is
                not editable or the value cannot be converted.
        """
        self._check_index(index)
        current = self.travelers[index]
        path = _field_path(index, field_name)
        if field_name not in EDITABLE_FIELDS:
            raise ValidationError(
                f"{field_name} cannot be edited",
                field_errors={path: "not an editable field"},
            )

        try:
            updated = self._assign(current, field_name, value)
        except ValueError as e:
            raise ValidationError(
                f"Invalid value for {field_name}",
                field_errors={path: str(e)},
                cause=e,
            )
        return self._with(index, updated)

    def remove(self, index: int) -> TravelerRecordStore:
        """Remove a traveler other than the primary one.

        Raises:
            ValidationError: If there is no traveler at index or index is
                the primary traveler.
        """
        self._check_index(index)
        if index == 0:
            raise ValidationError(
                "The primary traveler cannot be removed",
                field_errors={"travelers[0]": "primary traveler is required"},
            )
        return TravelerRecordStore(self.travelers[:index] + self.travelers[index + 1:])

    def apply_scan(self, index: int, data: ScannedDocumentData) -> TravelerRecordStore:
        """Merge scanned identity and document data into a traveler.

        Contact details are kept: a travel document never carries them.
        A scan without a readable sex keeps the gender already entered.
        """
        self._check_index(index)
        current = self.travelers[index]
        gender = current.gender if data.gender is Gender.UNSPECIFIED else data.gender
        document = TravelDocument(
            document_type=data.document_type,
            number=data.document_number,
            expiry_date=data.expiry_date,
            issuing_country=data.issuing_state,
            nationality=data.nationality,
        )
        merged = replace(
            current,
            first_name=data.first_name,
            last_name=data.last_name,
            date_of_birth=data.birth_date,
            gender=gender,
            nationality=data.nationality,
            document=document,
        )
        logger.debug("Scan merged", extra={"traveler_index": index})
        return self._with(index, merged)

    def select_seats(self, index: int, seats: Sequence[str]) -> TravelerRecordStore:
        """Set the traveler's seats, one per flight segment in order.

        An empty sequence clears the selection; seats are optional.

        Raises:
            ValidationError: If there is no traveler at index or a seat
                number is malformed.
        """
        self._check_index(index)
        normalized = tuple(str(seat).strip().upper() for seat in seats)
        invalid = [seat for seat in normalized if not _SEAT_NUMBER.match(seat)]
        if invalid:
            raise ValidationError(
                f"Invalid seat number {invalid[0]!r}",
                field_errors={
                    _field_path(index, "seats"): "expected a row and a seat letter, e.g. 12A"
                },
            )
        return self._with(index, replace(self.travelers[index], seats=normalized))

    def validate(self, offer: Optional[Offer] = None, today: Optional[date] = None) -> None:
        """Gate before booking: names and date of birth for everyone.

        Given the offer, the number of travelers must also match the
        travelers it was priced for, and nobody may hold more seats than
        the offer has segments.

        Raises:
            ValidationError: With one entry per missing or invalid field.
        """
        today = today or date.today()
        errors: Dict[str, str] = {}
        if offer is not None and len(self.travelers) != offer.expected_travelers:
            errors["travelers"] = (
                f"This offer is priced for {offer.expected_travelers} travelers, "
                f"{len(self.travelers)} were entered"
            )
        for index, traveler in enumerate(self.travelers):
            if offer is not None and len(traveler.seats) > max(1, len(offer.segments)):
                errors[_field_path(index, "seats")] = "More seats than flight segments"
            if not traveler.first_name.strip():
                errors[_field_path(index, "first_name")] = "First name is required"
            if not traveler.last_name.strip():
                errors[_field_path(index, "last_name")] = "Last name is required"
            if traveler.date_of_birth is None:
                errors[_field_path(index, "date_of_birth")] = "Date of birth is required"
            elif traveler.date_of_birth > today:
                errors[_field_path(index, "date_of_birth")] = "Date of birth is in the future"

        if errors:
            raise ValidationError(
                "Please fill in all traveler details",
                field_errors=errors,
            )

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.travelers):
            raise ValidationError(
                f"There is no traveler number {index + 1}",
                field_errors={f"travelers[{index}]": "no such traveler"},
            )

    def _with(self, index: int, traveler: TravelerInfo) -> TravelerRecordStore:
        travelers = list(self.travelers)
        travelers[index] = traveler
        return TravelerRecordStore(tuple(travelers))

    @staticmethod
    def _assign(traveler: TravelerInfo, field_name: str, value: Any) -> TravelerInfo:
        if field_name in _DOCUMENT_FIELDS:
            document = traveler.document or TravelDocument(
                document_type=DocumentType.PASSPORT, number=""
            )
            attribute = _DOCUMENT_FIELDS[field_name]
            if attribute == "expiry_date":
                value = parse_date_input(value)
            else:
                value = str(value or "").strip().upper()
            return replace(traveler, document=replace(document, **{attribute: value}))

        converters: Dict[str, Callable[[Any], Any]] = {
            "date_of_birth": parse_date_input,
            "gender": coerce_gender,
        }
        convert = converters.get(field_name, lambda v: str(v or "").strip())
        return replace(traveler, **{field_name: convert(value)})
