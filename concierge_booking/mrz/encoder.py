"""TD3 (passport) MRZ encoding through ``mrz.generator``.

Used to produce reference MRZs and to check that decoding preserves
what was encoded.
"""

from __future__ import annotations

from datetime import date
from typing import Tuple

from mrz.generator.td3 import TD3CodeGenerator


def encode_td3(
    *,
    surname: str,
    given_names: str,
    document_number: str,
    issuing_state: str,
    nationality: str,
    birth_date: date,
    sex: str,
    expiry_date: date,
    document_code: str = "P",
    personal_number: str = "",
) -> Tuple[str, str]:
    """Return the two MRZ lines for a passport.

    Raises:
        ValueError: If a field does not fit its MRZ position or is not
            a known country code.
    """
    code = TD3CodeGenerator(
        document_code,
        issuing_state,
        surname,
        given_names,
        document_number,
        nationality,
        birth_date.strftime("%y%m%d"),
        sex,
        expiry_date.strftime("%y%m%d"),
        personal_number,
    )
    first, second = str(code).split("\n")
    return first, second
