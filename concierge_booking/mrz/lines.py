"""Isolating the MRZ block from raw OCR text.

OCR over a full data page returns the printed text above the MRZ as
well. Only lines that look machine readable survive, and the trailing
block is taken as the MRZ.
"""

from __future__ import annotations

import re
from typing import List

TD1_LENGTH = 30
TD2_LENGTH = 36
TD3_LENGTH = 44

_WHITESPACE = re.compile(r"\s+")


def candidate_lines(raw_text: str, min_length: int = 20) -> List[str]:
    """Lines containing the filler character and long enough to be MRZ."""
    lines = []
    for line in raw_text.splitlines():
        line = _WHITESPACE.sub("", line).upper()
        if not line:
            continue
        if "<" not in line or len(line) < min_length:
            continue
        lines.append(line)
    return lines


def select_block(candidates: List[str]) -> List[str]:
    """The trailing MRZ block: three TD1 lines for ID cards, otherwise two lines."""
    if len(candidates) >= 3 and all(
        _fits(line, TD1_LENGTH) for line in candidates[-3:]
    ):
        return [normalize_width(line, TD1_LENGTH) for line in candidates[-3:]]

    if len(candidates) < 2:
        return []

    block = candidates[-2:]
    width = TD3_LENGTH if max(len(line) for line in block) > TD2_LENGTH + 2 else TD2_LENGTH
    return [normalize_width(line, width) for line in block]


def normalize_width(line: str, width: int) -> str:
    """Pad dropped trailing fillers, or trim surplus trailing fillers only."""
    if len(line) < width:
        return line.ljust(width, "<")
    if len(line) > width:
        surplus = line[width:]
        if set(surplus) == {"<"}:
            return line[:width]
    return line


def _fits(line: str, width: int) -> bool:
    return abs(len(line) - width) <= 2
