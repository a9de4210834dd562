"""Machine Readable Zone (ICAO 9303) decoding.

- lines: isolating the MRZ block from raw OCR text
- parser: TD1 / TD2 / TD3 decoding through the ``mrz`` checkers
- encoder: TD3 encoding through ``mrz.generator``
"""

from .encoder import encode_td3
from .lines import candidate_lines, select_block
from .parser import MrzRecord, parse

__all__ = ["MrzRecord", "parse", "candidate_lines", "select_block", "encode_td3"]
