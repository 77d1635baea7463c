"""
EPW code parsing module.
"""

from parsers.epw_decoder import (
    EPWDecoder,
    get_familia,
    get_modelo,
    get_acabamento,
    get_cor,
    get_comprimento,
)
from parsers.epw_segment_parser import SegmentParser, RawSegments

__all__ = [
    "EPWDecoder",
    "SegmentParser",
    "RawSegments",
    "get_familia",
    "get_modelo",
    "get_acabamento",
    "get_cor",
    "get_comprimento",
]
