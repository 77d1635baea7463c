"""
Text utilities for EPW article codes.
"""

import re
from typing import Optional

# Codes from other catalogues: a hyphen anywhere, or three letters then only digits
FOREIGN_CODE_PATTERN = re.compile(r"^[A-Z]{3}\d+$")


def normalize_code(code: Optional[str]) -> str:
    """
    Normalize an article code for comparison and storage.

    - "  rsc23cl01 " → "RSC23CL01"
    - None → ""

    Args:
        code: Raw code as typed or received from the API

    Returns:
        Trimmed uppercase code (empty string for empty input)
    """
    if not code:
        return ""
    return code.strip().upper()


def is_foreign_code(code: str) -> bool:
    """
    Check whether a normalized code belongs to another code family.

    Used to refuse decoding up front so callers can fall back to the
    plain API description.

    Args:
        code: Normalized (uppercase, trimmed) code

    Returns:
        True if the code must not be decoded as EPW
    """
    if "-" in code:
        return True
    return FOREIGN_CODE_PATTERN.match(code) is not None
