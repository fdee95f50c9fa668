"""
core/validators.py -- Pure field validators shared by the API models.

No I/O, no framework imports: the functions here are called from Pydantic
field validators in api/models.py and are unit-tested directly.

RUT (Rol Único Tributario): a 7-8 digit body followed by a check digit in
{0-9, K}. The check digit is computed mod 11 over the body, weighting digits
2,3,4,5,6,7,2,3,... from the right:
    11 - (sum % 11)  ->  11 => "0", 10 => "K", otherwise the digit itself.
"""

from __future__ import annotations

import math
import re
from typing import Any

_RUT_RE = re.compile(r"^\d{7,8}[0-9K]$")
_PHONE_RE = re.compile(r"^[0-9+\s-]{6,15}$")

# Largest value the INTEGER columns (ids, cupo_maximo) accept on every backend.
MAX_DB_INT = 2**31 - 1


# ---------------------------------------------------------------------------
# RUT
# ---------------------------------------------------------------------------


def clean_rut(rut: str) -> str:
    """Strip dots and hyphens and upper-case the check digit: '12.345.678-k' -> '12345678K'."""
    return rut.replace(".", "").replace("-", "").strip().upper()


def compute_rut_check_digit(body: str) -> str:
    """Return the mod-11 check digit ('0'-'9' or 'K') for a numeric RUT body."""
    total = 0
    multiplier = 2
    for digit in reversed(body):
        total += int(digit) * multiplier
        multiplier = 2 if multiplier == 7 else multiplier + 1
    expected = 11 - (total % 11)
    if expected == 11:
        return "0"
    if expected == 10:
        return "K"
    return str(expected)


def is_valid_rut(rut: str | None) -> bool:
    """Return True if rut has a 7-8 digit body and a matching check digit."""
    if not rut:
        return False
    clean = clean_rut(rut)
    if not _RUT_RE.match(clean):
        return False
    return compute_rut_check_digit(clean[:-1]) == clean[-1]


def format_rut(rut: str) -> str:
    """Return the canonical storage form 'NNNNNNNN-D' of an already valid RUT."""
    clean = clean_rut(rut)
    return f"{clean[:-1]}-{clean[-1]}"


# ---------------------------------------------------------------------------
# Phone
# ---------------------------------------------------------------------------


def is_valid_phone(phone: str) -> bool:
    """6-15 characters of digits, '+', spaces or hyphens."""
    return bool(_PHONE_RE.match(phone))


# ---------------------------------------------------------------------------
# Villa capacity
# ---------------------------------------------------------------------------


def coerce_capacity(value: Any) -> int:
    """Coerce a cupo_maximo input to an int. Missing or non-numeric -> 0 (unlimited).

    Raises ValueError for negative numbers and for values above MAX_DB_INT;
    those are rejected, not coerced.
    """
    if value is None or isinstance(value, bool):
        return int(value or 0)
    try:
        number = float(str(value).strip() or 0)
    except ValueError:
        return 0
    if not math.isfinite(number):
        return 0
    if number < 0:
        raise ValueError("El cupo máximo no puede ser negativo")
    if number > MAX_DB_INT:
        raise ValueError("El cupo máximo es demasiado grande")
    return int(number)
