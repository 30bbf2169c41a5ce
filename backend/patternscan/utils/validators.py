"""
Pattern Scan — Input Validators

Coercion helpers for untrusted scan payloads. Marker fields arrive from the
upstream analysis service as ints, floats, numeric strings or nothing at all;
these helpers turn each one into a typed value or ``None`` ("no opinion").
Only ``validate_scrip`` raises, so routes can map it to a 400 response.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

# Exchange symbols: letters, digits, and the usual separators (RELIANCE, BRK.B, M&M, BAJAJ-AUTO)
_SCRIP_RE = re.compile(r"^[A-Z0-9][A-Z0-9.&_\-]{0,19}$")


def validate_scrip(raw: str) -> str:
    """Clean and validate a symbol ("scrip").

    Returns the normalized symbol or raises ValueError.

    >>> validate_scrip(' reliance ')
    'RELIANCE'
    >>> validate_scrip('M&M')
    'M&M'
    """
    scrip = raw.strip().upper()
    if not scrip:
        raise ValueError("Symbol cannot be empty")
    if not _SCRIP_RE.match(scrip):
        raise ValueError(
            f"Invalid symbol '{scrip}'. Expected up to 20 letters, digits, "
            f"or the separators . & _ -"
        )
    return scrip


def coerce_float(value: Any) -> Optional[float]:
    """Coerce *value* to a finite float, or None.

    >>> coerce_float('101.5')
    101.5
    >>> coerce_float(float('nan')) is None
    True
    >>> coerce_float(True) is None
    True
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def coerce_int(value: Any) -> Optional[int]:
    """Coerce *value* to an int (unix seconds, ids), or None.

    Integral floats and numeric strings are accepted; fractional values are
    truncated toward zero.

    >>> coerce_int('1700000000')
    1700000000
    >>> coerce_int(12.0)
    12
    >>> coerce_int('abc') is None
    True
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    as_float = coerce_float(value)
    if as_float is None:
        return None
    return int(as_float)


def coerce_text(value: Any) -> Optional[str]:
    """Coerce *value* to a non-empty string, or None."""
    if value is None:
        return None
    text = str(value)
    return text if text else None
