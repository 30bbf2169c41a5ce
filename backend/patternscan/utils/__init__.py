# Shared utilities — coercion and validation of untrusted payload values
from patternscan.utils.validators import coerce_float, coerce_int, coerce_text, validate_scrip

__all__ = [
    "coerce_float",
    "coerce_int",
    "coerce_text",
    "validate_scrip",
]
