from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

_NON_DIGITS = re.compile(r"\D")


def clean_ncm(value: str | None) -> str:
    """Strip separators from an NCM code ("8708.29.99" -> "87082999")."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)


def normalize_uf(value: str | None) -> str:
    """Upper-case and trim a state code. Empty or None becomes ""."""
    if not value:
        return ""
    return value.strip().upper()


def parse_decimal(value: object, default: str = "0") -> Decimal:
    """Convert an XML/JSON scalar to Decimal.

    Accepts Decimal, int, float and numeric strings (comma or dot as the
    decimal separator). None, blanks, booleans and non-finite values fall
    back to *default*.
    """
    if value is None or isinstance(value, bool):
        return Decimal(default)
    if isinstance(value, Decimal):
        d = value
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return Decimal(default)
        try:
            d = Decimal(text)
        except InvalidOperation:
            return Decimal(default)
    if not d.is_finite():
        return Decimal(default)
    return d
