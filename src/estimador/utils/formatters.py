from __future__ import annotations

from decimal import Decimal


def format_brl(value: Decimal | str) -> str:
    """Format a numeric value as R$ X.XXX,XX."""
    d = Decimal(value)
    formatted = f"{d:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {formatted}"


def format_percent(value: Decimal | str) -> str:
    """Render a percentage without trailing zeros ("4.880" -> "4.88", "18.0" -> "18")."""
    d = Decimal(value)
    if d == d.to_integral_value():
        return str(d.quantize(Decimal(1)))
    return format(d.normalize(), "f")


def plain(value: Decimal) -> str:
    """Fixed-point string for a Decimal, never scientific notation."""
    return format(value, "f")
