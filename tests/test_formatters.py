from __future__ import annotations

from decimal import Decimal

from estimador.utils.formatters import format_brl, format_percent, plain


class TestFormatBrl:
    def test_simple(self):
        assert format_brl("1000") == "R$ 1.000,00"

    def test_decimal_rounds_to_cents(self):
        assert format_brl(Decimal("188.784")) == "R$ 188,78"

    def test_negative(self):
        assert format_brl(Decimal("-250")) == "R$ -250,00"

    def test_large(self):
        assert format_brl("1234567.89") == "R$ 1.234.567,89"


class TestFormatPercent:
    def test_drops_trailing_zeros(self):
        assert format_percent(Decimal("4.880")) == "4.88"

    def test_integral(self):
        assert format_percent(Decimal("18.0")) == "18"

    def test_integral_with_exponent(self):
        assert format_percent(Decimal("1E+2")) == "100"


class TestPlain:
    def test_no_scientific_notation(self):
        assert plain(Decimal("1000") / Decimal("0.80")) == "1250"
