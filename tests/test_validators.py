from __future__ import annotations

from decimal import Decimal

import pytest

from estimador.utils.validators import clean_ncm, normalize_uf, parse_decimal


class TestCleanNcm:
    def test_strips_dots(self):
        assert clean_ncm("8708.29.99") == "87082999"

    def test_strips_other_separators(self):
        assert clean_ncm(" 8708-29 99 ") == "87082999"

    @pytest.mark.parametrize("value", [None, "", "..", "abc"])
    def test_empty(self, value):
        assert clean_ncm(value) == ""


class TestNormalizeUf:
    def test_upper_and_trim(self):
        assert normalize_uf(" sp ") == "SP"

    def test_none(self):
        assert normalize_uf(None) == ""


class TestParseDecimal:
    def test_string(self):
        assert parse_decimal("1048.80") == Decimal("1048.80")

    def test_comma_separator(self):
        assert parse_decimal("10,5") == Decimal("10.5")

    def test_float_goes_through_str(self):
        assert parse_decimal(4.88) == Decimal("4.88")

    @pytest.mark.parametrize("value", [None, "", "abc", True, "NaN", "Infinity"])
    def test_invalid_returns_default(self, value):
        assert parse_decimal(value) == Decimal("0")

    def test_custom_default(self):
        assert parse_decimal(None, default="18") == Decimal("18")
