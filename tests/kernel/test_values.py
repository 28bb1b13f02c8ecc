"""Tests for exact decimal handling (fulfillment_kernel/domain/values.py)."""

from decimal import Decimal

import pytest

from fulfillment_kernel.domain.currency import CurrencyRegistry
from fulfillment_kernel.domain.values import (
    currency_places,
    from_minor_units,
    has_exact_precision,
    require_currency_precision,
    round_amount,
    to_decimal,
    to_minor_units,
)
from fulfillment_kernel.exceptions import ValidationError


class TestToDecimal:

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_int_and_string(self):
        assert to_decimal(200) == Decimal("200")
        assert to_decimal(" 1200.50 ") == Decimal("1200.50")

    def test_decimal_passthrough(self):
        value = Decimal("890.00")
        assert to_decimal(value) is value

    @pytest.mark.parametrize("bad", [True, False, None, [1], "abc", "NaN", "Infinity"])
    def test_rejects_non_numbers(self, bad):
        with pytest.raises(ValidationError) as exc_info:
            to_decimal(bad, field="quantity")
        assert exc_info.value.field == "quantity"


class TestRounding:

    def test_half_up(self):
        assert round_amount(Decimal("2.345")) == Decimal("2.35")
        assert round_amount(Decimal("2.344")) == Decimal("2.34")
        assert round_amount(Decimal("-2.345")) == Decimal("-2.35")

    def test_zero_places(self):
        assert round_amount(Decimal("2.5"), 0) == Decimal("3")

    def test_overflow_is_a_validation_error(self):
        with pytest.raises(ValidationError, match="too large"):
            round_amount(Decimal("1e30"))
        with pytest.raises(ValidationError):
            has_exact_precision(Decimal("1e27"), 2)
        assert round_amount(Decimal("1e20")) == Decimal("100000000000000000000.00")

    def test_exact_precision(self):
        assert has_exact_precision(Decimal("1.20"), 2)
        assert has_exact_precision(Decimal("1200"), 2)
        assert not has_exact_precision(Decimal("1.234"), 2)

    def test_require_currency_precision(self):
        assert require_currency_precision(Decimal("10.25"), "INR") == Decimal("10.25")
        with pytest.raises(ValidationError):
            require_currency_precision(Decimal("10.255"), "INR")
        with pytest.raises(ValidationError):
            require_currency_precision(Decimal("10.5"), "JPY")


class TestMinorUnits:

    def test_rupees_to_paise(self):
        assert to_minor_units(Decimal("374060.00")) == 37406000
        assert to_minor_units(Decimal("0.01")) == 1

    def test_sub_paise_rejected(self):
        with pytest.raises(ValidationError):
            to_minor_units(Decimal("1.005"))

    def test_zero_decimal_currency(self):
        assert to_minor_units(Decimal("500"), "JPY") == 500

    def test_from_minor_units(self):
        assert from_minor_units(37406000) == Decimal("374060.00")
        assert from_minor_units(1234, "BHD") == Decimal("1.234")

    @pytest.mark.parametrize("bad", [True, 1.5, "100"])
    def test_from_minor_units_requires_int(self, bad):
        with pytest.raises(ValidationError):
            from_minor_units(bad)


class TestCurrencyRegistry:

    def test_places(self):
        assert currency_places("INR") == 2
        assert currency_places("jpy") == 0
        assert currency_places("KWD") == 3

    def test_unknown_currency_defaults_to_two_places(self):
        assert currency_places("XYZ") == 2

    def test_validate(self):
        assert CurrencyRegistry.validate(" inr ") == "INR"
        with pytest.raises(ValueError):
            CurrencyRegistry.validate("RUPEE")
        with pytest.raises(ValueError):
            CurrencyRegistry.validate("XYZ")
