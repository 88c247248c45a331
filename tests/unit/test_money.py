"""
Unit tests for the decimal money helpers.
"""

from decimal import Decimal

import pytest

from cartflow.core.errors import ValidationError
from cartflow.core.money import (
    money_str,
    percent_of,
    quantize_display,
    to_money,
    validate_percentage,
)


class TestToMoney:
    """Parsing of incoming amounts."""

    def test_float_keeps_its_written_value(self):
        assert to_money(19.99) == Decimal('19.99')

    def test_accepts_strings_and_ints(self):
        assert to_money('12.50') == Decimal('12.50')
        assert to_money(3) == Decimal('3')

    def test_zero_is_allowed(self):
        assert to_money(0) == Decimal('0')

    @pytest.mark.parametrize('value', [-1, '-0.01', Decimal('-5')])
    def test_negative_amounts_rejected(self, value):
        with pytest.raises(ValidationError):
            to_money(value, 'price')

    @pytest.mark.parametrize('value', ['NaN', 'Infinity', 'abc', True])
    def test_non_numbers_rejected(self, value):
        with pytest.raises(ValidationError):
            to_money(value)


class TestPercentage:
    """Discount percentage bounds."""

    @pytest.mark.parametrize('value', [0, 15, '33.33', 100])
    def test_bounds_inclusive(self, value):
        assert validate_percentage(value) == Decimal(str(value))

    @pytest.mark.parametrize('value', [-1, '100.01', 150, 'NaN'])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(ValidationError) as exc:
            validate_percentage(value)
        assert exc.value.detail['code'] == 'validation_error'


class TestRounding:
    """Internal precision and display rounding."""

    def test_percent_of_keeps_sub_cent_precision(self):
        assert percent_of(Decimal('9.99'), Decimal('15')) == Decimal('1.498500')

    def test_display_rounds_half_up(self):
        assert quantize_display(Decimal('0.005')) == Decimal('0.01')
        assert quantize_display(Decimal('8.4915')) == Decimal('8.49')

    def test_money_str(self):
        assert money_str(Decimal('40')) == '40.00'
