"""Tests for core.primitives.money — minor units and percent rounding."""

from decimal import Decimal

import pytest

from core.primitives.money import percent_of, require_minor_units, round_minor, to_percent


class TestPercentOf:
    def test_exact(self):
        assert percent_of(2000, 10) == 200
        assert percent_of(1800, 5) == 90

    def test_half_up(self):
        assert percent_of(333, Decimal("12.5")) == 42  # 41.625
        assert percent_of(10, Decimal("25")) == 3  # 2.5

    def test_float_percent_goes_through_str(self):
        assert percent_of(1000, 0.1) == 1

    def test_rejects_non_int_amount(self):
        with pytest.raises(TypeError):
            percent_of(10.5, 10)


class TestConversions:
    def test_round_minor(self):
        assert round_minor(Decimal("0.5")) == 1
        assert round_minor(Decimal("1.49")) == 1

    def test_to_percent(self):
        assert to_percent("7.25") == Decimal("7.25")
        with pytest.raises(TypeError):
            to_percent(True)
        with pytest.raises(ValueError):
            to_percent("abc")

    def test_require_minor_units(self):
        assert require_minor_units(5, field_name="x") == 5
        assert require_minor_units(0, field_name="x") == 0
        with pytest.raises(ValueError):
            require_minor_units(0, field_name="x", allow_zero=False)
        with pytest.raises(ValueError):
            require_minor_units(-1, field_name="x")
        with pytest.raises(TypeError, match="minor units"):
            require_minor_units(1.5, field_name="x")
