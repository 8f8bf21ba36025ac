"""Tests for inclusive-VAT arithmetic."""

from decimal import Decimal

import pytest

from bbltzen_pricing.errors import InvalidArgumentError
from bbltzen_pricing.pricing import tax_math


class TestGrossToNet:
    """Splitting a tax-inclusive amount."""

    def test_reduced_rate_example(self):
        """12.20 at 10% is 11.09 net and 1.11 tax."""
        assert tax_math.gross_to_net(Decimal("12.20"), Decimal("10")) == Decimal("11.09")
        assert tax_math.tax_portion(Decimal("12.20"), Decimal("10")) == Decimal("1.11")

    def test_standard_rate(self):
        assert tax_math.gross_to_net(Decimal("12.20"), Decimal("22")) == Decimal("10.00")
        assert tax_math.tax_portion(Decimal("12.20"), Decimal("22")) == Decimal("2.20")

    def test_zero_rate_is_identity(self):
        assert tax_math.gross_to_net("7.35", 0) == Decimal("7.35")
        assert tax_math.tax_portion("7.35", 0) == Decimal("0.00")

    @pytest.mark.parametrize("gross", ["0", "0.01", "1.99", "12.20", "99.99", "1234.56"])
    @pytest.mark.parametrize("rate", ["0", "4", "10", "22", "100"])
    def test_net_plus_tax_matches_gross(self, gross, rate):
        net = tax_math.gross_to_net(gross, rate)
        tax = tax_math.tax_portion(gross, rate)
        assert abs(net + tax - Decimal(gross)) <= Decimal("0.01")

    def test_accepts_floats_without_binary_noise(self):
        assert tax_math.gross_to_net(3.65, 22) == Decimal("2.99")

    @pytest.mark.parametrize("rate", ["-1", "100.01", "250"])
    def test_rate_outside_range_rejected(self, rate):
        with pytest.raises(InvalidArgumentError):
            tax_math.gross_to_net("10.00", rate)

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidArgumentError):
            tax_math.gross_to_net("ten", 22)


class TestRounding:
    def test_bankers_rounding(self):
        assert tax_math.round_money("50.005") == Decimal("50.00")
        assert tax_math.round_money("50.015") == Decimal("50.02")
        assert tax_math.round_money("2.675") == Decimal("2.68")

    def test_net_to_gross(self):
        assert tax_math.net_to_gross("10.00", "22") == Decimal("12.20")


class TestDefaultRate:
    def test_missing_rate_uses_default(self):
        assert tax_math.resolve_rate_or_default(None) == Decimal("22.00")

    def test_invalid_rate_uses_default(self):
        assert tax_math.resolve_rate_or_default("abc") == Decimal("22.00")
        assert tax_math.resolve_rate_or_default(Decimal("140")) == Decimal("22.00")

    def test_valid_rate_kept(self):
        assert tax_math.resolve_rate_or_default(Decimal("10")) == Decimal("10")

    def test_custom_default(self):
        assert tax_math.resolve_rate_or_default(None, Decimal("5")) == Decimal("5")


class TestImponibile:
    def test_quantity_multiplies_before_split(self):
        assert tax_math.imponibile(Decimal("6.10"), 2, 22) == Decimal("10.00")

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(InvalidArgumentError):
            tax_math.imponibile(Decimal("4.50"), quantity, 22)


class TestApplyDiscount:
    def test_percentage_off(self):
        assert tax_math.apply_discount("4.00", "25") == Decimal("3.00")
        assert tax_math.apply_discount("4.00", "0") == Decimal("4.00")
        assert tax_math.apply_discount("4.00", "100") == Decimal("0.00")

    @pytest.mark.parametrize("percent", ["-5", "100.5"])
    def test_percent_outside_range_rejected(self, percent):
        with pytest.raises(InvalidArgumentError):
            tax_math.apply_discount("4.00", percent)
