"""
Unit tests for PayoutCalculator

Tests fee rounding, the price = fee + payout invariant, rate resolution and defaults.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.exceptions import PricingError, ValidationError
from app.services.payout_calculator import (
    COMMISSION_RATE,
    calculate_split,
    quote,
    resolve_price,
    to_money,
)


def expert_with_rates(rate_10min=None, rate_20min=None):
    return SimpleNamespace(id="expert-1", rate_10min=rate_10min, rate_20min=rate_20min)


class TestCalculateSplit:
    """Test fee/payout split at the 25% commission"""

    def test_commission_rate_is_25_percent(self):
        assert COMMISSION_RATE == Decimal("0.25")

    def test_forty_pounds(self):
        """Price 40.00 yields fee 10.00 and payout 30.00"""
        split = calculate_split(Decimal("40.00"))

        assert split.price_gbp == Decimal("40.00")
        assert split.platform_fee_gbp == Decimal("10.00")
        assert split.expert_payout_gbp == Decimal("30.00")

    def test_fifty_pounds(self):
        split = calculate_split(50)

        assert split.platform_fee_gbp == Decimal("12.50")
        assert split.expert_payout_gbp == Decimal("37.50")

    def test_fee_rounds_half_up(self):
        """0.25 * 33.33 = 8.3325 -> 8.33; 0.25 * 0.10 = 0.025 -> 0.03"""
        assert calculate_split("33.33").platform_fee_gbp == Decimal("8.33")
        assert calculate_split("0.10").platform_fee_gbp == Decimal("0.03")

    @pytest.mark.parametrize("price", ["0.01", "0.03", "1.01", "19.99", "33.33", "47.77", "99.99", "1234.57"])
    def test_sum_invariant_holds_exactly(self, price):
        """Payout is derived by subtraction so there is no rounding drift"""
        split = calculate_split(price)

        assert split.platform_fee_gbp + split.expert_payout_gbp == split.price_gbp
        assert split.expert_payout_gbp == split.price_gbp - split.platform_fee_gbp

    def test_float_input_has_no_binary_artefacts(self):
        split = calculate_split(19.99)

        assert split.price_gbp == Decimal("19.99")
        assert split.platform_fee_gbp + split.expert_payout_gbp == Decimal("19.99")

    def test_custom_commission_rate(self):
        split = calculate_split("40.00", commission_rate=Decimal("0.20"))

        assert split.platform_fee_gbp == Decimal("8.00")
        assert split.expert_payout_gbp == Decimal("32.00")

    @pytest.mark.parametrize("price", [0, "0.00", -5, "-0.01"])
    def test_non_positive_price_rejected(self, price):
        with pytest.raises(PricingError, match="must be positive"):
            calculate_split(price)

    def test_garbage_amount_rejected(self):
        with pytest.raises(PricingError, match="Invalid amount"):
            to_money("forty")

    def test_split_as_update_values(self):
        values = calculate_split("40").as_update_values()

        assert values == {
            "price_gbp": Decimal("40.00"),
            "platform_fee_gbp": Decimal("10.00"),
            "expert_payout_gbp": Decimal("30.00"),
        }


class TestResolvePrice:
    """Test rate selection by session duration"""

    def test_uses_10_minute_rate(self):
        assert resolve_price(expert_with_rates(35, 60), 10) == Decimal("35.00")

    def test_uses_20_minute_rate(self):
        assert resolve_price(expert_with_rates(35, 60), 20) == Decimal("60.00")

    def test_missing_rates_fall_back_to_defaults(self):
        expert = expert_with_rates()

        assert resolve_price(expert, 10) == Decimal("30.00")
        assert resolve_price(expert, 20) == Decimal("50.00")

    def test_zero_rate_is_not_treated_as_missing(self):
        with pytest.raises(PricingError):
            resolve_price(expert_with_rates(rate_20min=0), 20)

    def test_invalid_duration(self):
        with pytest.raises(ValidationError, match="Invalid duration"):
            resolve_price(expert_with_rates(30, 50), 30)

    def test_quote_combines_resolution_and_split(self):
        split = quote(expert_with_rates(rate_20min=Decimal("50")), 20)

        assert (split.price_gbp, split.platform_fee_gbp, split.expert_payout_gbp) == (
            Decimal("50.00"),
            Decimal("12.50"),
            Decimal("37.50"),
        )
