"""
Payout Calculator

Splits a session price into platform fee and expert payout.

The fee is rounded to pennies (half-up) and the payout is derived by
subtraction, so price == platform_fee + expert_payout holds exactly.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, Union

from app.exceptions import PricingError, ValidationError

logger = logging.getLogger(__name__)

COMMISSION_RATE = Decimal("0.25")

# Applied when an expert has not set a rate for the duration
DEFAULT_RATES_GBP = {
    10: Decimal("30.00"),
    20: Decimal("50.00"),
}

PENNY = Decimal("0.01")

Amount = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class PayoutSplit:
    """Economic split fixed at booking time"""

    price_gbp: Decimal
    platform_fee_gbp: Decimal
    expert_payout_gbp: Decimal

    def as_update_values(self) -> Dict[str, Decimal]:
        return {
            "price_gbp": self.price_gbp,
            "platform_fee_gbp": self.platform_fee_gbp,
            "expert_payout_gbp": self.expert_payout_gbp,
        }


def to_money(value: Amount) -> Decimal:
    """Convert an amount to a Decimal rounded to pennies"""
    try:
        # str() avoids binary float artefacts (e.g. 0.1 -> 0.1000000000000000055)
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise PricingError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise PricingError(f"Invalid amount: {value!r}")
    return amount.quantize(PENNY, rounding=ROUND_HALF_UP)


def calculate_split(price_gbp: Amount, commission_rate: Decimal = COMMISSION_RATE) -> PayoutSplit:
    """
    Split a price into platform fee and expert payout.

    Args:
        price_gbp: Session price
        commission_rate: Platform share, 0.25 by default

    Returns:
        PayoutSplit with fee = round2(price * rate), payout = price - fee

    Raises:
        PricingError: If the price is not positive
    """
    price = to_money(price_gbp)
    if price <= 0:
        raise PricingError(f"Session price must be positive, got {price}")

    platform_fee = (price * Decimal(commission_rate)).quantize(PENNY, rounding=ROUND_HALF_UP)
    expert_payout = price - platform_fee

    return PayoutSplit(
        price_gbp=price,
        platform_fee_gbp=platform_fee,
        expert_payout_gbp=expert_payout,
    )


def resolve_price(expert: Any, duration_minutes: int) -> Decimal:
    """
    Pick the expert's rate for a session duration.

    Falls back to the default rate when the expert has none set.

    Raises:
        ValidationError: If the duration is not offered
        PricingError: If the resolved price is not positive
    """
    if duration_minutes not in DEFAULT_RATES_GBP:
        raise ValidationError(
            f"Invalid duration: {duration_minutes}. Must be one of: {sorted(DEFAULT_RATES_GBP)}"
        )

    rate = expert.rate_10min if duration_minutes == 10 else expert.rate_20min
    if rate is None:
        logger.debug(f"Expert {expert.id} has no {duration_minutes}min rate, using default")
        rate = DEFAULT_RATES_GBP[duration_minutes]

    price = to_money(rate)
    if price <= 0:
        raise PricingError(f"Expert rate for {duration_minutes} minutes must be positive, got {price}")
    return price


def quote(expert: Any, duration_minutes: int) -> PayoutSplit:
    """Resolve the expert's price for a duration and split it"""
    return calculate_split(resolve_price(expert, duration_minutes))
