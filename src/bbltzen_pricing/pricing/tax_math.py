"""
Inclusive-VAT arithmetic.

Every amount handled here is tax-inclusive (gross) unless a function name says
otherwise. Intermediate values keep full Decimal precision; only the returned
figure is rounded to cents.

    net = gross / (1 + rate / 100)
    tax = gross - net
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any, Optional

from ..errors import InvalidArgumentError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
DEFAULT_TAX_RATE = Decimal("22.00")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidArgumentError(f"Not a numeric amount: {value!r}") from exc


def round_money(value: Any) -> Decimal:
    """Quantize to two decimals (banker's rounding)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def _check_rate(rate_percent: Any) -> Decimal:
    rate = to_decimal(rate_percent)
    if rate < 0 or rate > HUNDRED:
        raise InvalidArgumentError(f"Tax rate must be between 0 and 100, got {rate}")
    return rate


def resolve_rate_or_default(rate_percent: Optional[Any], default: Decimal = DEFAULT_TAX_RATE) -> Decimal:
    """Return the rate when usable, otherwise the default (22.00).

    Never raises: an absent or malformed rate is not an error.
    """
    if rate_percent is None:
        return default
    try:
        return _check_rate(rate_percent)
    except InvalidArgumentError:
        return default


def _net(gross: Decimal, rate: Decimal) -> Decimal:
    return gross / (1 + rate / HUNDRED)


def gross_to_net(gross: Any, rate_percent: Any) -> Decimal:
    return round_money(_net(to_decimal(gross), _check_rate(rate_percent)))


def tax_portion(gross: Any, rate_percent: Any) -> Decimal:
    gross = to_decimal(gross)
    return round_money(gross - _net(gross, _check_rate(rate_percent)))


def net_to_gross(net: Any, rate_percent: Any) -> Decimal:
    return round_money(to_decimal(net) * (1 + _check_rate(rate_percent) / HUNDRED))


def imponibile(unit_price: Any, quantity: int, rate_percent: Any) -> Decimal:
    """Net amount of ``unit_price * quantity`` under an inclusive rate."""
    if quantity <= 0:
        raise InvalidArgumentError(f"Quantity must be greater than zero, got {quantity}")
    return gross_to_net(to_decimal(unit_price) * quantity, rate_percent)


def apply_discount(price: Any, discount_percent: Any) -> Decimal:
    percent = to_decimal(discount_percent)
    if percent < 0 or percent > HUNDRED:
        raise InvalidArgumentError(f"Discount percent must be between 0 and 100, got {percent}")
    price = to_decimal(price)
    return round_money(price - price * percent / HUNDRED)
