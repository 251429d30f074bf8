"""Coupon eligibility rules and discount calculation"""

from datetime import datetime
from decimal import Decimal

from checkout_ledger.domain.exceptions import CouponRejectedError, CouponRejection
from checkout_ledger.domain.models import DiscountType
from checkout_ledger.utils.date_utils import as_utc
from checkout_ledger.utils.money import to_money


def check_eligibility(coupon, order_subtotal: Decimal, now: datetime, already_used: bool) -> None:
    """
    Validate a coupon for an order; the first failing rule wins.

    Order of checks:
    1. Active flag
    2. Validity window (valid_from <= now <= valid_until)
    3. Global usage cap
    4. Minimum order amount
    5. Single use per customer

    Raises:
        CouponRejectedError: with the reason of the first failing rule
    """
    if not coupon.is_active:
        raise CouponRejectedError(CouponRejection.INACTIVE, f'Coupon "{coupon.code}" is not active')

    now = as_utc(now)
    if coupon.valid_from is not None and now < as_utc(coupon.valid_from):
        raise CouponRejectedError(CouponRejection.NOT_YET_VALID, f'Coupon "{coupon.code}" is not valid yet')
    if coupon.valid_until is not None and now > as_utc(coupon.valid_until):
        raise CouponRejectedError(CouponRejection.EXPIRED, f'Coupon "{coupon.code}" has expired')

    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise CouponRejectedError(CouponRejection.USAGE_LIMIT_REACHED, "Coupon usage limit reached")

    if coupon.min_order_amount is not None and order_subtotal < coupon.min_order_amount:
        raise CouponRejectedError(
            CouponRejection.BELOW_MINIMUM,
            f"Minimum order amount of {to_money(coupon.min_order_amount)} required for this coupon",
        )

    if coupon.single_use_per_customer and already_used:
        raise CouponRejectedError(CouponRejection.ALREADY_USED, "Coupon already used")


def calculate_discount(coupon, order_subtotal: Decimal) -> Decimal:
    """Flat value, or percentage of subtotal capped by max_discount; never more than the subtotal"""
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = to_money(order_subtotal * coupon.discount_value / Decimal(100))
        if coupon.max_discount is not None and discount > coupon.max_discount:
            discount = to_money(coupon.max_discount)
    else:
        discount = to_money(coupon.discount_value)

    return min(discount, order_subtotal)
