"""Unit tests for coupon eligibility rules and discount calculation"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

from checkout_ledger.domain.coupons import calculate_discount, check_eligibility
from checkout_ledger.domain.exceptions import CouponRejectedError, CouponRejection

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def coupon(**overrides) -> SimpleNamespace:
    fields = dict(
        code="SAVE10",
        discount_type="percentage",
        discount_value=Decimal("10"),
        max_discount=None,
        min_order_amount=None,
        usage_limit=None,
        used_count=0,
        single_use_per_customer=False,
        is_active=True,
        valid_from=NOW - timedelta(days=1),
        valid_until=NOW + timedelta(days=1),
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def rejection_of(c, subtotal="1000", already_used=False) -> CouponRejection:
    with pytest.raises(CouponRejectedError) as exc_info:
        check_eligibility(c, Decimal(subtotal), NOW, already_used)
    return exc_info.value.reason


def test_eligible_coupon_passes():
    check_eligibility(coupon(), Decimal("1000"), NOW, already_used=False)


def test_inactive_coupon_rejected():
    assert rejection_of(coupon(is_active=False)) == CouponRejection.INACTIVE


def test_coupon_not_yet_valid():
    assert rejection_of(coupon(valid_from=NOW + timedelta(hours=1))) == CouponRejection.NOT_YET_VALID


def test_expired_coupon_rejected():
    assert rejection_of(coupon(valid_until=NOW - timedelta(seconds=1))) == CouponRejection.EXPIRED


def test_naive_validity_window_is_read_as_utc():
    """SQLite hands back naive datetimes"""
    c = coupon(valid_from=datetime(2026, 2, 1), valid_until=datetime(2026, 3, 1, 11, 0))
    assert rejection_of(c) == CouponRejection.EXPIRED


def test_usage_cap_reached():
    assert rejection_of(coupon(usage_limit=5, used_count=5)) == CouponRejection.USAGE_LIMIT_REACHED


def test_below_minimum_order_amount():
    assert rejection_of(coupon(min_order_amount=Decimal("1500")), subtotal="1000") == CouponRejection.BELOW_MINIMUM


def test_single_use_coupon_already_used():
    c = coupon(single_use_per_customer=True)
    assert rejection_of(c, already_used=True) == CouponRejection.ALREADY_USED


def test_first_failing_rule_wins():
    """An inactive, expired, exhausted coupon reports inactive"""
    c = coupon(is_active=False, valid_until=NOW - timedelta(days=2), usage_limit=1, used_count=1)
    assert rejection_of(c) == CouponRejection.INACTIVE


def test_percentage_discount():
    assert calculate_discount(coupon(), Decimal("1000.00")) == Decimal("100.00")


def test_percentage_discount_capped_by_max_discount():
    c = coupon(discount_value=Decimal("50"), max_discount=Decimal("200"))
    assert calculate_discount(c, Decimal("1000.00")) == Decimal("200.00")


def test_percentage_discount_rounds_half_up():
    c = coupon(discount_value=Decimal("15"))
    assert calculate_discount(c, Decimal("33.30")) == Decimal("5.00")


def test_flat_discount():
    c = coupon(discount_type="flat", discount_value=Decimal("75"))
    assert calculate_discount(c, Decimal("1000.00")) == Decimal("75.00")


def test_flat_discount_never_exceeds_subtotal():
    c = coupon(discount_type="flat", discount_value=Decimal("500"))
    assert calculate_discount(c, Decimal("120.00")) == Decimal("120.00")
