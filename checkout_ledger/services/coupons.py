"""Coupon redemption guard: validate, reserve and void coupon usage within an order transaction"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from checkout_ledger.domain.coupons import calculate_discount, check_eligibility
from checkout_ledger.domain.exceptions import CouponRejectedError, CouponRejection
from checkout_ledger.domain.models import CouponDiscount
from checkout_ledger.infrastructure.database.models import CouponRedemption, Order
from checkout_ledger.infrastructure.database.repositories import CouponRepository
from checkout_ledger.infrastructure.observability.metrics import record_coupon_outcome

logger = logging.getLogger(__name__)


class CouponRedemptionGuard:
    """
    Applies coupon rules and reserves one redemption.

    The usage increment and the redemption record are written to the
    caller's session and only become visible when the enclosing order
    transaction commits.
    """

    def __init__(self, db: Session):
        self.coupons = CouponRepository(db)

    def redeem(self, code: str, customer_id: str, order_subtotal: Decimal, now: datetime) -> tuple[CouponDiscount, CouponRedemption]:
        """
        Validate a coupon for this customer and order subtotal and reserve a use.

        Returns:
            The discount to apply and the pending redemption record, which the
            coordinator links to the order once it has an id.

        Raises:
            CouponRejectedError: first rule the coupon fails
        """
        try:
            coupon = self.coupons.get_by_code_for_update(code.strip())
            if coupon is None:
                raise CouponRejectedError(CouponRejection.NOT_FOUND, f'Coupon "{code}" does not exist')

            already_used = (
                coupon.single_use_per_customer and self.coupons.has_used_redemption(customer_id, coupon.id)
            )
            check_eligibility(coupon, order_subtotal, now, already_used)
            discount = calculate_discount(coupon, order_subtotal)

            if not self.coupons.increment_usage(coupon.id):
                raise CouponRejectedError(CouponRejection.USAGE_LIMIT_REACHED, "Coupon usage limit reached")
        except CouponRejectedError as e:
            record_coupon_outcome(e.reason.value)
            logger.info("Coupon rejected", extra={"customer_id": customer_id, "reason": e.reason.value})
            raise

        redemption = self.coupons.add_redemption(customer_id, coupon.id, now)
        record_coupon_outcome("redeemed")
        return CouponDiscount(coupon_id=coupon.id, code=coupon.code, discount_amount=discount), redemption

    def void(self, order: Order, voided_at: datetime) -> bool:
        """Unmark the order's redemption and give the use back to the coupon"""
        if order.coupon_id is None:
            return False

        redemption = self.coupons.get_used_redemption_for_order(order.id)
        if redemption is None:
            logger.warning("No active coupon redemption for order", extra={"order_number": order.order_number})
            return False

        redemption.is_used = False
        redemption.voided_at = voided_at
        self.coupons.decrement_usage(order.coupon_id)
        record_coupon_outcome("voided")
        return True
