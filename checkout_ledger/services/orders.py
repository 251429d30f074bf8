"""Order transaction coordinator: place and cancel orders as single atomic units"""

import logging
import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from checkout_ledger.domain.amortization import compute_schedule
from checkout_ledger.domain.events import OrderCancelled, OrderPlaced
from checkout_ledger.domain.exceptions import (
    CouponRejectedError,
    DomainException,
    InsufficientStockError,
    NotFoundError,
    OrderStateError,
    ValidationError,
)
from checkout_ledger.domain.models import (
    CANCELLABLE_ORDER_STATUSES,
    CartLine,
    LineItem,
    OrderStatus,
    Page,
    PaymentMethod,
    PaymentStatus,
    PlaceOrderCommand,
    PlanStatus,
    page_offset,
)
from checkout_ledger.infrastructure.database.models import InstallmentPlan, Order
from checkout_ledger.infrastructure.database.repositories import (
    CartRepository,
    OrderRepository,
    PlanRepository,
)
from checkout_ledger.infrastructure.observability.metrics import (
    orders_cancelled_counter,
    record_order_placed,
    record_order_rejected,
)
from checkout_ledger.services.coupons import CouponRedemptionGuard
from checkout_ledger.services.inventory import InventoryLedger
from checkout_ledger.utils.date_utils import utc_now
from checkout_ledger.utils.money import ZERO, to_money

logger = logging.getLogger(__name__)

EventSink = Callable[[object], None]

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_ATTEMPTS = 5


@dataclass
class PlacedOrder:
    """Committed order, its installment plan when deferred, and whether it was an idempotent replay"""

    order: Order
    plan: Optional[InstallmentPlan] = None
    replayed: bool = False


def rejection_reason(error: Exception) -> str:
    if isinstance(error, InsufficientStockError):
        return "insufficient_stock"
    if isinstance(error, CouponRejectedError):
        return "coupon"
    if isinstance(error, ValidationError):
        return "validation"
    if isinstance(error, DomainException):
        return "domain"
    return "error"


class OrderTransactionCoordinator:
    """
    Converts a cart into an order.

    Flow of place_order (one transaction, all-or-nothing):
    1. Validate the command and read the cart snapshot
    2. Reserve stock and snapshot the price of every line
    3. Roll up subtotal and per-line tax
    4. Redeem the coupon, if any (a bad coupon aborts the order)
    5. Compute the final amount
    6. Persist the order, then the installment plan for deferred payment
    7. Clear the cart and commit
    8. Emit OrderPlaced to the event sink
    """

    def __init__(
        self,
        db: Session,
        event_sink: Optional[EventSink] = None,
        shipping_fee: Decimal = ZERO,
        installment_rates: Optional[Dict[int, Decimal]] = None,
        order_number_prefix: str = "ORD",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.event_sink = event_sink
        self.shipping_fee = to_money(shipping_fee)
        self.installment_rates = installment_rates or {}
        self.order_number_prefix = order_number_prefix
        self.clock = clock

        self.inventory = InventoryLedger(db)
        self.coupons = CouponRedemptionGuard(db)
        self.carts = CartRepository(db)
        self.orders = OrderRepository(db)
        self.plans = PlanRepository(db)

    # Write side

    def place_order(self, command: PlaceOrderCommand) -> PlacedOrder:
        """
        Place an order from the customer's cart.

        Raises:
            ValidationError / InvalidTenureError: bad input, empty cart
            InsufficientStockError: a line cannot be served from stock
            CouponRejectedError: the supplied coupon fails a rule
            NotFoundError: a cart line references a missing product
        """
        command.validate()

        if command.idempotency_key:
            existing = self.orders.get_by_idempotency_key(command.customer_id, command.idempotency_key)
            if existing is not None:
                logger.info("Idempotent order replay", extra={"order_number": existing.order_number})
                return PlacedOrder(order=existing, plan=existing.plan, replayed=True)

        now = self.clock()
        try:
            cart = self.carts.get_snapshot(command.customer_id)
            if not cart:
                raise ValidationError("Cart is empty")

            line_items, subtotal, tax_amount = self._reserve_and_price(cart)

            discount_amount = ZERO
            coupon_id = None
            redemption = None
            if command.coupon_code:
                coupon_discount, redemption = self.coupons.redeem(
                    command.coupon_code, command.customer_id, subtotal, now
                )
                discount_amount = coupon_discount.discount_amount
                coupon_id = coupon_discount.coupon_id

            final_amount = subtotal + self.shipping_fee + tax_amount - discount_amount

            order = self.orders.create_order(
                order_number=self._generate_order_number(now),
                customer_id=command.customer_id,
                line_items=line_items,
                shipping_address=command.shipping_address,
                billing_address=command.billing_address or command.shipping_address,
                payment_method=command.payment_method.value,
                totals={
                    "subtotal": subtotal,
                    "shipping_cost": self.shipping_fee,
                    "tax_amount": tax_amount,
                    "discount_amount": discount_amount,
                    "final_amount": final_amount,
                },
                coupon_id=coupon_id,
                installment_tenure=(
                    command.installment_tenure if command.payment_method == PaymentMethod.INSTALLMENT else None
                ),
                notes=command.notes,
                idempotency_key=command.idempotency_key,
            )
            if redemption is not None:
                redemption.order_id = order.id

            plan = None
            if command.payment_method == PaymentMethod.INSTALLMENT:
                plan = self._create_plan(order, command, now)

            self.carts.clear(command.customer_id)
            self.db.commit()

        except IntegrityError:
            self.db.rollback()
            # A concurrent request with the same idempotency key won the insert
            if command.idempotency_key:
                existing = self.orders.get_by_idempotency_key(command.customer_id, command.idempotency_key)
                if existing is not None:
                    return PlacedOrder(order=existing, plan=existing.plan, replayed=True)
            record_order_rejected("error")
            raise
        except Exception as e:
            self.db.rollback()
            record_order_rejected(rejection_reason(e))
            raise

        record_order_placed(order.payment_method, order.final_amount, plan.tenure if plan else None)
        logger.info(
            "Order committed",
            extra={
                "order_number": order.order_number,
                "customer_id": order.customer_id,
                "payment_method": order.payment_method,
                "final_amount": str(order.final_amount),
            },
        )
        self._emit(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=order.customer_id,
                payment_method=order.payment_method,
                final_amount=order.final_amount,
                plan_id=str(plan.id) if plan else None,
            )
        )
        return PlacedOrder(order=order, plan=plan)

    def cancel_order(self, order_id: uuid.UUID, customer_id: str) -> Order:
        """
        Cancel a pending or processing order, releasing stock and coupon usage.

        Raises:
            NotFoundError: no such order for this customer
            OrderStateError: order already moved past processing or was cancelled
        """
        now = self.clock()
        try:
            order = self.orders.get_order_for_update(order_id, customer_id)
            if order is None:
                raise NotFoundError("Order not found")

            if order.order_status not in CANCELLABLE_ORDER_STATUSES:
                raise OrderStateError(f'Order cannot be cancelled in "{order.order_status}" status')

            for data in order.line_items:
                item = LineItem.from_dict(data)
                self.inventory.restore(item.product_id, item.quantity)

            self.coupons.void(order, now)

            order.order_status = OrderStatus.CANCELLED.value
            order.payment_status = (
                PaymentStatus.REFUNDED.value
                if order.payment_status == PaymentStatus.PAID.value
                else PaymentStatus.FAILED.value
            )

            plan = self.plans.get_plan_for_order(order.id)
            if plan is not None and plan.status == PlanStatus.ACTIVE.value:
                # Paid installments stay on record; only what is still owed is called off
                self.plans.cancel_pending_installments(plan.id)
                plan.status = PlanStatus.CANCELLED.value
                plan.next_due_date = None
                plan.remaining_count = 0

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        orders_cancelled_counter.inc()
        logger.info("Order cancelled", extra={"order_number": order.order_number, "customer_id": customer_id})
        self._emit(
            OrderCancelled(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=order.customer_id,
                payment_status=order.payment_status,
            )
        )
        return order

    # Read side

    def list_orders(self, customer_id: str, status: Optional[str] = None, page: int = 1, page_size: int = 10) -> Page:
        offset = page_offset(page, page_size)
        rows, total = self.orders.list_orders(customer_id, status, offset, page_size)
        return Page(items=rows, total=total, page=page, page_size=page_size)

    def get_order(self, order_id: uuid.UUID, customer_id: str) -> Order:
        order = self.orders.get_order(order_id, customer_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def get_order_by_number(self, order_number: str, customer_id: str) -> Order:
        order = self.orders.get_by_number(order_number, customer_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    # Internals

    def _reserve_and_price(self, cart: List[CartLine]) -> Tuple[List[LineItem], Decimal, Decimal]:
        line_items = []
        subtotal = ZERO
        tax_amount = ZERO

        for line in cart:
            reserved = self.inventory.reserve(line.product_id, line.quantity, line.variant)
            unit_price = to_money(reserved.unit_price)
            line_total = unit_price * line.quantity

            line_items.append(
                LineItem(
                    product_id=reserved.product_id,
                    name=reserved.name,
                    unit_price=unit_price,
                    quantity=line.quantity,
                    tax_percent=reserved.tax_percent,
                    line_total=line_total,
                    variant=line.variant,
                )
            )
            subtotal += line_total
            tax_amount += to_money(line_total * reserved.tax_percent / Decimal(100))

        return line_items, subtotal, tax_amount

    def _create_plan(self, order: Order, command: PlaceOrderCommand, now: datetime) -> InstallmentPlan:
        tenure = command.installment_tenure
        rate = command.installment_rate
        if rate is None:
            rate = self.installment_rates.get(tenure, ZERO)

        start_date = now.date()
        schedule = compute_schedule(order.final_amount, rate, tenure, start_date)
        return self.plans.create_plan(order.id, order.customer_id, schedule, start_date)

    def _generate_order_number(self, now: datetime) -> str:
        """Human-readable number such as ORD-20260119-7KQ2ZD, unique across orders"""
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            token = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(6))
            candidate = f"{self.order_number_prefix}-{now:%Y%m%d}-{token}"
            if not self.orders.order_number_exists(candidate):
                return candidate
        raise RuntimeError("Could not allocate a unique order number")

    def _emit(self, event: object) -> None:
        if self.event_sink is not None:
            self.event_sink(event)
