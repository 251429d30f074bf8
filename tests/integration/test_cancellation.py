"""Integration tests for order cancellation"""

import uuid

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from checkout_ledger.domain.exceptions import NotFoundError, OrderStateError
from checkout_ledger.domain.models import PaymentMethod, PlaceOrderCommand
from checkout_ledger.infrastructure.database.models import Coupon, CouponRedemption, Installment, Order
from checkout_ledger.services.installments import InstallmentQueryService

ADDRESS = {"full_name": "Ravi Kumar", "line1": "4 Park Street", "city": "Kolkata", "postal_code": "700016", "country": "IN"}


def place(coordinator, customer_id="cust_a", **fields):
    return coordinator.place_order(PlaceOrderCommand(customer_id=customer_id, shipping_address=ADDRESS, **fields))


def test_cancel_restores_stock_and_releases_coupon(db, coordinator, events, make_product, make_coupon, fill_cart, stock_of):
    shirt = make_product(name="Shirt", stock=5)
    jeans = make_product(name="Jeans", price="1200.00", stock=2)
    coupon = make_coupon(code="SAVE10", usage_limit=100, used_count=7, single_use_per_customer=True)
    fill_cart("cust_a", (shirt, 3), (jeans, 2))

    order = place(coordinator, coupon_code="SAVE10").order
    assert (stock_of(shirt.id), stock_of(jeans.id)) == (2, 0)
    assert db.get(Coupon, coupon.id).used_count == 8

    cancelled = coordinator.cancel_order(order.id, "cust_a")

    assert cancelled.order_status == "cancelled"
    assert cancelled.payment_status == "failed"
    assert (stock_of(shirt.id), stock_of(jeans.id)) == (5, 2)
    assert db.get(Coupon, coupon.id).used_count == 7

    redemption = db.query(CouponRedemption).one()
    assert redemption.is_used is False
    assert redemption.voided_at is not None
    assert [type(e).__name__ for e in events] == ["OrderPlaced", "OrderCancelled"]


def test_voided_single_use_coupon_can_be_redeemed_again(coordinator, make_product, make_coupon, fill_cart):
    product = make_product(stock=5)
    make_coupon(code="ONCE", single_use_per_customer=True)

    fill_cart("cust_a", (product, 1))
    order = place(coordinator, coupon_code="ONCE").order
    coordinator.cancel_order(order.id, "cust_a")

    fill_cart("cust_a", (product, 1))
    again = place(coordinator, coupon_code="ONCE").order
    assert again.discount_amount == Decimal("50.00")


def test_paid_order_is_refunded(db, coordinator, make_product, fill_cart):
    product = make_product(stock=1)
    fill_cart("cust_a", (product, 1))
    order = place(coordinator, payment_method=PaymentMethod.ONLINE).order
    order.payment_status = "paid"
    order.order_status = "processing"
    db.commit()

    cancelled = coordinator.cancel_order(order.id, "cust_a")

    assert cancelled.payment_status == "refunded"


@pytest.mark.parametrize("status", ["shipped", "delivered", "cancelled"])
def test_cannot_cancel_after_processing(db, coordinator, make_product, fill_cart, stock_of, status):
    product = make_product(stock=2)
    fill_cart("cust_a", (product, 1))
    order = place(coordinator).order
    order.order_status = status
    db.commit()

    with pytest.raises(OrderStateError):
        coordinator.cancel_order(order.id, "cust_a")

    assert stock_of(product.id) == 1
    assert db.get(Order, order.id).order_status == status


def test_cannot_cancel_another_customers_order(coordinator, make_product, fill_cart):
    product = make_product(stock=2)
    fill_cart("cust_a", (product, 1))
    order = place(coordinator).order

    with pytest.raises(NotFoundError):
        coordinator.cancel_order(order.id, "cust_b")


def test_cancel_unknown_order(coordinator):
    with pytest.raises(NotFoundError):
        coordinator.cancel_order(uuid.uuid4(), "cust_a")


def test_cancel_calls_off_unpaid_installments_only(db, coordinator, make_product, fill_cart):
    product = make_product(price="600.00", stock=1)
    fill_cart("cust_a", (product, 1))
    placed = place(coordinator, payment_method=PaymentMethod.INSTALLMENT, installment_tenure=3, installment_rate=Decimal("0"))
    plan_id = placed.plan.id
    first_installment = placed.plan.installments[0]

    InstallmentQueryService(db).settle_installment(first_installment.id, datetime.now(timezone.utc), "UPI-1")
    coordinator.cancel_order(placed.order.id, "cust_a")

    installments = db.query(Installment).filter(Installment.plan_id == plan_id).order_by(Installment.sequence_number).all()
    assert [i.status for i in installments] == ["paid", "cancelled", "cancelled"]

    plan = placed.order.plan
    assert plan.status == "cancelled"
    assert plan.paid_count == 1
    assert plan.remaining_count == 0
    assert plan.next_due_date is None
