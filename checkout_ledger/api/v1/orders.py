"""Order endpoints: place, list, fetch and cancel customer orders"""

import time
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from checkout_ledger.api.dependencies import (
    get_customer_id,
    get_notification_client,
    get_request_id,
    parse_uuid,
)
from checkout_ledger.api.errors import to_http_exception
from checkout_ledger.api.v1.schemas import OrderListResponse, OrderResponse, PlaceOrderRequest, page_fields
from checkout_ledger.config import settings
from checkout_ledger.domain.exceptions import DomainException
from checkout_ledger.domain.models import OrderStatus, PlaceOrderCommand
from checkout_ledger.infrastructure.clients.notifier import NotificationClient
from checkout_ledger.infrastructure.database.session import get_db
from checkout_ledger.infrastructure.observability.logging import log_order_placed, log_order_rejected
from checkout_ledger.services.orders import OrderTransactionCoordinator, rejection_reason
from checkout_ledger.utils.date_utils import today

router = APIRouter()


def build_coordinator(
    db: Session,
    background_tasks: Optional[BackgroundTasks] = None,
    notifier: Optional[NotificationClient] = None,
) -> OrderTransactionCoordinator:
    """Coordinator whose committed events are delivered to the notifier after the response"""
    event_sink = None
    if background_tasks is not None and notifier is not None:

        def event_sink(event):
            background_tasks.add_task(notifier.send_event, event.to_payload())

    return OrderTransactionCoordinator(
        db,
        event_sink=event_sink,
        shipping_fee=settings.shipping_flat_fee,
        installment_rates=settings.installment_rates,
        order_number_prefix=settings.order_number_prefix,
    )


@router.post("/orders", response_model=OrderResponse, status_code=201)
def place_order(
    request_body: PlaceOrderRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    response: Response,
    customer_id: str = Depends(get_customer_id),
    db: Session = Depends(get_db),
    notifier: NotificationClient = Depends(get_notification_client),
):
    """
    Place an order from the customer's cart.

    Flow:
    1. Reserve stock and price every cart line
    2. Apply the coupon, if any
    3. Create the installment plan for installment payment
    4. Commit, clear the cart and queue the ORDER_PLACED event

    A replay with a known idempotency_key returns the original order with 200.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    command = PlaceOrderCommand(
        customer_id=customer_id,
        shipping_address=request_body.shipping_address.model_dump(),
        billing_address=request_body.billing_address.model_dump() if request_body.billing_address else None,
        payment_method=request_body.payment_method,
        coupon_code=request_body.coupon_code,
        installment_tenure=request_body.installment_tenure,
        installment_rate=request_body.installment_rate,
        notes=request_body.notes,
        idempotency_key=request_body.idempotency_key,
    )

    try:
        placed = build_coordinator(db, background_tasks, notifier).place_order(command)

    except DomainException as e:
        log_order_rejected(request_id, customer_id, rejection_reason(e), str(e))
        raise to_http_exception(e)

    except Exception as e:
        logging.error(f"Unexpected error placing order: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    order = placed.order
    if placed.replayed:
        response.status_code = 200
    else:
        duration_ms = (time.time() - start_time) * 1000
        log_order_placed(request_id, customer_id, order.order_number, order.payment_method, order.final_amount, duration_ms)

    return OrderResponse.from_model(order, today(), placed.plan)


@router.get("/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by order status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    customer_id: str = Depends(get_customer_id),
    db: Session = Depends(get_db),
):
    """Customer's orders, newest first"""
    result = build_coordinator(db).list_orders(customer_id, status.value if status else None, page, page_size)
    current = today()
    return OrderListResponse(items=[OrderResponse.from_model(o, current) for o in result.items], **page_fields(result))


@router.get("/orders/number/{order_number}", response_model=OrderResponse)
def get_order_by_number(
    order_number: str,
    customer_id: str = Depends(get_customer_id),
    db: Session = Depends(get_db),
):
    try:
        order = build_coordinator(db).get_order_by_number(order_number, customer_id)
    except DomainException as e:
        raise to_http_exception(e)
    return OrderResponse.from_model(order, today())


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    customer_id: str = Depends(get_customer_id),
    db: Session = Depends(get_db),
):
    order_uuid = parse_uuid(order_id, "order")
    try:
        order = build_coordinator(db).get_order(order_uuid, customer_id)
    except DomainException as e:
        raise to_http_exception(e)
    return OrderResponse.from_model(order, today())


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    customer_id: str = Depends(get_customer_id),
    db: Session = Depends(get_db),
    notifier: NotificationClient = Depends(get_notification_client),
):
    """
    Cancel a pending or processing order.

    Stock is returned, the coupon use is released and any installment plan
    is cancelled along with its unpaid installments.
    """
    request_id = get_request_id(request)
    order_uuid = parse_uuid(order_id, "order")

    try:
        order = build_coordinator(db, background_tasks, notifier).cancel_order(order_uuid, customer_id)

    except DomainException as e:
        logging.warning(f"Order cancellation refused: {e}", extra={"request_id": request_id})
        raise to_http_exception(e)

    except Exception as e:
        logging.error(f"Unexpected error cancelling order: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return OrderResponse.from_model(order, today())
