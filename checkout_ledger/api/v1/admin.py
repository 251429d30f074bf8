"""Back-office installment endpoints: ledger stats, plan search, collection queues, settlement and reminders"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from checkout_ledger.api.dependencies import (
    get_installment_service,
    get_notifying_installment_service,
    get_request_id,
    parse_uuid,
)
from checkout_ledger.api.errors import to_http_exception
from checkout_ledger.api.v1.schemas import (
    InstallmentPageResponse,
    InstallmentSchema,
    LedgerStatsResponse,
    MarkPaidRequest,
    MarkPaidResponse,
    PlanListResponse,
    PlanResponse,
    ReminderResponse,
    page_fields,
)
from checkout_ledger.config import settings
from checkout_ledger.domain.exceptions import DomainException
from checkout_ledger.domain.models import PlanStatus
from checkout_ledger.services.installments import InstallmentQueryService
from checkout_ledger.utils.date_utils import today, utc_now

router = APIRouter()


@router.get("/admin/installments/stats", response_model=LedgerStatsResponse)
def ledger_stats(service: InstallmentQueryService = Depends(get_installment_service)):
    return LedgerStatsResponse.from_stats(service.ledger_stats(today()))


@router.get("/admin/installments/pending", response_model=InstallmentPageResponse)
def list_pending(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: InstallmentQueryService = Depends(get_installment_service),
):
    """All pending installments across customers, earliest due first"""
    result = service.list_pending(page, page_size)
    current = today()
    return InstallmentPageResponse(
        items=[InstallmentSchema.from_model(i, current) for i in result.items], **page_fields(result)
    )


@router.get("/admin/installments/overdue", response_model=InstallmentPageResponse)
def list_overdue(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: InstallmentQueryService = Depends(get_installment_service),
):
    current = today()
    result = service.list_all_overdue(current, page, page_size)
    return InstallmentPageResponse(
        items=[InstallmentSchema.from_model(i, current) for i in result.items], **page_fields(result)
    )


@router.post("/admin/installments/{installment_id}/mark-paid", response_model=MarkPaidResponse)
def mark_installment_paid(
    installment_id: str,
    request_body: MarkPaidRequest,
    request: Request,
    service: InstallmentQueryService = Depends(get_installment_service),
):
    """
    Record payment of one installment.

    The plan's paid/remaining counters and next due date roll forward, and
    the plan completes when its last installment is paid.
    """
    request_id = get_request_id(request)
    installment_uuid = parse_uuid(installment_id, "installment")

    try:
        installment = service.settle_installment(
            installment_uuid,
            paid_at=request_body.paid_at or utc_now(),
            payment_reference=request_body.payment_reference,
        )

    except DomainException as e:
        logging.warning(f"Installment settlement refused: {e}", extra={"request_id": request_id})
        raise to_http_exception(e)

    except Exception as e:
        logging.error(f"Unexpected error settling installment: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    plan = installment.plan
    return MarkPaidResponse(
        installment=InstallmentSchema.from_model(installment, today()),
        plan_status=plan.status,
        paid_count=plan.paid_count,
        remaining_count=plan.remaining_count,
        next_due_date=plan.next_due_date,
    )


@router.get("/admin/installments/plans", response_model=PlanListResponse)
def list_all_plans(
    status: Optional[PlanStatus] = Query(None, description="Filter by plan status"),
    customer_id: Optional[str] = Query(None, min_length=1),
    date_from: Optional[date] = Query(None, description="Created on or after this day"),
    date_to: Optional[date] = Query(None, description="Created on or before this day"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: InstallmentQueryService = Depends(get_installment_service),
):
    """Installment plans of every customer, newest first"""
    try:
        result = service.list_all_plans(
            status.value if status else None, customer_id, date_from, date_to, page, page_size
        )
    except DomainException as e:
        raise to_http_exception(e)
    current = today()
    return PlanListResponse(items=[PlanResponse.from_model(p, current) for p in result.items], **page_fields(result))


@router.get("/admin/installments/plans/{plan_id}", response_model=PlanResponse)
def get_plan(
    plan_id: str,
    service: InstallmentQueryService = Depends(get_installment_service),
):
    plan_uuid = parse_uuid(plan_id, "plan")
    try:
        plan = service.get_plan_admin(plan_uuid)
    except DomainException as e:
        raise to_http_exception(e)
    return PlanResponse.from_model(plan, today())


@router.post("/admin/installments/{installment_id}/remind", response_model=ReminderResponse, status_code=202)
def send_installment_reminder(
    installment_id: str,
    request: Request,
    service: InstallmentQueryService = Depends(get_notifying_installment_service),
):
    """
    Queue a payment reminder for an unpaid installment.

    The INSTALLMENT_REMINDER event goes to the notifier after the response;
    paid or cancelled installments answer 409.
    """
    request_id = get_request_id(request)
    installment_uuid = parse_uuid(installment_id, "installment")

    try:
        reminder = service.send_reminder(installment_uuid, today())
    except DomainException as e:
        logging.warning(f"Installment reminder refused: {e}", extra={"request_id": request_id})
        raise to_http_exception(e)

    return ReminderResponse.from_event(reminder)
