"""Customer installment endpoints: quotes, plans and due installments"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from checkout_ledger.api.dependencies import get_customer_id, get_installment_service, parse_uuid
from checkout_ledger.api.errors import to_http_exception
from checkout_ledger.api.v1.schemas import (
    DueInstallmentsResponse,
    InstallmentSchema,
    PlanListResponse,
    PlanResponse,
    QuoteOption,
    QuoteRequest,
    QuoteResponse,
    page_fields,
)
from checkout_ledger.config import settings
from checkout_ledger.domain.exceptions import DomainException
from checkout_ledger.domain.models import PlanStatus
from checkout_ledger.services.installments import InstallmentQueryService
from checkout_ledger.utils.date_utils import today
from checkout_ledger.utils.money import ZERO

router = APIRouter()


@router.post("/installments/quote", response_model=QuoteResponse)
def quote_installments(
    request_body: QuoteRequest,
    service: InstallmentQueryService = Depends(get_installment_service),
):
    """
    Quote every offered tenure for an amount.

    Returns:
        One option per tenure (3, 6, 9, 12 months) at the configured annual rate
    """
    try:
        quotes = service.quote(request_body.amount, today())
    except DomainException as e:
        raise to_http_exception(e)
    return QuoteResponse(amount=request_body.amount, options=[QuoteOption.from_quote(q) for q in quotes])


@router.get("/installments/plans", response_model=PlanListResponse)
def list_plans(
    status: Optional[PlanStatus] = Query(None, description="Filter by plan status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    customer_id: str = Depends(get_customer_id),
    service: InstallmentQueryService = Depends(get_installment_service),
):
    result = service.list_plans(customer_id, status.value if status else None, page, page_size)
    current = today()
    return PlanListResponse(items=[PlanResponse.from_model(p, current) for p in result.items], **page_fields(result))


@router.get("/installments/plans/{plan_id}", response_model=PlanResponse)
def get_plan(
    plan_id: str,
    customer_id: str = Depends(get_customer_id),
    service: InstallmentQueryService = Depends(get_installment_service),
):
    """Retrieve an installment plan with its full schedule"""
    plan_uuid = parse_uuid(plan_id, "plan")
    try:
        plan = service.get_plan(plan_uuid, customer_id)
    except DomainException as e:
        raise to_http_exception(e)
    return PlanResponse.from_model(plan, today())


@router.get("/installments/upcoming", response_model=DueInstallmentsResponse)
def list_upcoming(
    customer_id: str = Depends(get_customer_id),
    service: InstallmentQueryService = Depends(get_installment_service),
):
    """Pending installments due today or later, earliest first"""
    current = today()
    installments = service.list_upcoming(customer_id, current)
    return DueInstallmentsResponse(
        customer_id=customer_id,
        installments=[InstallmentSchema.from_model(i, current) for i in installments],
        total_due=sum((i.amount for i in installments), ZERO),
    )


@router.get("/installments/overdue", response_model=DueInstallmentsResponse)
def list_overdue(
    customer_id: str = Depends(get_customer_id),
    service: InstallmentQueryService = Depends(get_installment_service),
):
    """Pending installments whose due date has passed"""
    current = today()
    installments = service.list_overdue(customer_id, current)
    return DueInstallmentsResponse(
        customer_id=customer_id,
        installments=[InstallmentSchema.from_model(i, current) for i in installments],
        total_due=sum((i.amount for i in installments), ZERO),
    )
