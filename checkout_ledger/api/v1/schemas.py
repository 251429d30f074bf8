"""Pydantic schemas for API request/response validation"""

from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from checkout_ledger.domain.events import InstallmentReminder
from checkout_ledger.domain.models import InstallmentQuote, InstallmentStatus, LedgerStats, LineItem, Page, PaymentMethod
from checkout_ledger.infrastructure.database.models import Installment, InstallmentPlan, Order
from checkout_ledger.utils.money import to_money

# Amounts go over the wire as strings with exactly two decimals
Money = Annotated[Decimal, PlainSerializer(lambda v: str(to_money(v)), return_type=str)]


class StrictRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")


# Requests


class AddressSchema(StrictRequest):
    """Postal address for shipping or billing"""

    full_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=32)
    line1: str = Field(..., min_length=1, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=2, max_length=2, description="ISO 3166-1 alpha-2")


class PlaceOrderRequest(StrictRequest):
    """Request body for POST /v1/orders"""

    shipping_address: AddressSchema
    billing_address: Optional[AddressSchema] = None
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    coupon_code: Optional[str] = Field(None, max_length=50)
    installment_tenure: Optional[int] = Field(None, description="Months; one of 3, 6, 9, 12")
    installment_rate: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2, description="Annual interest rate percent")
    notes: Optional[str] = Field(None, max_length=1000)
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=128)


class QuoteRequest(StrictRequest):
    """Request body for POST /v1/installments/quote"""

    amount: Decimal = Field(..., gt=0, decimal_places=2)


class MarkPaidRequest(StrictRequest):
    """Request body for POST /v1/admin/installments/{installment_id}/mark-paid"""

    payment_reference: Optional[str] = Field(None, max_length=128)
    paid_at: Optional[datetime] = None


# Responses


class LineItemSchema(BaseModel):
    product_id: int
    name: str
    unit_price: Money
    quantity: int
    tax_percent: Decimal
    line_total: Money
    variant: Optional[str] = None


class InstallmentSchema(BaseModel):
    """Single installment; pending ones past due are reported as overdue"""

    installment_id: str
    plan_id: str
    sequence_number: int
    due_date: date
    amount: Money
    principal_portion: Money
    interest_portion: Money
    status: str
    paid_at: Optional[str] = None
    payment_reference: Optional[str] = None

    @classmethod
    def from_model(cls, installment: Installment, today: date) -> "InstallmentSchema":
        status = installment.status
        if status == InstallmentStatus.PENDING.value and installment.due_date < today:
            status = InstallmentStatus.OVERDUE.value
        return cls(
            installment_id=str(installment.id),
            plan_id=str(installment.plan_id),
            sequence_number=installment.sequence_number,
            due_date=installment.due_date,
            amount=installment.amount,
            principal_portion=installment.principal_portion,
            interest_portion=installment.interest_portion,
            status=status,
            paid_at=installment.paid_at.isoformat() if installment.paid_at else None,
            payment_reference=installment.payment_reference,
        )


class PlanResponse(BaseModel):
    """Installment plan with its schedule"""

    plan_id: str
    order_id: str
    customer_id: str
    principal: Money
    annual_interest_rate: Decimal
    tenure: int
    periodic_installment: Money
    total_amount: Money
    total_interest: Money
    start_date: date
    next_due_date: Optional[date] = None
    status: str
    paid_count: int
    remaining_count: int
    installments: List[InstallmentSchema]
    created_at: str

    @classmethod
    def from_model(cls, plan: InstallmentPlan, today: date) -> "PlanResponse":
        return cls(
            plan_id=str(plan.id),
            order_id=str(plan.order_id),
            customer_id=plan.customer_id,
            principal=plan.principal,
            annual_interest_rate=plan.annual_interest_rate,
            tenure=plan.tenure,
            periodic_installment=plan.periodic_installment,
            total_amount=plan.total_amount,
            total_interest=plan.total_interest,
            start_date=plan.start_date,
            next_due_date=plan.next_due_date,
            status=plan.status,
            paid_count=plan.paid_count,
            remaining_count=plan.remaining_count,
            installments=[InstallmentSchema.from_model(inst, today) for inst in plan.installments],
            created_at=plan.created_at.isoformat(),
        )


class OrderResponse(BaseModel):
    """Order with its price snapshot and, for deferred payment, its plan"""

    order_id: str
    order_number: str
    customer_id: str
    order_status: str
    payment_status: str
    payment_method: str
    line_items: List[LineItemSchema]
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any]
    subtotal: Money
    shipping_cost: Money
    tax_amount: Money
    discount_amount: Money
    final_amount: Money
    installment_tenure: Optional[int] = None
    notes: Optional[str] = None
    plan: Optional[PlanResponse] = None
    created_at: str

    @classmethod
    def from_model(cls, order: Order, today: date, plan: Optional[InstallmentPlan] = None) -> "OrderResponse":
        plan = plan or order.plan
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=order.customer_id,
            order_status=order.order_status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            line_items=[LineItemSchema(**asdict(LineItem.from_dict(item))) for item in order.line_items],
            shipping_address=order.shipping_address,
            billing_address=order.billing_address,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            tax_amount=order.tax_amount,
            discount_amount=order.discount_amount,
            final_amount=order.final_amount,
            installment_tenure=order.installment_tenure,
            notes=order.notes,
            plan=PlanResponse.from_model(plan, today) if plan else None,
            created_at=order.created_at.isoformat(),
        )


class PageMeta(BaseModel):
    total: int
    page: int
    page_size: int
    total_pages: int


def page_fields(page: Page) -> Dict[str, int]:
    return {"total": page.total, "page": page.page, "page_size": page.page_size, "total_pages": page.total_pages}


class OrderListResponse(PageMeta):
    """Response for GET /v1/orders"""

    items: List[OrderResponse]


class PlanListResponse(PageMeta):
    """Response for GET /v1/installments/plans"""

    items: List[PlanResponse]


class InstallmentPageResponse(PageMeta):
    """Paginated installments for back-office listings"""

    items: List[InstallmentSchema]


class DueInstallmentsResponse(BaseModel):
    """Response for GET /v1/installments/upcoming and /overdue"""

    customer_id: str
    installments: List[InstallmentSchema]
    total_due: Money


class QuoteOption(BaseModel):
    tenure: int
    annual_interest_rate: Decimal
    periodic_installment: Money
    total_amount: Money
    total_interest: Money

    @classmethod
    def from_quote(cls, quote: InstallmentQuote) -> "QuoteOption":
        return cls(**asdict(quote))


class QuoteResponse(BaseModel):
    """Response for POST /v1/installments/quote"""

    amount: Money
    options: List[QuoteOption]


class LedgerStatsResponse(BaseModel):
    """Response for GET /v1/admin/installments/stats"""

    total_plans: int
    active_plans: int
    completed_plans: int
    cancelled_plans: int
    pending_installments: int
    overdue_installments: int
    due_next_week: int
    amount_pending: Money
    amount_collected: Money
    plans_by_tenure: Dict[int, int]

    @classmethod
    def from_stats(cls, stats: LedgerStats) -> "LedgerStatsResponse":
        return cls(**asdict(stats))


class MarkPaidResponse(BaseModel):
    """Response for POST /v1/admin/installments/{installment_id}/mark-paid"""

    installment: InstallmentSchema
    plan_status: str
    paid_count: int
    remaining_count: int
    next_due_date: Optional[date] = None


class ReminderResponse(BaseModel):
    """Response for POST /v1/admin/installments/{installment_id}/remind"""

    installment_id: str
    plan_id: str
    order_number: str
    customer_id: str
    sequence_number: int
    due_date: date
    amount: Money
    overdue: bool
    queued_at: str

    @classmethod
    def from_event(cls, reminder: InstallmentReminder) -> "ReminderResponse":
        return cls(
            installment_id=reminder.installment_id,
            plan_id=reminder.plan_id,
            order_number=reminder.order_number,
            customer_id=reminder.customer_id,
            sequence_number=reminder.sequence_number,
            due_date=reminder.due_date,
            amount=reminder.amount,
            overdue=reminder.overdue,
            queued_at=reminder.occurred_at.isoformat(),
        )
