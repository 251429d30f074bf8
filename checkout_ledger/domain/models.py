"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from checkout_ledger.domain.exceptions import InvalidTenureError, ValidationError

ALLOWED_TENURES = (3, 6, 9, 12)


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    ONLINE = "online"
    INSTALLMENT = "installment"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


CANCELLABLE_ORDER_STATUSES = (OrderStatus.PENDING.value, OrderStatus.PROCESSING.value)


class PlanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"
    CANCELLED = "cancelled"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


@dataclass
class CartLine:
    """One entry of a customer's cart snapshot"""

    product_id: int
    quantity: int
    variant: Optional[str] = None


@dataclass
class LineItem:
    """Point-in-time price snapshot embedded in an order"""

    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    tax_percent: Decimal
    line_total: Decimal
    variant: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "tax_percent": str(self.tax_percent),
            "line_total": str(self.line_total),
            "variant": self.variant,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        return cls(
            product_id=data["product_id"],
            name=data["name"],
            unit_price=Decimal(data["unit_price"]),
            quantity=data["quantity"],
            tax_percent=Decimal(data["tax_percent"]),
            line_total=Decimal(data["line_total"]),
            variant=data.get("variant"),
        )


@dataclass
class ScheduledInstallment:
    """Single period of an amortization schedule"""

    sequence_number: int
    due_date: date
    amount: Decimal
    principal_portion: Decimal
    interest_portion: Decimal


@dataclass
class AmortizationSchedule:
    """Output of the amortization engine"""

    principal: Decimal
    annual_interest_rate: Decimal
    tenure: int
    periodic_installment: Decimal
    total_amount: Decimal
    total_interest: Decimal
    installments: List[ScheduledInstallment]


@dataclass
class InstallmentQuote:
    """Installment option offered for one tenure"""

    tenure: int
    annual_interest_rate: Decimal
    periodic_installment: Decimal
    total_amount: Decimal
    total_interest: Decimal


@dataclass
class CouponDiscount:
    """Result of a successful coupon redemption"""

    coupon_id: int
    code: str
    discount_amount: Decimal


@dataclass
class PlaceOrderCommand:
    """Validated input for order placement"""

    customer_id: str
    shipping_address: Dict[str, Any]
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    billing_address: Optional[Dict[str, Any]] = None
    coupon_code: Optional[str] = None
    installment_tenure: Optional[int] = None
    installment_rate: Optional[Decimal] = None
    notes: Optional[str] = None
    idempotency_key: Optional[str] = None

    def validate(self) -> None:
        if not self.customer_id:
            raise ValidationError("Customer is required")
        if not self.shipping_address:
            raise ValidationError("Shipping address is required")
        if self.payment_method == PaymentMethod.INSTALLMENT:
            if self.installment_tenure not in ALLOWED_TENURES:
                raise InvalidTenureError(
                    f"Valid installment tenure ({', '.join(map(str, ALLOWED_TENURES))} months) is required"
                )
            if self.installment_rate is not None and not (0 <= self.installment_rate <= 100):
                raise ValidationError("Installment rate must be between 0 and 100")
        if self.coupon_code is not None and not self.coupon_code.strip():
            raise ValidationError("Coupon code must not be blank")


@dataclass
class Page:
    """One page of a paginated listing"""

    items: List[Any]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.page_size else 0


@dataclass
class LedgerStats:
    """Back-office summary of the installment ledger"""

    total_plans: int
    active_plans: int
    completed_plans: int
    cancelled_plans: int
    pending_installments: int
    overdue_installments: int
    due_next_week: int
    amount_pending: Decimal
    amount_collected: Decimal
    plans_by_tenure: Dict[int, int] = field(default_factory=dict)


def page_offset(page: int, page_size: int, max_page_size: int = 100) -> int:
    """Row offset of a 1-based page"""
    if page < 1:
        raise ValidationError("Page must be at least 1")
    if page_size < 1 or page_size > max_page_size:
        raise ValidationError(f"Page size must be between 1 and {max_page_size}")
    return (page - 1) * page_size
