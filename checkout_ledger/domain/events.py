"""Domain events handed to the event sink once their transaction commits"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from checkout_ledger.utils.date_utils import utc_now


@dataclass
class OrderPlaced:
    """An order (and optionally its installment plan) was committed"""

    order_id: str
    order_number: str
    customer_id: str
    payment_method: str
    final_amount: Decimal
    plan_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=utc_now)

    event_type = "ORDER_PLACED"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event": self.event_type,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "payment_method": self.payment_method,
            "final_amount": str(self.final_amount),
            "plan_id": self.plan_id,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass
class OrderCancelled:
    """An order was cancelled and its stock and coupon released"""

    order_id: str
    order_number: str
    customer_id: str
    payment_status: str
    occurred_at: datetime = field(default_factory=utc_now)

    event_type = "ORDER_CANCELLED"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event": self.event_type,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "payment_status": self.payment_status,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass
class InstallmentReminder:
    """A back-office user asked for a customer to be reminded of an unpaid installment"""

    installment_id: str
    plan_id: str
    order_number: str
    customer_id: str
    sequence_number: int
    due_date: date
    amount: Decimal
    overdue: bool
    occurred_at: datetime = field(default_factory=utc_now)

    event_type = "INSTALLMENT_REMINDER"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event": self.event_type,
            "installment_id": self.installment_id,
            "plan_id": self.plan_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "sequence_number": self.sequence_number,
            "due_date": self.due_date.isoformat(),
            "amount": str(self.amount),
            "overdue": self.overdue,
            "occurred_at": self.occurred_at.isoformat(),
        }
