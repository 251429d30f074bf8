"""Installment query service: plan reads, due/overdue listings, ledger stats, settlement and reminders"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from checkout_ledger.domain.amortization import quote_installment_options
from checkout_ledger.domain.events import InstallmentReminder
from checkout_ledger.domain.exceptions import InstallmentStateError, NotFoundError, ValidationError
from checkout_ledger.domain.models import (
    InstallmentQuote,
    InstallmentStatus,
    LedgerStats,
    Page,
    PlanStatus,
    page_offset,
)
from checkout_ledger.infrastructure.database.models import Installment, InstallmentPlan
from checkout_ledger.infrastructure.database.repositories import PlanRepository
from checkout_ledger.infrastructure.observability.metrics import (
    installment_reminders_counter,
    installment_settlements_counter,
)
from checkout_ledger.utils.date_utils import days_from, start_of_day

logger = logging.getLogger(__name__)


class InstallmentQueryService:
    """
    Read side of the installment ledger plus the settlement write path.

    Overdue is never stored by a job: an installment is overdue when it is
    still pending and its due date is before the "today" passed in.
    """

    def __init__(
        self,
        db: Session,
        installment_rates: Optional[Dict[int, Decimal]] = None,
        event_sink: Optional[Callable[[object], None]] = None,
    ):
        self.db = db
        self.plans = PlanRepository(db)
        self.installment_rates = installment_rates or {}
        self.event_sink = event_sink

    def quote(self, amount: Decimal, today: Optional[date] = None) -> List[InstallmentQuote]:
        return quote_installment_options(amount, self.installment_rates, today)

    # Customer reads

    def list_plans(self, customer_id: str, status: Optional[str] = None, page: int = 1, page_size: int = 10) -> Page:
        offset = page_offset(page, page_size)
        rows, total = self.plans.list_plans(customer_id, status, offset, page_size)
        return Page(items=rows, total=total, page=page, page_size=page_size)

    def get_plan(self, plan_id: uuid.UUID, customer_id: str) -> InstallmentPlan:
        plan = self.plans.get_plan(plan_id, customer_id)
        if plan is None:
            raise NotFoundError("Installment plan not found")
        return plan

    def list_upcoming(self, customer_id: str, today: date) -> List[Installment]:
        """Pending installments due today or later, earliest first"""
        return self.plans.customer_pending_installments(customer_id, due_on_or_after=today)

    def list_overdue(self, customer_id: str, today: date) -> List[Installment]:
        return self.plans.customer_pending_installments(customer_id, due_before=today)

    # Back-office reads

    def list_pending(self, page: int = 1, page_size: int = 10) -> Page:
        offset = page_offset(page, page_size)
        rows, total = self.plans.list_pending(offset, page_size)
        return Page(items=rows, total=total, page=page, page_size=page_size)

    def list_all_overdue(self, today: date, page: int = 1, page_size: int = 10) -> Page:
        offset = page_offset(page, page_size)
        rows, total = self.plans.list_pending(offset, page_size, due_before=today)
        return Page(items=rows, total=total, page=page, page_size=page_size)

    def list_all_plans(
        self,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Page:
        """Plans of every customer, newest first; date_from and date_to bound the creation day inclusively"""
        offset = page_offset(page, page_size)
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must not be after date_to")

        rows, total = self.plans.list_all_plans(
            offset,
            page_size,
            status=status,
            customer_id=customer_id,
            created_from=start_of_day(date_from) if date_from else None,
            created_before=start_of_day(days_from(date_to, 1)) if date_to else None,
        )
        return Page(items=rows, total=total, page=page, page_size=page_size)

    def get_plan_admin(self, plan_id: uuid.UUID) -> InstallmentPlan:
        plan = self.plans.get_plan(plan_id)
        if plan is None:
            raise NotFoundError("Installment plan not found")
        return plan

    def ledger_stats(self, today: date) -> LedgerStats:
        by_status = self.plans.count_plans_by_status()
        return LedgerStats(
            total_plans=sum(by_status.values()),
            active_plans=by_status.get(PlanStatus.ACTIVE.value, 0),
            completed_plans=by_status.get(PlanStatus.COMPLETED.value, 0),
            cancelled_plans=by_status.get(PlanStatus.CANCELLED.value, 0),
            pending_installments=self.plans.count_pending_between(),
            overdue_installments=self.plans.count_pending_between(due_before=today),
            due_next_week=self.plans.count_pending_between(due_from=today, due_before=days_from(today, 7)),
            amount_pending=self.plans.sum_amount(InstallmentStatus.PENDING.value),
            amount_collected=self.plans.sum_amount(InstallmentStatus.PAID.value),
            plans_by_tenure=self.plans.count_plans_by_tenure(),
        )

    # Settlement

    def settle_installment(
        self,
        installment_id: uuid.UUID,
        paid_at: datetime,
        payment_reference: Optional[str] = None,
    ) -> Installment:
        """
        Mark one installment paid and roll its plan forward.

        Raises:
            NotFoundError: unknown installment
            InstallmentStateError: installment not pending, or plan not active
        """
        try:
            located = self.plans.get_installment(installment_id)
            if located is None:
                raise NotFoundError("Installment not found")

            # Plan row first, then installment: the same order cancel_order takes.
            # Holding the plan lock serializes the paid/remaining recount per plan.
            plan = self.plans.get_plan_for_update(located.plan_id)
            installment = self.plans.get_installment_for_update(installment_id)

            if installment.status != InstallmentStatus.PENDING.value:
                raise InstallmentStateError(f'Installment is already "{installment.status}"')

            if plan.status != PlanStatus.ACTIVE.value:
                raise InstallmentStateError(f'Installment plan is "{plan.status}"')

            installment.status = InstallmentStatus.PAID.value
            installment.paid_at = paid_at
            installment.payment_reference = payment_reference
            self.db.flush()

            plan.paid_count = self.plans.count_installments(plan.id, InstallmentStatus.PAID.value)
            plan.remaining_count = plan.tenure - plan.paid_count

            next_installment = self.plans.next_pending_installment(plan.id)
            plan.next_due_date = next_installment.due_date if next_installment else None
            if plan.remaining_count == 0:
                plan.status = PlanStatus.COMPLETED.value

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        installment_settlements_counter.inc()
        logger.info(
            "Installment settled",
            extra={
                "plan_id": str(plan.id),
                "sequence_number": installment.sequence_number,
                "paid_count": plan.paid_count,
                "plan_status": plan.status,
            },
        )
        return installment

    # Reminders

    def send_reminder(self, installment_id: uuid.UUID, today: date) -> InstallmentReminder:
        """
        Queue a payment reminder for an unpaid installment of an active plan.

        Raises:
            NotFoundError: unknown installment
            InstallmentStateError: installment already paid or cancelled, or plan not active
        """
        installment = self.plans.get_installment(installment_id)
        if installment is None:
            raise NotFoundError("Installment not found")

        if installment.status != InstallmentStatus.PENDING.value:
            raise InstallmentStateError(f'Cannot send a reminder for a "{installment.status}" installment')

        plan = installment.plan
        if plan.status != PlanStatus.ACTIVE.value:
            raise InstallmentStateError(f'Installment plan is "{plan.status}"')

        reminder = InstallmentReminder(
            installment_id=str(installment.id),
            plan_id=str(plan.id),
            order_number=plan.order.order_number,
            customer_id=plan.customer_id,
            sequence_number=installment.sequence_number,
            due_date=installment.due_date,
            amount=installment.amount,
            overdue=installment.due_date < today,
        )
        if self.event_sink is not None:
            self.event_sink(reminder)

        installment_reminders_counter.inc()
        logger.info(
            "Installment reminder queued",
            extra={"plan_id": str(plan.id), "sequence_number": installment.sequence_number, "overdue": reminder.overdue},
        )
        return reminder
