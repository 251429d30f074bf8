"""Data access layer for catalog, cart, coupon, order and installment entities"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from checkout_ledger.domain.models import (
    AmortizationSchedule,
    CartLine,
    InstallmentStatus,
    LineItem,
    PlanStatus,
)
from checkout_ledger.infrastructure.database.models import (
    CartItem,
    Coupon,
    CouponRedemption,
    Installment,
    InstallmentPlan,
    Order,
    Product,
)
from checkout_ledger.utils.money import ZERO, to_money


class ProductRepository:
    """Repository for the product catalog's stock column"""

    def __init__(self, db: Session):
        self.db = db

    def get_for_update(self, product_id: int) -> Optional[Product]:
        """Locking read inside the current transaction (SELECT ... FOR UPDATE)"""
        return (
            self.db.query(Product)
            .filter(Product.id == product_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """
        Conditionally take quantity off the stock column.

        Returns False when the current stock is lower than quantity, so a
        concurrent writer that got there first can never drive stock negative.
        """
        updated = (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.stock >= quantity)
            .update(
                {
                    Product.stock: Product.stock - quantity,
                    Product.available: case((Product.stock - quantity > 0, True), else_=False),
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def increment_stock(self, product_id: int, quantity: int) -> bool:
        updated = (
            self.db.query(Product)
            .filter(Product.id == product_id)
            .update(
                {
                    Product.stock: Product.stock + quantity,
                    Product.available: case((Product.stock + quantity > 0, True), else_=False),
                },
                synchronize_session=False,
            )
        )
        return updated == 1


class CartRepository:
    """Cart provider: snapshot and clear a customer's cart"""

    def __init__(self, db: Session):
        self.db = db

    def add_item(self, customer_id: str, product_id: int, quantity: int, variant: Optional[str] = None) -> CartItem:
        item = CartItem(customer_id=customer_id, product_id=product_id, quantity=quantity, variant=variant)
        self.db.add(item)
        self.db.flush()
        return item

    def get_snapshot(self, customer_id: str) -> List[CartLine]:
        items = (
            self.db.query(CartItem)
            .filter(CartItem.customer_id == customer_id)
            .order_by(CartItem.id)
            .all()
        )
        return [CartLine(product_id=i.product_id, quantity=i.quantity, variant=i.variant) for i in items]

    def clear(self, customer_id: str) -> int:
        return (
            self.db.query(CartItem)
            .filter(CartItem.customer_id == customer_id)
            .delete(synchronize_session=False)
        )


class CouponRepository:
    """Repository for coupons and their redemption records"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_code_for_update(self, code: str) -> Optional[Coupon]:
        return (
            self.db.query(Coupon)
            .filter(Coupon.code == code)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def has_used_redemption(self, customer_id: str, coupon_id: int) -> bool:
        return (
            self.db.query(CouponRedemption.id)
            .filter(
                CouponRedemption.customer_id == customer_id,
                CouponRedemption.coupon_id == coupon_id,
                CouponRedemption.is_used.is_(True),
            )
            .first()
            is not None
        )

    def increment_usage(self, coupon_id: int) -> bool:
        """UPDATE ... WHERE used_count < usage_limit; False when the cap was hit concurrently"""
        updated = (
            self.db.query(Coupon)
            .filter(
                Coupon.id == coupon_id,
                (Coupon.usage_limit.is_(None)) | (Coupon.used_count < Coupon.usage_limit),
            )
            .update({Coupon.used_count: Coupon.used_count + 1}, synchronize_session=False)
        )
        return updated == 1

    def decrement_usage(self, coupon_id: int) -> bool:
        updated = (
            self.db.query(Coupon)
            .filter(Coupon.id == coupon_id, Coupon.used_count > 0)
            .update({Coupon.used_count: Coupon.used_count - 1}, synchronize_session=False)
        )
        return updated == 1

    def add_redemption(self, customer_id: str, coupon_id: int, redeemed_at: datetime) -> CouponRedemption:
        redemption = CouponRedemption(
            customer_id=customer_id,
            coupon_id=coupon_id,
            is_used=True,
            redeemed_at=redeemed_at,
        )
        self.db.add(redemption)
        self.db.flush()
        return redemption

    def get_used_redemption_for_order(self, order_id: uuid.UUID) -> Optional[CouponRedemption]:
        return (
            self.db.query(CouponRedemption)
            .filter(CouponRedemption.order_id == order_id, CouponRedemption.is_used.is_(True))
            .with_for_update()
            .first()
        )


class OrderRepository:
    """Repository for orders"""

    def __init__(self, db: Session):
        self.db = db

    def order_number_exists(self, order_number: str) -> bool:
        return self.db.query(Order.id).filter(Order.order_number == order_number).first() is not None

    def create_order(
        self,
        order_number: str,
        customer_id: str,
        line_items: List[LineItem],
        shipping_address: Dict[str, Any],
        billing_address: Dict[str, Any],
        payment_method: str,
        totals: Dict[str, Decimal],
        coupon_id: Optional[int] = None,
        installment_tenure: Optional[int] = None,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Order:
        """Persist order without committing"""
        db_order = Order(
            order_number=order_number,
            customer_id=customer_id,
            line_items=[item.to_dict() for item in line_items],
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            subtotal=totals["subtotal"],
            shipping_cost=totals["shipping_cost"],
            tax_amount=totals["tax_amount"],
            discount_amount=totals["discount_amount"],
            final_amount=totals["final_amount"],
            coupon_id=coupon_id,
            installment_tenure=installment_tenure,
            notes=notes,
            idempotency_key=idempotency_key,
        )
        self.db.add(db_order)
        self.db.flush()  # Get ID without committing
        return db_order

    def get_order(self, order_id: uuid.UUID, customer_id: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .filter(Order.id == order_id, Order.customer_id == customer_id)
            .first()
        )

    def get_order_for_update(self, order_id: uuid.UUID, customer_id: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .filter(Order.id == order_id, Order.customer_id == customer_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_by_number(self, order_number: str, customer_id: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .filter(Order.order_number == order_number, Order.customer_id == customer_id)
            .first()
        )

    def get_by_idempotency_key(self, customer_id: str, idempotency_key: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .filter(Order.customer_id == customer_id, Order.idempotency_key == idempotency_key)
            .first()
        )

    def list_orders(
        self,
        customer_id: str,
        status: Optional[str],
        offset: int,
        limit: int,
    ) -> Tuple[List[Order], int]:
        query = self.db.query(Order).filter(Order.customer_id == customer_id)
        if status:
            query = query.filter(Order.order_status == status)
        total = query.count()
        rows = query.order_by(Order.created_at.desc(), Order.order_number.desc()).offset(offset).limit(limit).all()
        return rows, total


class PlanRepository:
    """Repository for installment plans and their installments"""

    def __init__(self, db: Session):
        self.db = db

    def create_plan(
        self,
        order_id: uuid.UUID,
        customer_id: str,
        schedule: AmortizationSchedule,
        start_date: date,
    ) -> InstallmentPlan:
        """Create installment plan with its installments"""
        db_plan = InstallmentPlan(
            order_id=order_id,
            customer_id=customer_id,
            principal=schedule.principal,
            annual_interest_rate=schedule.annual_interest_rate,
            tenure=schedule.tenure,
            periodic_installment=schedule.periodic_installment,
            total_amount=schedule.total_amount,
            total_interest=schedule.total_interest,
            start_date=start_date,
            next_due_date=schedule.installments[0].due_date,
            status=PlanStatus.ACTIVE.value,
            paid_count=0,
            remaining_count=schedule.tenure,
        )
        self.db.add(db_plan)
        self.db.flush()

        # Create installments
        for inst in schedule.installments:
            db_installment = Installment(
                plan_id=db_plan.id,
                sequence_number=inst.sequence_number,
                due_date=inst.due_date,
                amount=inst.amount,
                principal_portion=inst.principal_portion,
                interest_portion=inst.interest_portion,
                status=InstallmentStatus.PENDING.value,
            )
            self.db.add(db_installment)

        self.db.flush()
        return db_plan

    def get_plan(self, plan_id: uuid.UUID, customer_id: Optional[str] = None) -> Optional[InstallmentPlan]:
        """Fetch plan with installments; scoped to customer when given"""
        query = self.db.query(InstallmentPlan).filter(InstallmentPlan.id == plan_id)
        if customer_id is not None:
            query = query.filter(InstallmentPlan.customer_id == customer_id)
        return query.first()

    def get_plan_for_order(self, order_id: uuid.UUID) -> Optional[InstallmentPlan]:
        return (
            self.db.query(InstallmentPlan)
            .filter(InstallmentPlan.order_id == order_id)
            .with_for_update()
            .first()
        )

    def get_plan_for_update(self, plan_id: uuid.UUID) -> Optional[InstallmentPlan]:
        return (
            self.db.query(InstallmentPlan)
            .filter(InstallmentPlan.id == plan_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def list_all_plans(
        self,
        offset: int,
        limit: int,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
    ) -> Tuple[List[InstallmentPlan], int]:
        """Plans across customers (back-office), newest first"""
        query = self.db.query(InstallmentPlan)
        if status:
            query = query.filter(InstallmentPlan.status == status)
        if customer_id:
            query = query.filter(InstallmentPlan.customer_id == customer_id)
        if created_from is not None:
            query = query.filter(InstallmentPlan.created_at >= created_from)
        if created_before is not None:
            query = query.filter(InstallmentPlan.created_at < created_before)
        total = query.count()
        rows = query.order_by(InstallmentPlan.created_at.desc()).offset(offset).limit(limit).all()
        return rows, total

    def list_plans(
        self,
        customer_id: str,
        status: Optional[str],
        offset: int,
        limit: int,
    ) -> Tuple[List[InstallmentPlan], int]:
        query = self.db.query(InstallmentPlan).filter(InstallmentPlan.customer_id == customer_id)
        if status:
            query = query.filter(InstallmentPlan.status == status)
        total = query.count()
        rows = query.order_by(InstallmentPlan.created_at.desc()).offset(offset).limit(limit).all()
        return rows, total

    def customer_pending_installments(
        self,
        customer_id: str,
        due_on_or_after: Optional[date] = None,
        due_before: Optional[date] = None,
    ) -> List[Installment]:
        """Pending installments of a customer's active plans, earliest due first"""
        query = (
            self.db.query(Installment)
            .join(InstallmentPlan, Installment.plan_id == InstallmentPlan.id)
            .filter(
                InstallmentPlan.customer_id == customer_id,
                InstallmentPlan.status == PlanStatus.ACTIVE.value,
                Installment.status == InstallmentStatus.PENDING.value,
            )
        )
        if due_on_or_after is not None:
            query = query.filter(Installment.due_date >= due_on_or_after)
        if due_before is not None:
            query = query.filter(Installment.due_date < due_before)
        return query.order_by(Installment.due_date.asc(), Installment.sequence_number.asc()).all()

    def list_pending(
        self,
        offset: int,
        limit: int,
        due_before: Optional[date] = None,
    ) -> Tuple[List[Installment], int]:
        """All pending installments across customers (back-office)"""
        query = self.db.query(Installment).filter(Installment.status == InstallmentStatus.PENDING.value)
        if due_before is not None:
            query = query.filter(Installment.due_date < due_before)
        total = query.count()
        rows = query.order_by(Installment.due_date.asc(), Installment.sequence_number.asc()).offset(offset).limit(limit).all()
        return rows, total

    def get_installment(self, installment_id: uuid.UUID) -> Optional[Installment]:
        return self.db.query(Installment).filter(Installment.id == installment_id).first()

    def get_installment_for_update(self, installment_id: uuid.UUID) -> Optional[Installment]:
        return (
            self.db.query(Installment)
            .filter(Installment.id == installment_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def count_installments(self, plan_id: uuid.UUID, status: str) -> int:
        return (
            self.db.query(func.count(Installment.id))
            .filter(Installment.plan_id == plan_id, Installment.status == status)
            .scalar()
        )

    def next_pending_installment(self, plan_id: uuid.UUID) -> Optional[Installment]:
        return (
            self.db.query(Installment)
            .filter(Installment.plan_id == plan_id, Installment.status == InstallmentStatus.PENDING.value)
            .order_by(Installment.due_date.asc(), Installment.sequence_number.asc())
            .first()
        )

    def cancel_pending_installments(self, plan_id: uuid.UUID) -> int:
        return (
            self.db.query(Installment)
            .filter(Installment.plan_id == plan_id, Installment.status == InstallmentStatus.PENDING.value)
            .update({Installment.status: InstallmentStatus.CANCELLED.value}, synchronize_session="fetch")
        )

    def count_plans_by_status(self) -> Dict[str, int]:
        rows = (
            self.db.query(InstallmentPlan.status, func.count(InstallmentPlan.id))
            .group_by(InstallmentPlan.status)
            .all()
        )
        return {status: count for status, count in rows}

    def count_plans_by_tenure(self) -> Dict[int, int]:
        rows = (
            self.db.query(InstallmentPlan.tenure, func.count(InstallmentPlan.id))
            .group_by(InstallmentPlan.tenure)
            .all()
        )
        return {tenure: count for tenure, count in rows}

    def count_pending_between(self, due_from: Optional[date] = None, due_before: Optional[date] = None) -> int:
        query = self.db.query(func.count(Installment.id)).filter(
            Installment.status == InstallmentStatus.PENDING.value
        )
        if due_from is not None:
            query = query.filter(Installment.due_date >= due_from)
        if due_before is not None:
            query = query.filter(Installment.due_date < due_before)
        return query.scalar()

    def sum_amount(self, status: str) -> Decimal:
        total = (
            self.db.query(func.coalesce(func.sum(Installment.amount), 0))
            .filter(Installment.status == status)
            .scalar()
        )
        return to_money(total) if total is not None else ZERO
