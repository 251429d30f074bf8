"""SQLAlchemy ORM models for the order and installment ledger"""

import uuid
from decimal import Decimal
from sqlalchemy import (
    Column,
    Text,
    Boolean,
    DateTime,
    Date,
    Integer,
    Numeric,
    ForeignKey,
    JSON,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship

from checkout_ledger.domain.models import (
    InstallmentStatus,
    OrderStatus,
    PaymentStatus,
    PlanStatus,
)
from checkout_ledger.utils.date_utils import utc_now

Base = declarative_base()

Money = Numeric(12, 2)


class Product(Base):
    """Catalog product; the ledger only mutates stock and the derived available flag"""

    __tablename__ = "product"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    price = Column(Money, nullable=False)
    discount_price = Column(Money, nullable=True)
    tax_percent = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    stock = Column(Integer, nullable=False, default=0)
    available = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    @property
    def unit_price(self) -> Decimal:
        return self.discount_price if self.discount_price is not None else self.price


class CartItem(Base):
    """Line of a customer's shopping cart"""

    __tablename__ = "cart_item"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Text, nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("product.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False)
    variant = Column(Text, nullable=True)
    added_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class Coupon(Base):
    """Discount code with usage accounting"""

    __tablename__ = "coupon"
    __table_args__ = (CheckConstraint("used_count >= 0", name="ck_coupon_used_count_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(Text, nullable=False, unique=True)
    discount_type = Column(Text, nullable=False)  # "percentage" or "flat"
    discount_value = Column(Money, nullable=False)
    max_discount = Column(Money, nullable=True)
    min_order_amount = Column(Money, nullable=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    single_use_per_customer = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class CouponRedemption(Base):
    """Record of a customer consuming a coupon; voided rather than deleted on cancellation"""

    __tablename__ = "coupon_redemption"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(Text, nullable=False, index=True)
    coupon_id = Column(Integer, ForeignKey("coupon.id"), nullable=False, index=True)
    order_id = Column(UUID(as_uuid=True), ForeignKey("customer_order.id"), nullable=True)
    is_used = Column(Boolean, nullable=False, default=True)
    redeemed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    voided_at = Column(DateTime(timezone=True), nullable=True)

    coupon = relationship("Coupon")


class Order(Base):
    """Customer order with an embedded line item snapshot"""

    __tablename__ = "customer_order"
    __table_args__ = (UniqueConstraint("customer_id", "idempotency_key", name="uq_order_idempotency"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_number = Column(Text, nullable=False, unique=True)
    customer_id = Column(Text, nullable=False, index=True)
    line_items = Column(JSON, nullable=False)
    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)
    payment_method = Column(Text, nullable=False)
    payment_status = Column(Text, nullable=False, default=PaymentStatus.PENDING.value)
    order_status = Column(Text, nullable=False, default=OrderStatus.PENDING.value)
    subtotal = Column(Money, nullable=False)
    shipping_cost = Column(Money, nullable=False)
    tax_amount = Column(Money, nullable=False)
    discount_amount = Column(Money, nullable=False)
    final_amount = Column(Money, nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupon.id"), nullable=True)
    installment_tenure = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    idempotency_key = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    coupon = relationship("Coupon")
    plan = relationship("InstallmentPlan", back_populates="order", uselist=False)


class InstallmentPlan(Base):
    """Installment (EMI) plan financing one order"""

    __tablename__ = "installment_plan"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("customer_order.id"), nullable=False, unique=True)
    customer_id = Column(Text, nullable=False, index=True)
    principal = Column(Money, nullable=False)
    annual_interest_rate = Column(Numeric(5, 2), nullable=False)
    tenure = Column(Integer, nullable=False)
    periodic_installment = Column(Money, nullable=False)
    total_amount = Column(Money, nullable=False)
    total_interest = Column(Money, nullable=False)
    start_date = Column(Date, nullable=False)
    next_due_date = Column(Date, nullable=True, index=True)
    status = Column(Text, nullable=False, default=PlanStatus.ACTIVE.value, index=True)
    paid_count = Column(Integer, nullable=False, default=0)
    remaining_count = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    order = relationship("Order", back_populates="plan")
    installments = relationship(
        "Installment",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="Installment.sequence_number",
    )


class Installment(Base):
    """Individual installment within an installment plan"""

    __tablename__ = "installment"
    __table_args__ = (UniqueConstraint("plan_id", "sequence_number", name="uq_installment_sequence"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("installment_plan.id", ondelete="CASCADE"), nullable=False)
    sequence_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    amount = Column(Money, nullable=False)
    principal_portion = Column(Money, nullable=False)
    interest_portion = Column(Money, nullable=False)
    status = Column(Text, nullable=False, default=InstallmentStatus.PENDING.value, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    plan = relationship("InstallmentPlan", back_populates="installments")
