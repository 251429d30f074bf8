"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from checkout_ledger.api.dependencies import get_notification_client
from checkout_ledger.api.main import create_app
from checkout_ledger.domain.models import DiscountType
from checkout_ledger.infrastructure.database.models import Base, Coupon, Product
from checkout_ledger.infrastructure.database.repositories import CartRepository
from checkout_ledger.infrastructure.database.session import build_engine, get_db
from checkout_ledger.services.orders import OrderTransactionCoordinator

DEFAULT_RATES = {3: Decimal("0"), 6: Decimal("2"), 9: Decimal("3"), 12: Decimal("5")}


class RecordingNotifier:
    """Stands in for the webhook client; keeps every payload it is handed"""

    def __init__(self):
        self.payloads: List[dict] = []

    async def send_event(self, payload: dict) -> None:
        self.payloads.append(payload)


@pytest.fixture
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """File-backed SQLite database per test, so several sessions can share it"""
    engine = build_engine(f"sqlite:///{tmp_path / 'checkout.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create test database and session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(db: Session, notifier: RecordingNotifier) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_client] = lambda: notifier
    return TestClient(app)


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def coordinator(db: Session, events: list) -> OrderTransactionCoordinator:
    return OrderTransactionCoordinator(db, event_sink=events.append, installment_rates=DEFAULT_RATES)


@pytest.fixture
def make_product(db: Session) -> Callable[..., Product]:
    """Committed catalog product"""

    def _make(name: str = "Kurta", price: str = "500.00", stock: int = 10, **fields) -> Product:
        product = Product(
            name=name,
            price=Decimal(price),
            stock=stock,
            available=stock > 0,
            tax_percent=Decimal(fields.pop("tax_percent", "0")),
            discount_price=Decimal(fields.pop("discount_price")) if "discount_price" in fields else None,
            **fields,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_coupon(db: Session) -> Callable[..., Coupon]:
    """Committed coupon, valid from yesterday for thirty days unless overridden"""

    def _make(code: str = "SAVE10", discount_type: str = DiscountType.PERCENTAGE.value, value: str = "10", **fields) -> Coupon:
        now = datetime.now(timezone.utc)
        fields.setdefault("valid_from", now - timedelta(days=1))
        fields.setdefault("valid_until", now + timedelta(days=30))
        fields.setdefault("used_count", 0)
        coupon = Coupon(code=code, discount_type=discount_type, discount_value=Decimal(value), **fields)
        db.add(coupon)
        db.commit()
        return coupon

    return _make


@pytest.fixture
def fill_cart(db: Session) -> Callable[..., None]:
    """Put (product, quantity) lines into a customer's cart"""

    carts = CartRepository(db)

    def _fill(customer_id: str, *lines, variant: Optional[str] = None) -> None:
        for product, quantity in lines:
            carts.add_item(customer_id, product.id, quantity, variant)
        db.commit()

    return _fill


@pytest.fixture
def stock_of(db: Session) -> Callable[[int], int]:
    """Stock as currently committed, bypassing the identity map"""

    def _stock(product_id: int) -> int:
        return db.query(Product.stock).filter(Product.id == product_id).scalar()

    return _stock
