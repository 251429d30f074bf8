"""Integration tests for stock reservation"""

import pytest

from checkout_ledger.domain.exceptions import InsufficientStockError, NotFoundError, ValidationError
from checkout_ledger.infrastructure.database.models import Product
from checkout_ledger.infrastructure.database.repositories import ProductRepository
from checkout_ledger.services.inventory import InventoryLedger


def test_reserve_decrements_stock_and_snapshots_price(db, make_product, stock_of):
    product = make_product(name="Kurta", price="500.00", stock=3)

    reserved = InventoryLedger(db).reserve(product.id, 2)
    db.commit()

    assert reserved.name == "Kurta"
    assert reserved.remaining_stock == 1
    assert stock_of(product.id) == 1


def test_stock_of_n_serves_at_most_n_units(db, make_product, stock_of):
    product = make_product(stock=3)
    ledger = InventoryLedger(db)

    for _ in range(3):
        ledger.reserve(product.id, 1)
        db.commit()

    with pytest.raises(InsufficientStockError) as exc_info:
        ledger.reserve(product.id, 1)
    db.rollback()

    assert exc_info.value.available == 0
    assert stock_of(product.id) == 0
    assert db.get(Product, product.id).available is False


def test_concurrent_sessions_cannot_oversell_last_unit(session_factory, make_product):
    """A session that read the row before a competing commit still cannot take the last unit"""
    product = make_product(name="Last One", stock=1)

    first = session_factory()
    second = session_factory()
    try:
        stale = first.get(Product, product.id)
        assert stale.stock == 1

        InventoryLedger(second).reserve(product.id, 1)
        second.commit()

        assert ProductRepository(first).decrement_stock(product.id, 1) is False

        with pytest.raises(InsufficientStockError):
            InventoryLedger(first).reserve(product.id, 1)
        first.rollback()
    finally:
        first.close()
        second.close()

    check = session_factory()
    try:
        assert check.get(Product, product.id).stock == 0
    finally:
        check.close()


def test_restore_returns_units_and_availability(db, make_product, stock_of):
    product = make_product(stock=1)
    ledger = InventoryLedger(db)
    ledger.reserve(product.id, 1)
    db.commit()

    assert ledger.restore(product.id, 1) is True
    db.commit()

    assert stock_of(product.id) == 1
    assert db.get(Product, product.id).available is True


def test_restore_skips_missing_product(db):
    assert InventoryLedger(db).restore(9999, 2) is False


def test_reserve_unknown_product_hides_row_id(db):
    with pytest.raises(NotFoundError) as exc_info:
        InventoryLedger(db).reserve(9999, 1)

    assert "9999" not in str(exc_info.value)
    assert str(exc_info.value) == "A product in your cart is no longer available"


def test_reserve_rejects_non_positive_quantity(db, make_product):
    product = make_product()
    with pytest.raises(ValidationError):
        InventoryLedger(db).reserve(product.id, 0)
