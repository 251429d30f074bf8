"""Inventory ledger: reserve and restore product stock inside an order transaction"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from checkout_ledger.domain.exceptions import InsufficientStockError, NotFoundError, ValidationError
from checkout_ledger.infrastructure.database.repositories import ProductRepository
from checkout_ledger.infrastructure.observability.metrics import stock_shortfall_counter

logger = logging.getLogger(__name__)


@dataclass
class ReservedProduct:
    """Catalog snapshot taken while the product row was locked"""

    product_id: int
    name: str
    unit_price: Decimal
    tax_percent: Decimal
    remaining_stock: int


class InventoryLedger:
    """
    Check-and-decrement of per-product stock.

    Never commits; the caller's transaction decides whether a reservation
    survives.
    """

    def __init__(self, db: Session):
        self.products = ProductRepository(db)
        self.db = db

    def reserve(self, product_id: int, quantity: int, variant: Optional[str] = None) -> ReservedProduct:
        """
        Take quantity units of a product out of stock.

        Raises:
            ValidationError: quantity is not positive
            NotFoundError: product does not exist
            InsufficientStockError: current stock is lower than quantity
        """
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 1")

        product = self.products.get_for_update(product_id)
        if product is None:
            logger.warning("Reservation for missing product", extra={"product_id": product_id})
            raise NotFoundError("A product in your cart is no longer available")

        reserved = product.available and product.stock >= quantity
        if reserved:
            reserved = self.products.decrement_stock(product_id, quantity)

        # Re-read so the snapshot (or the error) reports the stock a concurrent writer left behind
        self.db.refresh(product)
        if not reserved:
            stock_shortfall_counter.inc()
            raise InsufficientStockError(product.name, quantity, product.stock, variant)

        logger.debug(
            "Stock reserved",
            extra={"product_id": product_id, "quantity": quantity, "remaining_stock": product.stock},
        )
        return ReservedProduct(
            product_id=product.id,
            name=product.name,
            unit_price=product.unit_price,
            tax_percent=product.tax_percent or Decimal("0"),
            remaining_stock=product.stock,
        )

    def restore(self, product_id: int, quantity: int) -> bool:
        """Put quantity back; products removed from the catalog are skipped"""
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 1")

        restored = self.products.get_for_update(product_id) is not None
        if restored:
            restored = self.products.increment_stock(product_id, quantity)

        if not restored:
            logger.warning("Stock restore skipped, product missing", extra={"product_id": product_id, "quantity": quantity})
            return False
        return True
