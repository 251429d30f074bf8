"""Domain-specific exceptions"""

from enum import Enum


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input is missing or malformed; raised before any mutation"""

    pass


class InvalidTenureError(ValidationError):
    """Installment tenure is not one of the offered periods"""

    pass


class NotFoundError(DomainException):
    """Requested record does not exist or belongs to another customer"""

    pass


class InsufficientStockError(DomainException):
    """Product does not have enough stock for the requested quantity"""

    def __init__(self, product_name: str, requested: int, available: int, variant: str | None = None):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        self.variant = variant
        label = f'"{product_name}"' + (f" ({variant})" if variant else "")
        super().__init__(
            f"Product {label} is out of stock or has insufficient quantity. "
            f"Requested: {requested}, available: {available}"
        )


class CouponRejection(str, Enum):
    """Reasons a coupon can be refused, in the order they are checked"""

    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    BELOW_MINIMUM = "below_minimum"
    ALREADY_USED = "already_used"


class CouponRejectedError(DomainException):
    """Coupon failed one of its redemption rules"""

    def __init__(self, reason: CouponRejection, message: str):
        self.reason = reason
        super().__init__(message)


class OrderStateError(DomainException):
    """Order is not in a status that allows the requested transition"""

    pass


class InstallmentStateError(DomainException):
    """Installment or its plan cannot be settled in its current status"""

    pass
