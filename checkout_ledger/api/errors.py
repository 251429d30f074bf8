"""Translation of domain exceptions into HTTP errors"""

from fastapi import HTTPException

from checkout_ledger.domain.exceptions import (
    CouponRejectedError,
    DomainException,
    InstallmentStateError,
    InsufficientStockError,
    NotFoundError,
    OrderStateError,
    ValidationError,
)


def to_http_exception(error: DomainException) -> HTTPException:
    """Map a domain failure to a status code; the message is safe to show to the customer"""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (InsufficientStockError, OrderStateError, InstallmentStateError)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, CouponRejectedError):
        return HTTPException(status_code=400, detail={"reason": error.reason.value, "message": str(error)})
    return HTTPException(status_code=500, detail="Internal server error")
