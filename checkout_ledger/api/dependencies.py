"""Dependency injection for FastAPI endpoints"""

import uuid

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from checkout_ledger.config import settings
from checkout_ledger.infrastructure.clients.notifier import NotificationClient
from checkout_ledger.infrastructure.database.session import get_db
from checkout_ledger.services.installments import InstallmentQueryService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_customer_id(x_customer_id: str = Header(..., min_length=1)) -> str:
    """Customer identity as forwarded by the upstream auth gateway"""
    return x_customer_id


def get_notification_client() -> NotificationClient:
    """Provide order event webhook client instance"""
    return NotificationClient()


def get_installment_service(db: Session = Depends(get_db)) -> InstallmentQueryService:
    return InstallmentQueryService(db, installment_rates=settings.installment_rates)


def get_notifying_installment_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: NotificationClient = Depends(get_notification_client),
) -> InstallmentQueryService:
    """Installment service whose events reach the notifier after the response is sent"""

    def event_sink(event):
        background_tasks.add_task(notifier.send_event, event.to_payload())

    return InstallmentQueryService(db, installment_rates=settings.installment_rates, event_sink=event_sink)


def parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")
