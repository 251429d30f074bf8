"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args, service_name: str = "checkout-ledger", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "checkout-ledger") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name=service_name,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_order_placed(
    request_id: str,
    customer_id: str,
    order_number: str,
    payment_method: str,
    final_amount: Decimal,
    duration_ms: float,
) -> None:
    """Log structured order outcome for analysis"""
    logging.info(
        "Order placed",
        extra={
            "request_id": request_id,
            "customer_id": customer_id,
            "step": "order_committed",
            "order_number": order_number,
            "payment_method": payment_method,
            "final_amount": str(final_amount),
            "duration_ms": duration_ms,
        },
    )


def log_order_rejected(request_id: str, customer_id: str, reason: str, detail: str) -> None:
    """Log a rolled-back order placement with the rule that stopped it"""
    logging.warning(
        "Order rejected",
        extra={
            "request_id": request_id,
            "customer_id": customer_id,
            "step": "order_rolled_back",
            "reason": reason,
            "detail": detail,
        },
    )
