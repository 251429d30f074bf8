"""Prometheus metrics for order throughput, rejections, installment plans and notifier performance"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Order metrics
orders_placed_counter = Counter(
    "checkout_orders_placed_total",
    "Orders committed",
    ["payment_method"],  # cash_on_delivery | online | installment
)

order_rejections_counter = Counter(
    "checkout_order_rejections_total",
    "Order placements rolled back",
    ["reason"],  # validation | insufficient_stock | coupon | idempotent_conflict | error
)

orders_cancelled_counter = Counter(
    "checkout_orders_cancelled_total",
    "Orders cancelled",
)

order_value_histogram = Histogram(
    "checkout_order_final_amount",
    "Final amount of committed orders",
    buckets=[100, 500, 1000, 2500, 5000, 10000, 25000, 50000],
)

# Inventory and coupon metrics
stock_shortfall_counter = Counter(
    "checkout_stock_shortfalls_total",
    "Stock reservations refused for insufficient quantity",
)

coupon_redemption_counter = Counter(
    "checkout_coupon_redemptions_total",
    "Coupon redemption outcomes",
    ["outcome"],  # redeemed | voided | <rejection reason>
)

# Installment metrics
installment_plans_counter = Counter(
    "checkout_installment_plans_total",
    "Installment plans created",
    ["tenure"],
)

installment_settlements_counter = Counter(
    "checkout_installment_settlements_total",
    "Installments marked paid",
)

installment_reminders_counter = Counter(
    "checkout_installment_reminders_total",
    "Installment reminders queued",
)

# Notifier metrics
webhook_latency_histogram = Histogram(
    "notifier_webhook_latency_seconds",
    "Order event webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "notifier_webhook_failures_total",
    "Failed order event deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_order_placed(payment_method: str, final_amount: Decimal, tenure: int | None = None) -> None:
    """Record a committed order and, for deferred payment, its plan tenure"""
    orders_placed_counter.labels(payment_method=payment_method).inc()
    order_value_histogram.observe(float(final_amount))
    if tenure is not None:
        installment_plans_counter.labels(tenure=str(tenure)).inc()


def record_order_rejected(reason: str) -> None:
    order_rejections_counter.labels(reason=reason).inc()


def record_coupon_outcome(outcome: str) -> None:
    coupon_redemption_counter.labels(outcome=outcome).inc()
