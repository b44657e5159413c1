import logging

from app.till.core.logging import log_json
from app.till.core.metrics import metrics
from app.till.engine.events import EventChannel, SaleCommitted

logger = logging.getLogger(__name__)


def record_sale_metrics(event: SaleCommitted) -> None:
    metrics.increment_sale_committed(event.invoice.payment_method)


def broadcast_sale(event: SaleCommitted) -> None:
    invoice = event.invoice
    log_json(
        logger,
        {
            "event": "sale_broadcast",
            "invoice_id": invoice.id,
            "business_date": invoice.business_date.isoformat(),
            "total": invoice.total,
            "returned_lines": len(invoice.return_lines),
            "published_at": event.timestamp.isoformat(),
        },
    )


def register_default_subscribers(channel: EventChannel) -> EventChannel:
    channel.subscribe(record_sale_metrics)
    channel.subscribe(broadcast_sale)
    return channel
