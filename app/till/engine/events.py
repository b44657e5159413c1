from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from app.till.engine.models import Invoice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleCommitted:
    invoice: Invoice
    timestamp: datetime


Subscriber = Callable[[SaleCommitted], None]


class EventChannel:
    """Fire-and-forget broadcast of committed sales.

    Each subscriber is called at most once per event, in subscription
    order. A subscriber that raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, event: SaleCommitted) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception("sale subscriber failed for invoice %s", event.invoice.id)
