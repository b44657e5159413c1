import logging

from app.till.engine.events import EventChannel, SaleCommitted
from app.till.services.ledger import InMemoryInvoiceLedger
from tests.till_helpers import FIXED_NOW, commit_sale


def _event():
    invoice = commit_sale(InMemoryInvoiceLedger(), payment_method="CARD")
    return SaleCommitted(invoice=invoice, timestamp=FIXED_NOW)


def test_subscribers_run_in_order():
    channel = EventChannel()
    calls = []
    channel.subscribe(lambda event: calls.append(("first", event.invoice.id)))
    channel.subscribe(lambda event: calls.append(("second", event.invoice.id)))

    event = _event()
    channel.publish(event)

    assert calls == [("first", event.invoice.id), ("second", event.invoice.id)]


def test_unsubscribe_stops_delivery():
    channel = EventChannel()
    calls = []
    unsubscribe = channel.subscribe(calls.append)
    unsubscribe()
    unsubscribe()

    channel.publish(_event())
    assert calls == []


def test_subscriber_failure_is_logged(caplog):
    channel = EventChannel()
    delivered = []

    def broken(_event):
        raise RuntimeError("display unreachable")

    channel.subscribe(broken)
    channel.subscribe(delivered.append)

    with caplog.at_level(logging.ERROR, logger="app.till.engine.events"):
        channel.publish(_event())

    assert len(delivered) == 1
    assert any("sale subscriber failed" in record.getMessage() for record in caplog.records)
