from decimal import Decimal

import pytest

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.core.metrics import metrics
from app.till.engine.cart import CartStore
from app.till.engine.day_end import DayEndReconciler
from app.till.engine.events import EventChannel
from app.till.engine.payments import PaymentCalculator, balance
from app.till.engine.returns import ReturnProcessor, ReturnRequest, ReturnSelection
from app.till.services.ledger import InMemoryInvoiceLedger
from tests.till_helpers import FIXED_NOW, OIL, RICE, SOAP, FailingSubmission, commit_sale, fixed_clock, sample_cart


def _calculator(ledger=None, channel=None):
    return PaymentCalculator(ledger or InMemoryInvoiceLedger(), channel=channel, clock=fixed_clock)


def _single(product):
    store = CartStore()
    store.add_line(product)
    return store


def test_balance_is_tender_minus_total():
    assert balance(Decimal("9810.00"), Decimal("10000.00")) == Decimal("190.00")
    assert balance(Decimal("9810.00"), Decimal("9800.00")) == Decimal("-10.00")


def test_cash_short_of_total_is_rejected_and_cart_kept():
    store = sample_cart()
    before = store.snapshot()

    with pytest.raises(AppError) as exc:
        _calculator().complete(store, "CASH", Decimal("9800"))

    assert exc.value.code == ErrorCatalog.INSUFFICIENT_PAYMENT.code
    assert exc.value.details["short_by"] == Decimal("10.00")
    assert store.cart == before


def test_exact_cash_has_zero_balance():
    invoice = _calculator().complete(sample_cart(), "cash", Decimal("9810"))
    assert invoice.balance == Decimal("0.00")
    assert invoice.payment_method == "CASH"


def test_cash_over_tender_returns_change_and_clears_cart():
    ledger = InMemoryInvoiceLedger()
    store = sample_cart()

    invoice = _calculator(ledger).complete(store, "CASH", Decimal("10000"), cashier_id="c-1", cashier_name="Nimal")

    assert invoice.id == "INV-20240301-0001"
    assert invoice.balance == Decimal("190.00")
    assert invoice.subtotal == Decimal("10900.00")
    assert invoice.order_discount_amount == Decimal("1090.00")
    assert invoice.order_discount_kind == "percentage"
    assert invoice.order_discount_value == "10"
    assert invoice.total == Decimal("9810.00")
    assert invoice.timestamp == FIXED_NOW
    assert invoice.cashier_name == "Nimal"
    assert store.is_empty
    assert ledger.get(invoice.id) == invoice


def test_invoice_numbers_follow_daily_sequence():
    ledger = InMemoryInvoiceLedger()
    calculator = _calculator(ledger)
    first = calculator.complete(sample_cart(), "CARD")
    second = calculator.complete(sample_cart(), "CARD")
    assert [first.id, second.id] == ["INV-20240301-0001", "INV-20240301-0002"]


def test_cash_without_tender_is_insufficient():
    with pytest.raises(AppError) as exc:
        _calculator().complete(sample_cart(), "CASH")
    assert exc.value.code == ErrorCatalog.INSUFFICIENT_PAYMENT.code


def test_non_cash_defaults_tender_to_total():
    invoice = _calculator().complete(sample_cart(), "UPI")
    assert invoice.tendered == Decimal("9810.00")
    assert invoice.balance == Decimal("0.00")


def test_non_cash_short_tender_is_reported_not_gated():
    calculator = _calculator()
    result = calculator.evaluate(Decimal("9810.00"), "card", Decimal("5000"))
    assert result.is_sufficient is True
    assert result.balance == Decimal("-4810.00")


def _exchange_cart(ledger, original, product, qty, reason="leaking"):
    store = CartStore()
    store.add_line(product, qty)
    ReturnProcessor(ledger, store).apply(
        ReturnRequest(original.id, (ReturnSelection(original.lines[0].line_id, 1, reason),))
    )
    return store


def test_refund_to_other_method_is_paid_out_and_reconciles():
    ledger = InMemoryInvoiceLedger()
    oil_sale = commit_sale(ledger, "CASH", store=_single(OIL))
    store = _exchange_cart(ledger, oil_sale, SOAP, 20)

    exchange = _calculator(ledger).complete(store, "CARD")

    assert exchange.total == Decimal("1800.00")
    assert exchange.refund_payouts == {"CASH": Decimal("3200.00")}
    assert exchange.amount_due == Decimal("5000.00")
    assert exchange.tendered == Decimal("5000.00")
    assert exchange.balance == Decimal("0.00")

    summary = DayEndReconciler(ledger, ledger).reconcile(FIXED_NOW.date())
    assert summary.sales_by_method["CARD"] == exchange.tendered
    assert summary.sales_by_method["CASH"] == Decimal("0.00")
    assert summary.total_cash_refunds == Decimal("3200.00")
    assert summary.expected_cash == Decimal("0.00")
    assert sum(summary.sales_by_method.values()) == summary.total_sales


def test_cash_tender_must_cover_refund_paid_to_card():
    ledger = InMemoryInvoiceLedger()
    rice_sale = commit_sale(ledger, "CARD", store=_single(RICE))
    store = _exchange_cart(ledger, rice_sale, SOAP, 20, reason="wrong size")
    calculator = _calculator(ledger)

    preview = calculator.quote(store, "cash", Decimal("500"))
    assert preview.total == Decimal("500.00")
    assert preview.amount_due == Decimal("5000.00")
    assert preview.is_sufficient is False

    with pytest.raises(AppError) as exc:
        calculator.complete(store, "CASH", Decimal("500"))
    assert exc.value.code == ErrorCatalog.INSUFFICIENT_PAYMENT.code
    assert exc.value.details["short_by"] == Decimal("4500.00")
    assert len(store.lines) == 2

    exchange = calculator.complete(store, "CASH", Decimal("5000"))
    summary = DayEndReconciler(ledger, ledger).reconcile(FIXED_NOW.date(), opening_cash=Decimal("1000"))
    assert exchange.refund_payouts == {"CARD": Decimal("4500.00")}
    assert summary.sales_by_method["CASH"] == Decimal("5000.00")
    assert summary.sales_by_method["CARD"] == Decimal("0.00")
    assert summary.expected_cash == Decimal("6000.00")


def test_refund_on_checkout_method_nets_against_tender():
    ledger = InMemoryInvoiceLedger()
    rice_sale = commit_sale(ledger, "CARD", store=_single(RICE))
    store = _exchange_cart(ledger, rice_sale, SOAP, 20, reason="wrong size")

    exchange = _calculator(ledger).complete(store, "CARD")

    assert exchange.refund_payouts == {}
    assert exchange.amount_due == exchange.total == Decimal("500.00")


def test_unknown_payment_method_is_rejected():
    with pytest.raises(AppError) as exc:
        _calculator().complete(sample_cart(), "cheque", Decimal("10000"))
    assert exc.value.code == ErrorCatalog.VALIDATION_ERROR.code


def test_empty_cart_cannot_be_completed():
    with pytest.raises(AppError) as exc:
        _calculator().complete(CartStore(), "CASH", Decimal("100"))
    assert exc.value.code == ErrorCatalog.EMPTY_CART.code


def test_excessive_discount_blocks_completion():
    store = CartStore()
    line = store.add_line(RICE)
    store.set_item_discount(line.line_id, "fixed", "4600")

    with pytest.raises(AppError) as exc:
        _calculator().complete(store, "CARD")
    assert exc.value.code == ErrorCatalog.DISCOUNT_EXCEEDS_SUBTOTAL.code
    assert exc.value.details["line_ids"] == [line.line_id]
    assert len(store.lines) == 1


def test_submission_failure_keeps_cart_and_skips_broadcast():
    store = sample_cart()
    before = store.snapshot()
    channel = EventChannel()
    received = []
    channel.subscribe(received.append)
    submission = FailingSubmission()

    with pytest.raises(AppError) as exc:
        PaymentCalculator(submission, channel=channel, clock=fixed_clock).complete(store, "CASH", Decimal("10000"))

    assert exc.value.code == ErrorCatalog.SUBMISSION_FAILED.code
    assert exc.value.details["cause"] == "RuntimeError"
    assert submission.calls == 1
    assert store.cart == before
    assert received == []
    assert b"submission_failures_total 1.0" in metrics.render().content


def test_committed_sale_is_broadcast_once():
    channel = EventChannel()
    received = []
    channel.subscribe(received.append)

    invoice = _calculator(channel=channel).complete(sample_cart(), "CARD")

    assert len(received) == 1
    assert received[0].invoice == invoice
    assert received[0].timestamp == FIXED_NOW


def test_failing_subscriber_does_not_undo_sale():
    channel = EventChannel()
    received = []

    def broken(_event):
        raise ValueError("screen offline")

    channel.subscribe(broken)
    channel.subscribe(received.append)
    store = sample_cart()

    invoice = _calculator(channel=channel).complete(store, "CARD")

    assert invoice.id is not None
    assert store.is_empty
    assert len(received) == 1


def test_draft_carries_line_discounts():
    store = sample_cart(order_percent=None)
    rice = next(line for line in store.lines if line.product_id == RICE.product_id)
    store.set_item_discount(rice.line_id, "percentage", "10")

    draft = _calculator().build_draft(store, "CARD")

    assert draft.id is None
    rice_line = next(line for line in draft.lines if line.product_id == RICE.product_id)
    assert rice_line.discount_amount == Decimal("450.00")
    assert rice_line.discount_value == "10"
    assert draft.item_discount_total == Decimal("450.00")
    assert draft.total == Decimal("10450.00")
    assert len(store.lines) == 2
