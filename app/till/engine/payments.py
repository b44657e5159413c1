from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.core.logging import log_json
from app.till.core.metrics import metrics
from app.till.engine import discounts
from app.till.engine.cart import CartStore
from app.till.engine.contracts import InvoiceSubmission
from app.till.engine.events import EventChannel, SaleCommitted
from app.till.engine.models import CASH, Invoice, InvoiceLine, normalize_payment_method, refund_payouts

logger = logging.getLogger(__name__)


def balance(total: Decimal, tendered: Decimal) -> Decimal:
    """Change due to the customer; negative when the tender falls short."""
    return tendered - total


@dataclass(frozen=True)
class TenderResult:
    payment_method: str
    total: Decimal
    amount_due: Decimal
    tendered: Decimal
    balance: Decimal
    is_sufficient: bool
    refund_payouts: Mapping[str, Decimal] = field(default_factory=dict)


class PaymentCalculator:
    def __init__(
        self,
        submission: InvoiceSubmission,
        channel: EventChannel | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._submission = submission
        self._channel = channel
        self._clock = clock or datetime.now

    def evaluate(
        self,
        total: Decimal,
        payment_method: str,
        tendered: Decimal | None = None,
        payouts: Mapping[str, Decimal] | None = None,
    ) -> TenderResult:
        """Check a tender against ``total``.

        ``payouts`` are refunds handed back through other methods; they are
        not netted against this tender, so the amount due grows by them.
        """
        method = normalize_payment_method(payment_method)
        payouts = dict(payouts or {})
        amount_due = total + sum(payouts.values(), Decimal("0.00"))
        if tendered is None:
            # card, UPI, credit and transfers are charged for the exact amount
            tendered = Decimal("0.00") if method == CASH else amount_due
        tendered = Decimal(str(tendered))
        change = balance(amount_due, tendered)
        return TenderResult(
            payment_method=method,
            total=total,
            amount_due=amount_due,
            tendered=tendered,
            balance=change,
            is_sufficient=method != CASH or change >= 0,
            refund_payouts=payouts,
        )

    def quote(self, cart_store: CartStore, payment_method: str, tendered: Decimal | None = None) -> TenderResult:
        method = normalize_payment_method(payment_method)
        return self.evaluate(cart_store.total, method, tendered, refund_payouts(cart_store.lines, method))

    def build_draft(
        self,
        cart_store: CartStore,
        payment_method: str,
        tendered: Decimal | None = None,
        *,
        cashier_id: str | None = None,
        cashier_name: str | None = None,
        customer_phone: str | None = None,
    ) -> Invoice:
        cart = cart_store.cart
        if not cart.lines:
            raise AppError(ErrorCatalog.EMPTY_CART)
        excessive = discounts.excessive_discounts(cart)
        if excessive is not None:
            raise AppError(ErrorCatalog.DISCOUNT_EXCEEDS_SUBTOTAL, details=excessive)

        totals = discounts.cart_totals(cart)
        method = normalize_payment_method(payment_method)
        tender = self.evaluate(totals.total, method, tendered, refund_payouts(cart.lines, method))
        if not tender.is_sufficient:
            raise AppError(
                ErrorCatalog.INSUFFICIENT_PAYMENT,
                details={
                    "total": totals.total,
                    "amount_due": tender.amount_due,
                    "tendered": tender.tendered,
                    "short_by": -tender.balance,
                },
            )

        lines = tuple(
            InvoiceLine(
                line_id=line.line_id,
                product_id=line.product_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                discount_kind=line.discount_kind,
                discount_value=line.discount_value,
                discount_amount=discounts.item_discount_amount(line),
                is_return=line.is_return,
                return_of_invoice_id=line.return_of_invoice_id,
                return_of_line_id=line.return_of_line_id,
                refund_method=line.refund_method,
                reason=line.reason,
            )
            for line in cart.lines
        )
        return Invoice(
            timestamp=self._clock(),
            lines=lines,
            subtotal=totals.subtotal,
            item_discount_total=totals.item_discount_total,
            order_discount_kind=cart.order_discount.kind,
            order_discount_value=cart.order_discount.value,
            order_discount_amount=totals.order_discount_amount,
            total=totals.total,
            payment_method=tender.payment_method,
            tendered=tender.tendered,
            balance=tender.balance,
            cashier_id=cashier_id,
            cashier_name=cashier_name,
            customer_phone=customer_phone,
        )

    def complete(
        self,
        cart_store: CartStore,
        payment_method: str,
        tendered: Decimal | None = None,
        *,
        cashier_id: str | None = None,
        cashier_name: str | None = None,
        customer_phone: str | None = None,
    ) -> Invoice:
        """Price, validate and submit the open cart.

        The cart is cleared only after the ledger confirms the commit; on any
        failure it is left exactly as it was.
        """
        draft = self.build_draft(
            cart_store,
            payment_method,
            tendered,
            cashier_id=cashier_id,
            cashier_name=cashier_name,
            customer_phone=customer_phone,
        )
        try:
            invoice = self._submission.submit(draft)
        except Exception as exc:
            metrics.increment_submission_failure()
            log_json(
                logger,
                {
                    "event": "submission_failed",
                    "payment_method": draft.payment_method,
                    "total": draft.total,
                    "error": getattr(exc, "code", exc.__class__.__name__),
                },
            )
            raise AppError(
                ErrorCatalog.SUBMISSION_FAILED,
                details={"cause": getattr(exc, "code", exc.__class__.__name__), "message": str(exc)},
            ) from exc

        cart_store.clear()
        log_json(
            logger,
            {
                "event": "sale_committed",
                "invoice_id": invoice.id,
                "payment_method": invoice.payment_method,
                "total": invoice.total,
                "amount_due": invoice.amount_due,
                "balance": invoice.balance,
                "lines": len(invoice.lines),
                "cashier_id": invoice.cashier_id,
            },
        )
        if self._channel is not None:
            self._channel.publish(SaleCommitted(invoice=invoice, timestamp=self._clock()))
        return invoice
