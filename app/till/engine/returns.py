"""Partial returns against a committed invoice.

A return never edits the original invoice. Selected lines are appended to
the open cart as negative-quantity lines, so the refund nets against
whatever else the customer is buying in the same transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.core.logging import log_json
from app.till.core.metrics import metrics
from app.till.engine.cart import CartStore
from app.till.engine.contracts import InvoiceLookup, ReturnHistory
from app.till.engine.models import CartLine, Invoice, InvoiceLine

logger = logging.getLogger(__name__)


class ReturnState(str, Enum):
    IDLE = "IDLE"
    INVOICE_LOADED = "INVOICE_LOADED"
    ITEMS_SELECTED = "ITEMS_SELECTED"
    MERGED = "MERGED"


@dataclass
class ReturnCandidate:
    line: InvoiceLine
    returnable_quantity: int
    return_quantity: int = 0
    reason: str = ""

    @property
    def line_id(self) -> str:
        return self.line.line_id

    @property
    def is_selected(self) -> bool:
        return self.return_quantity > 0


@dataclass(frozen=True)
class ReturnSelection:
    line_id: str
    return_quantity: int
    reason: str | None = None


@dataclass(frozen=True)
class ReturnRequest:
    original_invoice_id: str
    selections: tuple[ReturnSelection, ...] = field(default_factory=tuple)


class ReturnProcessor:
    def __init__(self, lookup: InvoiceLookup, cart_store: CartStore, history: ReturnHistory | None = None):
        self._lookup = lookup
        self._cart_store = cart_store
        self._history = history
        self._state = ReturnState.IDLE
        self._invoice: Invoice | None = None
        self._candidates: dict[str, ReturnCandidate] = {}

    @property
    def state(self) -> ReturnState:
        return self._state

    @property
    def invoice(self) -> Invoice | None:
        return self._invoice

    @property
    def candidates(self) -> list[ReturnCandidate]:
        return list(self._candidates.values())

    def load_invoice(self, invoice_id: str) -> list[ReturnCandidate]:
        invoice = self._lookup.get(invoice_id)
        # already refunded on earlier invoices, plus what this cart holds
        returned = self._history.returned_quantities(invoice.id) if self._history is not None else {}
        candidates = {}
        for line in invoice.sale_lines:
            pending = self._cart_store.pending_return_quantity(invoice.id, line.line_id)
            candidates[line.line_id] = ReturnCandidate(
                line=line,
                returnable_quantity=max(line.quantity - returned.get(line.line_id, 0) - pending, 0),
            )
        self._invoice = invoice
        self._candidates = candidates
        self._state = ReturnState.INVOICE_LOADED
        return self.candidates

    def _candidate(self, line_id: str) -> ReturnCandidate:
        if self._invoice is None:
            raise AppError(ErrorCatalog.RETURN_NOT_STARTED)
        candidate = self._candidates.get(line_id)
        if candidate is None:
            raise AppError(
                ErrorCatalog.NOT_FOUND,
                details={"message": "line is not on the loaded invoice", "line_id": line_id},
            )
        return candidate

    def set_return_quantity(self, line_id: str, qty: int) -> ReturnCandidate:
        candidate = self._candidate(line_id)
        if qty < 0 or qty > candidate.returnable_quantity:
            raise AppError(
                ErrorCatalog.INVALID_QUANTITY,
                details={
                    "line_id": line_id,
                    "qty": qty,
                    "returnable_quantity": candidate.returnable_quantity,
                },
            )
        candidate.return_quantity = qty
        self._state = (
            ReturnState.ITEMS_SELECTED
            if any(item.is_selected for item in self._candidates.values())
            else ReturnState.INVOICE_LOADED
        )
        return candidate

    def set_return_reason(self, line_id: str, reason: str | None) -> ReturnCandidate:
        candidate = self._candidate(line_id)
        candidate.reason = (reason or "").strip()
        return candidate

    def commit(self) -> list[CartLine]:
        if self._invoice is None:
            raise AppError(ErrorCatalog.RETURN_NOT_STARTED)
        selected = [candidate for candidate in self._candidates.values() if candidate.is_selected]
        if not selected:
            raise AppError(ErrorCatalog.NOTHING_SELECTED, details={"invoice_id": self._invoice.id})
        missing = [candidate.line_id for candidate in selected if not candidate.reason]
        if missing:
            raise AppError(ErrorCatalog.RETURN_REASON_REQUIRED, details={"line_ids": missing})

        invoice = self._invoice
        lines = [
            CartLine(
                product_id=candidate.line.product_id,
                name=candidate.line.name,
                unit_price=candidate.line.unit_price,
                quantity=-candidate.return_quantity,
                is_return=True,
                return_of_invoice_id=invoice.id,
                return_of_line_id=candidate.line_id,
                refund_method=invoice.payment_method,
                reason=candidate.reason,
            )
            for candidate in selected
        ]
        merged = self._cart_store.merge_return_lines(lines)
        self._state = ReturnState.MERGED
        metrics.increment_return_merged(len(merged))
        log_json(
            logger,
            {
                "event": "return_merged",
                "invoice_id": invoice.id,
                "lines": len(merged),
                "refund_method": invoice.payment_method,
                "amount": sum((-line.unit_price * line.quantity for line in merged)),
            },
        )
        self.reset()
        return merged

    def apply(self, request: ReturnRequest) -> list[CartLine]:
        """Run a whole return request; nothing is merged if any selection fails."""
        self.load_invoice(request.original_invoice_id)
        try:
            for selection in request.selections:
                self.set_return_quantity(selection.line_id, selection.return_quantity)
                self.set_return_reason(selection.line_id, selection.reason)
            return self.commit()
        except AppError:
            self.reset()
            raise

    def reset(self) -> None:
        self._invoice = None
        self._candidates = {}
        self._state = ReturnState.IDLE
