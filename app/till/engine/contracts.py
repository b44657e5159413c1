"""Collaborator contracts the transaction engine talks to.

The engine never persists, prints or notifies by itself; it hands finished
values to whatever implements these protocols (the SQL ledger, the remote
sales backend, the text report renderer, or test fakes).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Protocol, runtime_checkable

from app.till.engine.models import Expense, Invoice


class InvoiceLookup(Protocol):
    def get(self, invoice_id: str) -> Invoice:
        """Return the committed invoice or raise ``AppError(NOT_FOUND)``."""


@runtime_checkable
class ReturnHistory(Protocol):
    def returned_quantities(self, invoice_id: str) -> dict[str, int]:
        """Quantity already returned per original line id, from committed
        return lines that point at ``invoice_id``."""


class InvoiceSubmission(Protocol):
    def submit(self, draft: Invoice) -> Invoice:
        """Commit a fully priced draft and return the ledger's copy."""


class ShiftInvoiceFeed(Protocol):
    def list_invoices(self, business_date: date, cashier_id: str | None = None) -> list[Invoice]:
        ...


class ExpenseFeed(Protocol):
    def list_expenses(self, business_date: date) -> list[Expense]:
        ...


class ReportRenderer(Protocol):
    def render(self, fields: Mapping[str, object]) -> str:
        ...
