"""End-of-shift cash reconciliation.

Expected cash is derived from the opening float and the shift's invoices
and expenses; the difference against the counted drawer is reported as is.
A shortage is never adjusted away.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from app.till.core.config import settings
from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.core.logging import log_json
from app.till.engine.contracts import ExpenseFeed, ReportRenderer, ShiftInvoiceFeed
from app.till.engine.models import CASH, PAYMENT_METHODS, Expense, Invoice

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class ShiftTotals:
    total_sales: Decimal = ZERO
    total_orders: int = 0
    sales_by_method: Mapping[str, Decimal] = field(default_factory=dict)
    total_cash_sales: Decimal = ZERO
    total_cash_refunds: Decimal = ZERO
    total_discounts: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_expenses: Decimal = ZERO
    cash_expenses: Decimal = ZERO

    @property
    def net_revenue(self) -> Decimal:
        return self.total_sales - self.total_tax


def summarize_invoices(invoices: Iterable[Invoice], expenses: Iterable[Expense] = ()) -> ShiftTotals:
    """Fold a shift's invoices and expenses into totals.

    Return lines are refunded through the method recorded on them, which is
    the original sale's method and may differ from the invoice they sit on.
    The rest of the invoice total is credited to the invoice's own method,
    which is what checkout charged as the amount due.
    """
    by_method = {method: ZERO for method in PAYMENT_METHODS}
    total_sales = ZERO
    total_orders = 0
    cash_sales = ZERO
    cash_refunds = ZERO
    total_discounts = ZERO
    total_tax = ZERO

    for invoice in invoices:
        total_orders += 1
        total_sales += invoice.total
        total_discounts += invoice.item_discount_total + invoice.order_discount_amount
        total_tax += invoice.tax

        refunds = invoice.refunds_by_method
        sale_portion = invoice.total + sum(refunds.values(), ZERO)
        by_method[invoice.payment_method] = by_method.get(invoice.payment_method, ZERO) + sale_portion
        if invoice.payment_method == CASH:
            cash_sales += sale_portion
        for method, amount in refunds.items():
            by_method[method] = by_method.get(method, ZERO) - amount
            if method == CASH:
                cash_refunds += amount

    total_expenses = ZERO
    cash_expenses = ZERO
    for expense in expenses:
        total_expenses += expense.amount
        if expense.is_cash:
            cash_expenses += expense.amount

    return ShiftTotals(
        total_sales=total_sales,
        total_orders=total_orders,
        sales_by_method=by_method,
        total_cash_sales=cash_sales,
        total_cash_refunds=cash_refunds,
        total_discounts=total_discounts,
        total_tax=total_tax,
        total_expenses=total_expenses,
        cash_expenses=cash_expenses,
    )


class DayEndSummary:
    """Reconciliation sheet for one cashier's shift.

    Aggregates are read-only views over ``totals``; the counted cash, notes
    and signature are the only fields the cashier fills in.
    """

    def __init__(
        self,
        business_date: date,
        totals: ShiftTotals,
        *,
        opening_cash: Decimal = ZERO,
        cashier_id: str | None = None,
        cashier_name: str | None = None,
        shift_start: str | None = None,
        shift_end: str | None = None,
    ):
        self.business_date = business_date
        self.cashier_id = cashier_id
        self.cashier_name = cashier_name
        self.shift_start = shift_start or settings.DEFAULT_SHIFT_START
        self.shift_end = shift_end or settings.DEFAULT_SHIFT_END
        self._opening_cash = Decimal(str(opening_cash))
        self._totals = totals
        self._actual_cash_counted = ZERO
        self.notes = ""
        self.signature = ""

    @property
    def totals(self) -> ShiftTotals:
        return self._totals

    @property
    def opening_cash(self) -> Decimal:
        return self._opening_cash

    @property
    def sales_by_method(self) -> dict[str, Decimal]:
        return dict(self._totals.sales_by_method)

    @property
    def total_sales(self) -> Decimal:
        return self._totals.total_sales

    @property
    def total_orders(self) -> int:
        return self._totals.total_orders

    @property
    def total_cash_sales(self) -> Decimal:
        return self._totals.total_cash_sales

    @property
    def total_cash_refunds(self) -> Decimal:
        return self._totals.total_cash_refunds

    @property
    def total_expenses(self) -> Decimal:
        return self._totals.total_expenses

    @property
    def cash_expenses(self) -> Decimal:
        return self._totals.cash_expenses

    @property
    def total_discounts(self) -> Decimal:
        return self._totals.total_discounts

    @property
    def total_tax(self) -> Decimal:
        return self._totals.total_tax

    @property
    def net_revenue(self) -> Decimal:
        return self._totals.net_revenue

    @property
    def expected_cash(self) -> Decimal:
        return self._opening_cash + self.total_cash_sales - self.total_cash_refunds - self.cash_expenses

    @property
    def actual_cash_counted(self) -> Decimal:
        return self._actual_cash_counted

    @actual_cash_counted.setter
    def actual_cash_counted(self, value) -> None:
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            amount = Decimal("NaN")
        if not amount.is_finite() or amount < 0:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "counted cash must be a non-negative amount", "actual_cash_counted": str(value)},
            )
        self._actual_cash_counted = amount

    @property
    def difference(self) -> Decimal:
        return self._actual_cash_counted - self.expected_cash

    @property
    def is_balanced(self) -> bool:
        return self.difference == 0

    def with_totals(self, totals: ShiftTotals) -> "DayEndSummary":
        refreshed = DayEndSummary(
            self.business_date,
            totals,
            opening_cash=self._opening_cash,
            cashier_id=self.cashier_id,
            cashier_name=self.cashier_name,
            shift_start=self.shift_start,
            shift_end=self.shift_end,
        )
        refreshed._actual_cash_counted = self._actual_cash_counted
        refreshed.notes = self.notes
        refreshed.signature = self.signature
        return refreshed

    def report_fields(self, generated_at: datetime) -> dict[str, object]:
        fields: dict[str, object] = {
            "generated_at": generated_at,
            "business_date": self.business_date,
            "cashier_name": self.cashier_name or "",
            "shift_start": self.shift_start,
            "shift_end": self.shift_end,
            "opening_cash": self.opening_cash,
            "total_sales": self.total_sales,
            "total_orders": self.total_orders,
        }
        for method, amount in self.sales_by_method.items():
            fields[f"sales_{method.lower()}"] = amount
        fields.update(
            {
                "total_cash_sales": self.total_cash_sales,
                "total_cash_refunds": self.total_cash_refunds,
                "total_expenses": self.total_expenses,
                "cash_expenses": self.cash_expenses,
                "total_discounts": self.total_discounts,
                "total_tax": self.total_tax,
                "net_revenue": self.net_revenue,
                "expected_cash": self.expected_cash,
                "actual_cash_counted": self.actual_cash_counted,
                "difference": self.difference,
                "notes": self.notes,
                "signature": self.signature,
            }
        )
        return fields


class DayEndReconciler:
    def __init__(self, invoice_feed: ShiftInvoiceFeed, expense_feed: ExpenseFeed | None = None):
        self._invoice_feed = invoice_feed
        self._expense_feed = expense_feed

    def _totals(self, business_date: date, cashier_id: str | None) -> ShiftTotals:
        invoices = self._invoice_feed.list_invoices(business_date, cashier_id)
        expenses = self._expense_feed.list_expenses(business_date) if self._expense_feed is not None else []
        return summarize_invoices(invoices, expenses)

    def reconcile(
        self,
        business_date: date,
        *,
        opening_cash: Decimal = ZERO,
        cashier_id: str | None = None,
        cashier_name: str | None = None,
        shift_start: str | None = None,
        shift_end: str | None = None,
    ) -> DayEndSummary:
        summary = DayEndSummary(
            business_date,
            self._totals(business_date, cashier_id),
            opening_cash=opening_cash,
            cashier_id=cashier_id,
            cashier_name=cashier_name,
            shift_start=shift_start,
            shift_end=shift_end,
        )
        log_json(
            logger,
            {
                "event": "day_end_reconciled",
                "business_date": business_date.isoformat(),
                "cashier_id": cashier_id,
                "total_orders": summary.total_orders,
                "expected_cash": summary.expected_cash,
            },
        )
        return summary

    def refresh(self, summary: DayEndSummary) -> DayEndSummary:
        """Recompute aggregates from the feeds, keeping what the cashier typed."""
        return summary.with_totals(self._totals(summary.business_date, summary.cashier_id))

    def print_day_end_report(
        self,
        summary: DayEndSummary,
        renderer: ReportRenderer,
        generated_at: datetime | None = None,
    ) -> str:
        return renderer.render(summary.report_fields(generated_at or datetime.now()))
