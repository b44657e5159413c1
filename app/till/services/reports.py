from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal

from app.till.core.config import settings

LABELS = {
    "generated_at": "Generated",
    "business_date": "Date",
    "cashier_name": "Cashier",
    "shift_start": "Shift start",
    "shift_end": "Shift end",
    "opening_cash": "Opening cash",
    "total_sales": "Total sales",
    "total_orders": "Total orders",
    "sales_cash": "Cash sales (net)",
    "sales_card": "Card sales (net)",
    "sales_upi": "UPI sales (net)",
    "sales_credit": "Credit sales (net)",
    "sales_bank_transfer": "Bank transfer sales (net)",
    "total_cash_sales": "Cash taken",
    "total_cash_refunds": "Cash refunded",
    "total_expenses": "Expenses",
    "cash_expenses": "Cash expenses",
    "total_discounts": "Discounts given",
    "total_tax": "Tax",
    "net_revenue": "Net revenue",
    "expected_cash": "Expected cash",
    "actual_cash_counted": "Counted cash",
    "difference": "Difference",
    "notes": "Notes",
    "signature": "Cashier signature",
}


def format_money(amount: Decimal, currency: str | None = None) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency or settings.CURRENCY} {abs(amount):,.2f}"


def _format_value(value: object, currency: str) -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, Decimal):
        return format_money(value, currency)
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class TextReportRenderer:
    """Plain-text day-end report, one labeled line per field."""

    def __init__(self, title: str = "DAY-END REPORT", currency: str | None = None, width: int = 44):
        self.title = title
        self.currency = currency or settings.CURRENCY
        self.width = width

    def render(self, fields: Mapping[str, object]) -> str:
        rows = [
            (LABELS.get(key, key.replace("_", " ").capitalize()), _format_value(value, self.currency))
            for key, value in fields.items()
        ]
        label_width = max(len(label) for label, _ in rows) + 2
        rule = "=" * self.width
        lines = [rule, self.title.center(self.width), rule]
        lines.extend(f"{label + ':':<{label_width}}{value}" for label, value in rows)
        lines.append(rule)
        lines.append("Manager signature: _________________")
        return "\n".join(lines) + "\n"
