from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class ExpenseCreateRequest(BaseModel):
    business_date: date
    amount: Decimal = Field(gt=0)
    payment_method: str = "CASH"
    description: str | None = None


class ExpenseResponse(BaseModel):
    business_date: date
    amount: Decimal
    payment_method: str
    description: str | None


class DayEndRequest(BaseModel):
    business_date: date
    opening_cash: Decimal = Field(default=Decimal("0"), ge=0)
    cashier_id: str | None = None
    cashier_name: str | None = None
    shift_start: str | None = None
    shift_end: str | None = None
    actual_cash_counted: Decimal | None = None
    notes: str | None = None
    signature: str | None = None


class DayEndResponse(BaseModel):
    business_date: date
    cashier_id: str | None
    cashier_name: str | None
    shift_start: str
    shift_end: str
    opening_cash: Decimal
    total_sales: Decimal
    total_orders: int
    sales_by_method: dict[str, Decimal]
    total_cash_sales: Decimal
    total_cash_refunds: Decimal
    total_expenses: Decimal
    cash_expenses: Decimal
    total_discounts: Decimal
    total_tax: Decimal
    net_revenue: Decimal
    expected_cash: Decimal
    actual_cash_counted: Decimal
    difference: Decimal
    is_balanced: bool
    notes: str
    signature: str
