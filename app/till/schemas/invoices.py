from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class CheckoutRequest(BaseModel):
    payment_method: str
    tendered: Decimal | None = None
    cashier_id: str | None = None
    cashier_name: str | None = None
    customer_phone: str | None = None


class TenderPreviewRequest(BaseModel):
    payment_method: str
    tendered: Decimal | None = None


class TenderPreviewResponse(BaseModel):
    payment_method: str
    total: Decimal
    amount_due: Decimal
    refund_payouts: dict[str, Decimal] = {}
    tendered: Decimal
    balance: Decimal
    is_sufficient: bool


class InvoiceLineResponse(BaseModel):
    line_id: str
    product_id: str
    name: str | None
    unit_price: Decimal
    quantity: int
    discount_kind: str
    discount_value: str
    discount_amount: Decimal
    is_return: bool
    return_of_invoice_id: str | None
    return_of_line_id: str | None
    refund_method: str | None
    reason: str | None


class InvoiceResponse(BaseModel):
    id: str | None
    business_date: date
    timestamp: datetime
    lines: list[InvoiceLineResponse]
    subtotal: Decimal
    item_discount_total: Decimal
    order_discount_kind: str
    order_discount_value: str
    order_discount_amount: Decimal
    tax: Decimal
    total: Decimal
    amount_due: Decimal
    refund_payouts: dict[str, Decimal] = {}
    payment_method: str
    tendered: Decimal
    balance: Decimal
    cashier_id: str | None
    cashier_name: str | None
    customer_phone: str | None


class InvoiceListResponse(BaseModel):
    invoices: list[InvoiceResponse]
