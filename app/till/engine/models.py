from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict

from app.till.core.error_catalog import AppError, ErrorCatalog

FIXED = "fixed"
PERCENTAGE = "percentage"
DISCOUNT_KINDS = (FIXED, PERCENTAGE)

CASH = "CASH"
PAYMENT_METHODS = ("CASH", "CARD", "UPI", "CREDIT", "BANK_TRANSFER")

DiscountKind = Literal["fixed", "percentage"]
PaymentMethod = Literal["CASH", "CARD", "UPI", "CREDIT", "BANK_TRANSFER"]


def new_line_id() -> str:
    return uuid.uuid4().hex[:12]


def normalize_payment_method(value: str | None) -> str:
    """Map the spellings seen across tills and backends ("bank_transfer",
    "Bank Transfer", "cash") onto the canonical upper-case method names."""
    method = (value or "").strip().upper().replace(" ", "_").replace("-", "_")
    if method not in PAYMENT_METHODS:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "unsupported payment method", "payment_method": value},
        )
    return method


def refunds_by_method(lines, default_method: str) -> dict[str, Decimal]:
    """Refund amount per method for the return lines among ``lines``."""
    refunds: dict[str, Decimal] = {}
    for line in lines:
        if line.is_return:
            method = line.refund_method or default_method
            refunds[method] = refunds.get(method, Decimal("0.00")) - line.unit_price * line.quantity
    return refunds


def refund_payouts(lines, payment_method: str) -> dict[str, Decimal]:
    """Refunds paid back through a method other than ``payment_method``.

    Those are settled on their own; only the rest of the total is tendered
    through the checkout method.
    """
    return {
        method: amount
        for method, amount in refunds_by_method(lines, payment_method).items()
        if method != payment_method
    }


def normalize_discount_kind(value: str | None) -> str:
    kind = (value or FIXED).strip().lower()
    if kind not in DISCOUNT_KINDS:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "discount kind must be fixed or percentage", "kind": value},
        )
    return kind


@dataclass(frozen=True)
class ProductRef:
    product_id: str
    unit_price: Decimal
    name: str | None = None
    barcode: str | None = None


@dataclass
class CartLine:
    product_id: str
    unit_price: Decimal
    quantity: int
    name: str | None = None
    discount_kind: str = FIXED
    # raw operator input, kept verbatim for redisplay
    discount_value: str = ""
    is_return: bool = False
    return_of_invoice_id: str | None = None
    return_of_line_id: str | None = None
    refund_method: str | None = None
    reason: str | None = None
    line_id: str = field(default_factory=new_line_id)

    def __post_init__(self) -> None:
        if self.quantity == 0:
            raise AppError(
                ErrorCatalog.INVALID_QUANTITY,
                details={"message": "cart line quantity must not be zero", "product_id": self.product_id},
            )


@dataclass
class OrderDiscount:
    kind: str = FIXED
    value: str = ""


@dataclass
class Cart:
    lines: list[CartLine] = field(default_factory=list)
    order_discount: OrderDiscount = field(default_factory=OrderDiscount)


class InvoiceLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_id: str
    product_id: str
    name: str | None = None
    unit_price: Decimal
    quantity: int
    discount_kind: DiscountKind = "fixed"
    discount_value: str = ""
    discount_amount: Decimal = Decimal("0.00")
    is_return: bool = False
    return_of_invoice_id: str | None = None
    return_of_line_id: str | None = None
    refund_method: PaymentMethod | None = None
    reason: str | None = None

    @property
    def line_subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class Invoice(BaseModel):
    """Immutable snapshot of a completed transaction.

    Drafts built by the till carry ``id=None``; the ledger assigns the
    invoice number when it commits the draft.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    timestamp: datetime
    lines: tuple[InvoiceLine, ...]
    subtotal: Decimal
    item_discount_total: Decimal
    order_discount_kind: DiscountKind = "fixed"
    order_discount_value: str = ""
    order_discount_amount: Decimal
    tax: Decimal = Decimal("0.00")
    total: Decimal
    payment_method: PaymentMethod
    tendered: Decimal
    balance: Decimal
    cashier_id: str | None = None
    cashier_name: str | None = None
    customer_phone: str | None = None

    @property
    def business_date(self) -> date:
        return self.timestamp.date()

    @property
    def sale_lines(self) -> tuple[InvoiceLine, ...]:
        return tuple(line for line in self.lines if not line.is_return)

    @property
    def return_lines(self) -> tuple[InvoiceLine, ...]:
        return tuple(line for line in self.lines if line.is_return)

    @property
    def refunds_by_method(self) -> dict[str, Decimal]:
        return refunds_by_method(self.lines, self.payment_method)

    @property
    def refund_payouts(self) -> dict[str, Decimal]:
        return refund_payouts(self.lines, self.payment_method)

    @property
    def amount_due(self) -> Decimal:
        """Amount settled through ``payment_method``: the total plus any
        refunds paid out through other methods."""
        return self.total + sum(self.refund_payouts.values(), Decimal("0.00"))


class Expense(BaseModel):
    model_config = ConfigDict(frozen=True)

    business_date: date
    amount: Decimal
    payment_method: str = CASH
    description: str | None = None

    @property
    def is_cash(self) -> bool:
        return self.payment_method.upper() == CASH
