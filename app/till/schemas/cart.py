from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

RawDiscount = str | int | float | None


class CartLineAddRequest(BaseModel):
    product_id: str = Field(min_length=1)
    unit_price: Decimal = Field(ge=0)
    name: str | None = None
    barcode: str | None = None
    quantity: int = 1


class CartLineUpdateRequest(BaseModel):
    quantity: int | None = None
    delta: int | None = None


class DiscountRequest(BaseModel):
    kind: Literal["fixed", "percentage"] = "fixed"
    value: RawDiscount = None


class LoyaltyDiscountRequest(BaseModel):
    total_spent: Decimal


class CartLineResponse(BaseModel):
    line_id: str
    product_id: str
    name: str | None
    unit_price: Decimal
    quantity: int
    discount_kind: str
    discount_value: str
    discount_amount: Decimal
    line_subtotal: Decimal
    is_return: bool
    return_of_invoice_id: str | None
    refund_method: str | None
    reason: str | None


class CartResponse(BaseModel):
    terminal_id: str
    lines: list[CartLineResponse]
    order_discount_kind: str
    order_discount_value: str
    subtotal: Decimal
    sale_subtotal: Decimal
    return_subtotal: Decimal
    item_discount_total: Decimal
    order_discount_amount: Decimal
    total: Decimal
