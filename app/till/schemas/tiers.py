from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class LoyaltyTierResponse(BaseModel):
    name: str
    min_spent: Decimal
    points_multiplier: Decimal
    discount_percent: Decimal
    color: str


class LoyaltyTierListResponse(BaseModel):
    tiers: list[LoyaltyTierResponse]
    resolved: LoyaltyTierResponse | None = None


class ExpiryStatusResponse(BaseModel):
    expiry_date: date | None
    status: str
    label: str
    color: str
    days_to_expiry: int | None


class DiscountTier(BaseModel):
    min_qty: int = Field(ge=0)
    discount: Decimal = Field(ge=0, le=100)


class SupplierQuoteRequest(BaseModel):
    supplier_name: str
    unit_price: Decimal = Field(ge=0)
    discount_tiers: list[DiscountTier] = Field(default_factory=list)
    min_order_quantity: int = 1
    lead_time: str | None = None


class SupplierComparisonRequest(BaseModel):
    quantity: int = Field(ge=1)
    quotes: list[SupplierQuoteRequest] = Field(min_length=1)


class SupplierPriceResponse(BaseModel):
    supplier_name: str
    final_unit_price: Decimal
    line_total: Decimal
    lead_time: str | None


class SupplierComparisonResponse(BaseModel):
    quantity: int
    prices: list[SupplierPriceResponse]
    best_supplier: str | None
