from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Query

from app.till.engine.tiers import (
    LOYALTY_TIERS,
    LoyaltyTier,
    SupplierQuote,
    best_quote,
    expiry_status,
    final_unit_price,
    loyalty_tier_for,
)
from app.till.schemas.tiers import (
    ExpiryStatusResponse,
    LoyaltyTierListResponse,
    LoyaltyTierResponse,
    SupplierComparisonRequest,
    SupplierComparisonResponse,
    SupplierPriceResponse,
)

router = APIRouter()


def _tier_response(tier: LoyaltyTier) -> LoyaltyTierResponse:
    return LoyaltyTierResponse(
        name=tier.name,
        min_spent=tier.min_spent,
        points_multiplier=tier.points_multiplier,
        discount_percent=tier.discount_percent,
        color=tier.color,
    )


@router.get("/till/tiers/loyalty", response_model=LoyaltyTierListResponse)
def loyalty_tiers(total_spent: Decimal | None = Query(default=None)):
    return LoyaltyTierListResponse(
        tiers=[_tier_response(entry.payload) for entry in LOYALTY_TIERS],
        resolved=_tier_response(loyalty_tier_for(total_spent)) if total_spent is not None else None,
    )


@router.get("/till/tiers/expiry", response_model=ExpiryStatusResponse)
def batch_expiry(expiry_date: date | None = Query(default=None), today: date | None = Query(default=None)):
    status = expiry_status(expiry_date, today)
    return ExpiryStatusResponse(
        expiry_date=expiry_date,
        status=status.status,
        label=status.label,
        color=status.color,
        days_to_expiry=status.days_to_expiry,
    )


@router.post("/till/tiers/supplier-quotes", response_model=SupplierComparisonResponse)
def compare_supplier_quotes(payload: SupplierComparisonRequest):
    quotes = [
        SupplierQuote.from_tiers(
            item.supplier_name,
            item.unit_price,
            [(tier.min_qty, tier.discount) for tier in sorted(item.discount_tiers, key=lambda tier: tier.min_qty)],
            min_order_quantity=item.min_order_quantity,
            lead_time=item.lead_time,
        )
        for item in payload.quotes
    ]
    prices = []
    for quote in quotes:
        unit_price = final_unit_price(quote, payload.quantity)
        prices.append(
            SupplierPriceResponse(
                supplier_name=quote.supplier_name,
                final_unit_price=unit_price,
                line_total=unit_price * payload.quantity,
                lead_time=quote.lead_time,
            )
        )
    best = best_quote(quotes, payload.quantity)
    return SupplierComparisonResponse(
        quantity=payload.quantity,
        prices=prices,
        best_supplier=best.supplier_name if best is not None else None,
    )
