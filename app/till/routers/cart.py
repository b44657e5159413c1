from __future__ import annotations

from fastapi import APIRouter, Depends

from app.till.core.deps import get_terminal
from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.engine import discounts
from app.till.engine.models import ProductRef
from app.till.engine.tiers import loyalty_tier_for
from app.till.schemas.cart import (
    CartLineAddRequest,
    CartLineResponse,
    CartLineUpdateRequest,
    CartResponse,
    DiscountRequest,
    LoyaltyDiscountRequest,
)
from app.till.services.terminals import TerminalSession

router = APIRouter()


def cart_response(session: TerminalSession) -> CartResponse:
    store = session.cart
    totals = store.totals()
    return CartResponse(
        terminal_id=session.terminal_id,
        lines=[
            CartLineResponse(
                line_id=line.line_id,
                product_id=line.product_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                discount_kind=line.discount_kind,
                discount_value=line.discount_value,
                discount_amount=discounts.item_discount_amount(line),
                line_subtotal=discounts.line_subtotal(line),
                is_return=line.is_return,
                return_of_invoice_id=line.return_of_invoice_id,
                refund_method=line.refund_method,
                reason=line.reason,
            )
            for line in store.lines
        ],
        order_discount_kind=store.order_discount.kind,
        order_discount_value=store.order_discount.value,
        subtotal=totals.subtotal,
        sale_subtotal=totals.sale_subtotal,
        return_subtotal=totals.return_subtotal,
        item_discount_total=totals.item_discount_total,
        order_discount_amount=totals.order_discount_amount,
        total=totals.total,
    )


@router.get("/till/terminals/{terminal_id}/cart", response_model=CartResponse)
def get_cart(session: TerminalSession = Depends(get_terminal)):
    return cart_response(session)


@router.post("/till/terminals/{terminal_id}/cart/lines", response_model=CartResponse, status_code=201)
def add_line(payload: CartLineAddRequest, session: TerminalSession = Depends(get_terminal)):
    product = ProductRef(
        product_id=payload.product_id,
        unit_price=payload.unit_price,
        name=payload.name,
        barcode=payload.barcode,
    )
    with session.lock:
        session.cart.add_line(product, payload.quantity)
        return cart_response(session)


@router.patch("/till/terminals/{terminal_id}/cart/lines/{line_id}", response_model=CartResponse)
def update_line(line_id: str, payload: CartLineUpdateRequest, session: TerminalSession = Depends(get_terminal)):
    if (payload.quantity is None) == (payload.delta is None):
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "send exactly one of quantity or delta"})
    with session.lock:
        if payload.quantity is not None:
            session.cart.set_quantity(line_id, payload.quantity)
        else:
            session.cart.adjust_quantity(line_id, payload.delta)
        return cart_response(session)


@router.delete("/till/terminals/{terminal_id}/cart/lines/{line_id}", response_model=CartResponse)
def remove_line(line_id: str, session: TerminalSession = Depends(get_terminal)):
    with session.lock:
        session.cart.remove_line(line_id)
        return cart_response(session)


@router.put("/till/terminals/{terminal_id}/cart/lines/{line_id}/discount", response_model=CartResponse)
def set_line_discount(line_id: str, payload: DiscountRequest, session: TerminalSession = Depends(get_terminal)):
    with session.lock:
        session.cart.set_item_discount(line_id, payload.kind, payload.value)
        return cart_response(session)


@router.put("/till/terminals/{terminal_id}/cart/discount", response_model=CartResponse)
def set_order_discount(payload: DiscountRequest, session: TerminalSession = Depends(get_terminal)):
    with session.lock:
        session.cart.set_order_discount(payload.kind, payload.value)
        return cart_response(session)


@router.put("/till/terminals/{terminal_id}/cart/discount/loyalty", response_model=CartResponse)
def apply_loyalty_discount(payload: LoyaltyDiscountRequest, session: TerminalSession = Depends(get_terminal)):
    with session.lock:
        session.cart.apply_loyalty_tier(loyalty_tier_for(payload.total_spent))
        return cart_response(session)


@router.delete("/till/terminals/{terminal_id}/cart", response_model=CartResponse)
def clear_cart(session: TerminalSession = Depends(get_terminal)):
    with session.lock:
        session.cart.clear()
        session.returns.reset()
        return cart_response(session)
