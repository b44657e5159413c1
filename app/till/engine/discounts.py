"""Discount and total computation for a cart.

Every function here is pure. Item discounts are subtracted before the
order-level discount base is taken; percentage order discounts depend on
that ordering, so it must not be changed.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.till.engine.models import PERCENTAGE

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal(100)


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_discount_value(raw) -> Decimal:
    """Numeric value of a discount field; anything unusable counts as 0."""
    if raw is None or isinstance(raw, bool):
        return ZERO
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float)):
        value = Decimal(str(raw))
    else:
        text = str(raw).strip()
        if not text:
            return ZERO
        try:
            value = Decimal(text)
        except InvalidOperation:
            return ZERO
    if not value.is_finite() or value < 0:
        return ZERO
    return value


def discount_amount(base: Decimal, kind: str, raw_value) -> Decimal:
    value = parse_discount_value(raw_value)
    if kind == PERCENTAGE:
        return to_money(base * value / HUNDRED)
    return to_money(value)


def line_subtotal(line) -> Decimal:
    return line.unit_price * line.quantity


def item_discount_amount(line) -> Decimal:
    if line.is_return:
        return ZERO
    return discount_amount(line_subtotal(line), line.discount_kind, line.discount_value)


def cart_subtotal(cart) -> Decimal:
    return sum((line_subtotal(line) for line in cart.lines), ZERO)


def item_discount_total(cart) -> Decimal:
    return sum((item_discount_amount(line) for line in cart.lines), ZERO)


def order_discount_base(cart) -> Decimal:
    return cart_subtotal(cart) - item_discount_total(cart)


def order_discount_amount(cart) -> Decimal:
    discount = cart.order_discount
    return discount_amount(order_discount_base(cart), discount.kind, discount.value)


def grand_total(cart) -> Decimal:
    return cart_subtotal(cart) - item_discount_total(cart) - order_discount_amount(cart)


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    sale_subtotal: Decimal
    return_subtotal: Decimal
    item_discount_total: Decimal
    order_discount_amount: Decimal
    total: Decimal


def cart_totals(cart) -> CartTotals:
    subtotal = cart_subtotal(cart)
    item_discounts = item_discount_total(cart)
    order_discount = discount_amount(subtotal - item_discounts, cart.order_discount.kind, cart.order_discount.value)
    return CartTotals(
        subtotal=subtotal,
        sale_subtotal=sum((line_subtotal(line) for line in cart.lines if not line.is_return), ZERO),
        return_subtotal=sum((-line_subtotal(line) for line in cart.lines if line.is_return), ZERO),
        item_discount_total=item_discounts,
        order_discount_amount=order_discount,
        total=subtotal - item_discounts - order_discount,
    )


def excessive_discounts(cart) -> dict | None:
    """Describe discounts larger than what they apply to, or None.

    The computation above never clamps; this is the check callers use to
    refuse such a cart before it becomes an invoice.
    """
    line_ids = [
        line.line_id
        for line in cart.lines
        if not line.is_return and item_discount_amount(line) > line_subtotal(line)
    ]
    base = order_discount_base(cart)
    order_amount = order_discount_amount(cart)
    order_exceeds = order_amount < 0 or order_amount > max(base, ZERO)
    if not line_ids and not order_exceeds:
        return None
    return {
        "line_ids": line_ids,
        "order_discount_exceeds": order_exceeds,
        "order_discount_base": base,
        "order_discount_amount": order_amount,
    }
