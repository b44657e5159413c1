from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from decimal import Decimal

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.engine import discounts
from app.till.engine.discounts import CartTotals
from app.till.engine.models import (
    FIXED,
    PERCENTAGE,
    Cart,
    CartLine,
    OrderDiscount,
    ProductRef,
    normalize_discount_kind,
)
from app.till.engine.tiers import LoyaltyTier

logger = logging.getLogger(__name__)


class CartStore:
    """Owns the line items of the transaction in progress on one terminal.

    Totals are derived from the lines on every read and never cached.
    Instances are not meant to be shared between callers.
    """

    def __init__(self, cart: Cart | None = None):
        self._cart = cart or Cart()

    @property
    def cart(self) -> Cart:
        return self._cart

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._cart.lines)

    @property
    def order_discount(self) -> OrderDiscount:
        return self._cart.order_discount

    @property
    def is_empty(self) -> bool:
        return not self._cart.lines

    def snapshot(self) -> Cart:
        return copy.deepcopy(self._cart)

    def get_line(self, line_id: str) -> CartLine:
        for line in self._cart.lines:
            if line.line_id == line_id:
                return line
        raise AppError(ErrorCatalog.NOT_FOUND, details={"message": "cart line not found", "line_id": line_id})

    def add_line(self, product: ProductRef, qty: int = 1) -> CartLine:
        if qty <= 0:
            raise AppError(
                ErrorCatalog.INVALID_QUANTITY,
                details={"message": "quantity to add must be positive", "qty": qty},
            )
        for line in self._cart.lines:
            if line.product_id == product.product_id and not line.is_return:
                line.quantity += qty
                return line
        line = CartLine(
            product_id=product.product_id,
            name=product.name,
            unit_price=Decimal(str(product.unit_price)),
            quantity=qty,
        )
        self._cart.lines.append(line)
        return line

    def set_quantity(self, line_id: str, qty: int) -> CartLine | None:
        """Set the line's quantity as typed by the operator.

        ``qty`` is a magnitude: a return line stays negative. Zero or less
        removes the line and returns None.
        """
        line = self.get_line(line_id)
        if qty <= 0:
            self.remove_line(line_id)
            return None
        line.quantity = -qty if line.is_return else qty
        return line

    def adjust_quantity(self, line_id: str, delta: int) -> CartLine | None:
        line = self.get_line(line_id)
        return self.set_quantity(line_id, abs(line.quantity) + delta)

    def remove_line(self, line_id: str) -> None:
        line = self.get_line(line_id)
        self._cart.lines.remove(line)

    def set_item_discount(self, line_id: str, kind: str, raw_value) -> CartLine:
        line = self.get_line(line_id)
        line.discount_kind = normalize_discount_kind(kind)
        line.discount_value = "" if raw_value is None else str(raw_value)
        return line

    def set_order_discount(self, kind: str, raw_value) -> OrderDiscount:
        self._cart.order_discount = OrderDiscount(
            kind=normalize_discount_kind(kind),
            value="" if raw_value is None else str(raw_value),
        )
        return self._cart.order_discount

    def apply_loyalty_tier(self, tier: LoyaltyTier) -> OrderDiscount:
        return self.set_order_discount(PERCENTAGE, format(tier.discount_percent, "f"))

    def merge_return_lines(self, lines: Iterable[CartLine]) -> list[CartLine]:
        merged = []
        for line in lines:
            if not line.is_return or line.quantity >= 0:
                raise AppError(
                    ErrorCatalog.INVALID_QUANTITY,
                    details={"message": "return lines must carry a negative quantity", "line_id": line.line_id},
                )
            self._cart.lines.append(line)
            merged.append(line)
        return merged

    def pending_return_quantity(self, invoice_id: str, line_id: str) -> int:
        return sum(
            -line.quantity
            for line in self._cart.lines
            if line.is_return and line.return_of_invoice_id == invoice_id and line.return_of_line_id == line_id
        )

    def clear(self) -> None:
        self._cart = Cart(order_discount=OrderDiscount(kind=FIXED, value=""))
        logger.debug("cart cleared")

    def item_discount_amount(self, line_id: str) -> Decimal:
        return discounts.item_discount_amount(self.get_line(line_id))

    @property
    def subtotal(self) -> Decimal:
        return discounts.cart_subtotal(self._cart)

    @property
    def item_discount_total(self) -> Decimal:
        return discounts.item_discount_total(self._cart)

    @property
    def order_discount_amount(self) -> Decimal:
        return discounts.order_discount_amount(self._cart)

    @property
    def total(self) -> Decimal:
        return discounts.grand_total(self._cart)

    def totals(self) -> CartTotals:
        return discounts.cart_totals(self._cart)
