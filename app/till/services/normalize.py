"""Boundary normalization of ledger payloads.

Sales backends answer in several shapes: ``{success, data}`` wrappers or
bare bodies, Mongo ``_id`` or invoice numbers, camelCase or snake_case
keys, ``items`` or ``lines``. Everything is mapped onto the canonical
``Invoice``/``Expense`` here so the engine never sees those differences.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from pydantic import ValidationError

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.engine.models import Expense, Invoice, InvoiceLine, normalize_payment_method

_MISSING = object()


def _malformed(message: str, **details) -> AppError:
    return AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": message, **details})


def _pick(payload: Mapping, *keys, default=None):
    for key in keys:
        value = payload.get(key, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def _money(value, field: str) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise _malformed("amount is not numeric", field=field, value=str(value))
    if not amount.is_finite():
        raise _malformed("amount is not finite", field=field, value=str(value))
    return amount


def _ref_id(value) -> str | None:
    if isinstance(value, Mapping):
        value = _pick(value, "_id", "id")
    return None if value is None else str(value)


def _ref_name(value) -> str | None:
    if isinstance(value, Mapping):
        return _pick(value, "name", "username")
    return None


def _timestamp(value) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise _malformed("timestamp is not ISO-8601", value=str(value))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def unwrap(payload):
    """Strip the ``{success, data, message}`` envelope if present."""
    if not isinstance(payload, Mapping):
        return payload
    if payload.get("success") is False:
        raise AppError(
            ErrorCatalog.LEDGER_UNAVAILABLE,
            details={"message": payload.get("message") or "ledger rejected the request"},
        )
    if "data" in payload:
        return payload["data"]
    return payload


def _line_from_payload(item: Mapping, index: int, fallback: InvoiceLine | None) -> InvoiceLine:
    base = fallback.model_dump() if fallback is not None else {}
    product = _pick(item, "product", "product_id", "productId")
    quantity = _pick(item, "quantity", "qty", default=base.get("quantity"))
    if quantity is None:
        raise _malformed("invoice line has no quantity", index=index)
    quantity = int(quantity)
    raw_price = _pick(item, "unit_price", "unitPrice", "price")
    discount_amount = _money(_pick(item, "discount_amount", "discountAmount", "discount"), "discount")
    is_return = _pick(item, "is_return", "isReturn", default=base.get("is_return", quantity < 0))
    refund_method = _pick(item, "refund_method", "refundMethod", default=base.get("refund_method"))
    values = {
        **base,
        "line_id": str(_pick(item, "line_id", "lineId", "_id", "id", default=base.get("line_id") or index)),
        "product_id": _ref_id(product) or base.get("product_id"),
        "name": _pick(item, "name", default=_ref_name(product) or base.get("name")),
        "unit_price": _money(raw_price, "unit_price") if raw_price is not None else base.get("unit_price"),
        "quantity": quantity,
        "is_return": bool(is_return),
        "return_of_invoice_id": _pick(
            item, "return_of_invoice_id", "returnOfInvoiceId", default=base.get("return_of_invoice_id")
        ),
        "return_of_line_id": _pick(item, "return_of_line_id", "returnOfLineId", default=base.get("return_of_line_id")),
        "refund_method": normalize_payment_method(refund_method) if refund_method else None,
        "reason": _pick(item, "reason", default=base.get("reason")),
    }
    if discount_amount is not None:
        values["discount_amount"] = discount_amount
        values["discount_kind"] = _pick(item, "discount_kind", "discountKind", default=base.get("discount_kind", "fixed"))
        values["discount_value"] = str(
            _pick(item, "discount_value", "discountValue", default=base.get("discount_value") or discount_amount)
        )
    if values["product_id"] is None or values["unit_price"] is None:
        raise _malformed("invoice line is missing product or price", index=index)
    try:
        return InvoiceLine(**values)
    except ValidationError as exc:
        raise _malformed("invoice line is invalid", index=index, errors=str(exc))


def normalize_invoice_payload(payload, fallback: Invoice | None = None) -> Invoice:
    """Build a canonical invoice from a ledger response.

    ``fallback`` supplies fields the response leaves out; a backend that
    only echoes the id and number still yields a complete invoice when the
    submitted draft is passed here.
    """
    data = unwrap(payload)
    if isinstance(data, Mapping) and isinstance(data.get("sale"), Mapping):
        data = data["sale"]
    if not isinstance(data, Mapping):
        raise _malformed("invoice payload must be an object")

    base = fallback.model_dump() if fallback is not None else {}
    raw_items = _pick(data, "lines", "items")
    fallback_lines = list(fallback.lines) if fallback is not None else []
    if raw_items is None:
        lines = tuple(fallback_lines)
    else:
        lines = tuple(
            _line_from_payload(item, index, fallback_lines[index] if index < len(fallback_lines) else None)
            for index, item in enumerate(raw_items)
        )

    item_discount_total = _money(_pick(data, "item_discount_total", "itemDiscountTotal"), "item_discount_total")
    if item_discount_total is None:
        item_discount_total = base.get("item_discount_total")
    if item_discount_total is None:
        item_discount_total = sum((line.discount_amount for line in lines), Decimal("0.00"))

    order_discount_amount = _money(
        _pick(data, "order_discount_amount", "orderDiscountAmount"), "order_discount_amount"
    )
    if order_discount_amount is None:
        overall = _money(_pick(data, "discount"), "discount")
        if overall is not None:
            order_discount_amount = overall - item_discount_total
        else:
            order_discount_amount = base.get("order_discount_amount", Decimal("0.00"))

    total = _money(_pick(data, "total", "grand_total", "grandTotal"), "total")
    if total is None:
        total = base.get("total")
    subtotal = _money(_pick(data, "subtotal", "sub_total", "subTotal"), "subtotal")
    if subtotal is None:
        subtotal = base.get("subtotal", sum((line.line_subtotal for line in lines), Decimal("0.00")))
    if total is None:
        raise _malformed("invoice payload has no total")

    method = _pick(data, "payment_method", "paymentMethod", default=base.get("payment_method"))
    tendered = _money(_pick(data, "tendered", "amountPaid", "amount_paid"), "tendered")
    if tendered is None:
        tendered = base.get("tendered", total)
    balance = _money(_pick(data, "balance", "change"), "balance")
    if balance is None:
        balance = base.get("balance", tendered - total)

    tax = _money(_pick(data, "tax"), "tax")
    cashier = _pick(data, "cashier", "cashier_id", "cashierId")
    values = {
        **base,
        "id": _pick(data, "invoice_number", "invoiceNumber", "id", "_id", default=base.get("id")),
        "timestamp": _timestamp(_pick(data, "timestamp", "createdAt", "created_at")) or base.get("timestamp"),
        "lines": lines,
        "subtotal": subtotal,
        "item_discount_total": item_discount_total,
        "order_discount_kind": _pick(
            data, "order_discount_kind", "orderDiscountKind", default=base.get("order_discount_kind", "fixed")
        ),
        "order_discount_value": str(
            _pick(data, "order_discount_value", "orderDiscountValue", default=base.get("order_discount_value", ""))
        ),
        "order_discount_amount": order_discount_amount,
        "tax": tax if tax is not None else base.get("tax", Decimal("0.00")),
        "total": total,
        "payment_method": normalize_payment_method(method),
        "tendered": tendered,
        "balance": balance,
        "cashier_id": _ref_id(cashier) or base.get("cashier_id"),
        "cashier_name": _pick(data, "cashier_name", "cashierName", default=_ref_name(cashier) or base.get("cashier_name")),
        "customer_phone": _pick(data, "customer_phone", "customerPhone", default=base.get("customer_phone")),
    }
    if values["id"] is not None:
        values["id"] = str(values["id"])
    if values["timestamp"] is None:
        raise _malformed("invoice payload has no timestamp")
    try:
        return Invoice(**values)
    except ValidationError as exc:
        raise _malformed("invoice payload is invalid", errors=str(exc))


def normalize_invoice_list(payload) -> list[Invoice]:
    data = unwrap(payload)
    if isinstance(data, Mapping):
        data = _pick(data, "sales", "invoices", "items", default=[])
    if not isinstance(data, list):
        raise _malformed("invoice list payload must be a list")
    return [normalize_invoice_payload(item) for item in data]


def normalize_expense_payload(payload) -> Expense:
    data = unwrap(payload)
    if not isinstance(data, Mapping):
        raise _malformed("expense payload must be an object")
    raw_date = _pick(data, "business_date", "businessDate", "date", "createdAt")
    if isinstance(raw_date, date) and not isinstance(raw_date, datetime):
        business_date = raw_date
    else:
        stamp = _timestamp(raw_date)
        if stamp is None:
            raise _malformed("expense payload has no date")
        business_date = stamp.date()
    amount = _money(_pick(data, "amount"), "amount")
    if amount is None:
        raise _malformed("expense payload has no amount")
    method = str(_pick(data, "payment_method", "paymentMethod", default="cash"))
    return Expense(
        business_date=business_date,
        amount=amount,
        payment_method=method.strip().upper().replace(" ", "_"),
        description=_pick(data, "description", "title", "category"),
    )
