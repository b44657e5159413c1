from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import date, datetime, time as dt_time
from typing import Any
from urllib.parse import urljoin

import requests

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.engine.models import Expense, Invoice
from app.till.services.normalize import (
    normalize_expense_payload,
    normalize_invoice_list,
    normalize_invoice_payload,
    unwrap,
)

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-ID"


def sale_payload(draft: Invoice) -> dict[str, Any]:
    """Request body in the sales backend's camelCase shape."""
    return {
        "items": [
            {
                "lineId": line.line_id,
                "product": line.product_id,
                "name": line.name,
                "quantity": line.quantity,
                "unitPrice": float(line.unit_price),
                "discount": float(line.discount_amount),
                "discountKind": line.discount_kind,
                "discountValue": line.discount_value,
                "isReturn": line.is_return,
                "returnOfInvoiceId": line.return_of_invoice_id,
                "returnOfLineId": line.return_of_line_id,
                "refundMethod": line.refund_method.lower() if line.refund_method else None,
                "reason": line.reason,
            }
            for line in draft.lines
        ],
        "subtotal": float(draft.subtotal),
        "discount": float(draft.item_discount_total + draft.order_discount_amount),
        "orderDiscountKind": draft.order_discount_kind,
        "orderDiscountValue": draft.order_discount_value,
        "orderDiscountAmount": float(draft.order_discount_amount),
        "tax": float(draft.tax),
        "total": float(draft.total),
        "refunds": {method.lower(): float(amount) for method, amount in draft.refunds_by_method.items()},
        "amountPaid": float(draft.tendered),
        "change": float(draft.balance),
        "paymentMethod": draft.payment_method.lower(),
        "cashierId": draft.cashier_id,
        "cashierName": draft.cashier_name,
        "customerPhone": draft.customer_phone,
        "createdAt": draft.timestamp.isoformat(),
    }


class RemoteSalesLedger:
    """Ledger collaborator talking to a remote sales backend over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        token: str | None = None,
        retries: int = 2,
        retry_backoff_seconds: float = 0.3,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.token = token
        self.retries = retries
        self.retry_backoff_seconds = retry_backoff_seconds

    def _build_url(self, path: str) -> str:
        base = self.base_url.rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> tuple[int, Any]:
        headers = {"Accept": "application/json", TRACE_HEADER: str(uuid.uuid4())}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        normalized_method = method.upper()
        # only reads are retried
        attempts = self.retries + 1 if normalized_method == "GET" else 1
        url = self._build_url(path)
        response: requests.Response | None = None
        for attempt in range(attempts):
            try:
                response = self.session.request(
                    method=normalized_method,
                    url=url,
                    headers=headers,
                    json=json_body,
                    params=params,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                if attempt >= attempts - 1:
                    raise AppError(
                        ErrorCatalog.LEDGER_UNAVAILABLE,
                        details={"message": str(exc), "type": type(exc).__name__, "url": url},
                    ) from exc
            else:
                if response.status_code < 500 or attempt >= attempts - 1:
                    break
            time.sleep(self.retry_backoff_seconds * (2**attempt))

        payload: Any = None
        if response.content:
            try:
                payload = response.json()
            except (json.JSONDecodeError, ValueError):
                payload = {"message": response.text}
        return response.status_code, payload

    @staticmethod
    def _message(payload: Any) -> str | None:
        if isinstance(payload, dict):
            return payload.get("message")
        return None

    def get(self, invoice_id: str) -> Invoice:
        status_code, payload = self._request("GET", f"sales/{invoice_id}")
        if status_code == 404:
            raise AppError(ErrorCatalog.NOT_FOUND, details={"message": "invoice not found", "invoice_id": invoice_id})
        if status_code >= 400:
            raise AppError(
                ErrorCatalog.LEDGER_UNAVAILABLE,
                details={"status_code": status_code, "message": self._message(payload)},
            )
        return normalize_invoice_payload(payload)

    def submit(self, draft: Invoice) -> Invoice:
        try:
            status_code, payload = self._request("POST", "sales", json_body=sale_payload(draft))
        except AppError as exc:
            raise AppError(ErrorCatalog.SUBMISSION_FAILED, details=exc.details) from exc
        if status_code >= 400:
            logger.warning("sales backend rejected invoice: status=%s", status_code)
            raise AppError(
                ErrorCatalog.SUBMISSION_FAILED,
                details={"status_code": status_code, "message": self._message(payload)},
            )
        if payload is None:
            raise AppError(ErrorCatalog.SUBMISSION_FAILED, details={"message": "empty response from sales backend"})
        return normalize_invoice_payload(payload, fallback=draft)

    def list_invoices(self, business_date: date, cashier_id: str | None = None) -> list[Invoice]:
        params = {
            "startDate": datetime.combine(business_date, dt_time.min).isoformat(),
            "endDate": datetime.combine(business_date, dt_time.max).isoformat(),
            "limit": 1000,
        }
        status_code, payload = self._request("GET", "sales", params=params)
        if status_code >= 400:
            raise AppError(
                ErrorCatalog.LEDGER_UNAVAILABLE,
                details={"status_code": status_code, "message": self._message(payload)},
            )
        return [
            invoice
            for invoice in normalize_invoice_list(payload)
            if invoice.business_date == business_date and (cashier_id is None or invoice.cashier_id == cashier_id)
        ]

    def add_expense(self, expense: Expense) -> Expense:
        body = {
            "amount": float(expense.amount),
            "paymentMethod": expense.payment_method.lower(),
            "description": expense.description,
            "date": expense.business_date.isoformat(),
        }
        status_code, payload = self._request("POST", "expenses", json_body=body)
        if status_code >= 400:
            raise AppError(
                ErrorCatalog.LEDGER_UNAVAILABLE,
                details={"status_code": status_code, "message": self._message(payload)},
            )
        return normalize_expense_payload(payload) if payload else expense

    def list_expenses(self, business_date: date) -> list[Expense]:
        status_code, payload = self._request("GET", "expenses")
        if status_code >= 400:
            raise AppError(
                ErrorCatalog.LEDGER_UNAVAILABLE,
                details={"status_code": status_code, "message": self._message(payload)},
            )
        items = unwrap(payload) or []
        expenses = [normalize_expense_payload(item) for item in items]
        return [expense for expense in expenses if expense.business_date == business_date]
