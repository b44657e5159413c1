from __future__ import annotations

import logging
import threading
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.till.core.config import settings
from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.db.models import ExpenseRecord, InvoiceLineRecord, InvoiceRecord
from app.till.engine.models import Expense, Invoice, InvoiceLine
from app.till.repos.invoices import ExpenseRepository, InvoiceQueryFilters, InvoiceRepository

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
_MAX_NUMBER_ATTEMPTS = 3


def next_invoice_number(business_date: date, sequence: int, prefix: str | None = None) -> str:
    return f"{prefix or settings.INVOICE_NUMBER_PREFIX}-{business_date:%Y%m%d}-{sequence:04d}"


def _daily_prefix(business_date: date) -> str:
    return f"{settings.INVOICE_NUMBER_PREFIX}-{business_date:%Y%m%d}-"


def _money(value) -> Decimal:
    return Decimal(str(value or 0.0)).quantize(CENT)


def _not_found(invoice_id: str) -> AppError:
    return AppError(ErrorCatalog.NOT_FOUND, details={"message": "invoice not found", "invoice_id": invoice_id})


class InMemoryInvoiceLedger:
    """Process-local ledger; used by tests and the ``memory`` backend."""

    def __init__(self) -> None:
        self._invoices: dict[str, Invoice] = {}
        self._expenses: list[Expense] = []
        self._lock = threading.Lock()

    def get(self, invoice_id: str) -> Invoice:
        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            raise _not_found(invoice_id)
        return invoice

    def submit(self, draft: Invoice) -> Invoice:
        with self._lock:
            business_date = draft.business_date
            prefix = _daily_prefix(business_date)
            sequence = sum(1 for number in self._invoices if number.startswith(prefix)) + 1
            invoice = draft.model_copy(update={"id": next_invoice_number(business_date, sequence)})
            self._invoices[invoice.id] = invoice
        return invoice

    def returned_quantities(self, invoice_id: str) -> dict[str, int]:
        returned: dict[str, int] = {}
        for invoice in list(self._invoices.values()):
            for line in invoice.return_lines:
                if line.return_of_invoice_id == invoice_id and line.return_of_line_id:
                    returned[line.return_of_line_id] = returned.get(line.return_of_line_id, 0) - line.quantity
        return returned

    def list_invoices(self, business_date: date, cashier_id: str | None = None) -> list[Invoice]:
        return [
            invoice
            for invoice in self._invoices.values()
            if invoice.business_date == business_date and (cashier_id is None or invoice.cashier_id == cashier_id)
        ]

    def add_expense(self, expense: Expense) -> Expense:
        self._expenses.append(expense)
        return expense

    def list_expenses(self, business_date: date) -> list[Expense]:
        return [expense for expense in self._expenses if expense.business_date == business_date]


def invoice_from_record(record: InvoiceRecord) -> Invoice:
    return Invoice(
        id=record.invoice_number,
        timestamp=record.issued_at,
        lines=tuple(
            InvoiceLine(
                line_id=line.line_id,
                product_id=line.product_id,
                name=line.name,
                unit_price=_money(line.unit_price),
                quantity=line.quantity,
                discount_kind=line.discount_kind,
                discount_value=line.discount_value,
                discount_amount=_money(line.discount_amount),
                is_return=line.is_return,
                return_of_invoice_id=line.return_of_invoice_id,
                return_of_line_id=line.return_of_line_id,
                refund_method=line.refund_method,
                reason=line.reason,
            )
            for line in record.lines
        ),
        subtotal=_money(record.subtotal),
        item_discount_total=_money(record.item_discount_total),
        order_discount_kind=record.order_discount_kind,
        order_discount_value=record.order_discount_value,
        order_discount_amount=_money(record.order_discount_amount),
        tax=_money(record.tax),
        total=_money(record.total),
        payment_method=record.payment_method,
        tendered=_money(record.tendered),
        balance=_money(record.balance),
        cashier_id=record.cashier_id,
        cashier_name=record.cashier_name,
        customer_phone=record.customer_phone,
    )


def _record_from_draft(draft: Invoice, invoice_number: str) -> InvoiceRecord:
    record = InvoiceRecord(
        id=uuid.uuid4(),
        invoice_number=invoice_number,
        business_date=draft.business_date,
        issued_at=draft.timestamp,
        subtotal=float(draft.subtotal),
        item_discount_total=float(draft.item_discount_total),
        order_discount_kind=draft.order_discount_kind,
        order_discount_value=draft.order_discount_value,
        order_discount_amount=float(draft.order_discount_amount),
        tax=float(draft.tax),
        total=float(draft.total),
        payment_method=draft.payment_method,
        tendered=float(draft.tendered),
        balance=float(draft.balance),
        cashier_id=draft.cashier_id,
        cashier_name=draft.cashier_name,
        customer_phone=draft.customer_phone,
    )
    record.lines = [
        InvoiceLineRecord(
            id=uuid.uuid4(),
            position=position,
            line_id=line.line_id,
            product_id=line.product_id,
            name=line.name,
            unit_price=float(line.unit_price),
            quantity=line.quantity,
            discount_kind=line.discount_kind,
            discount_value=line.discount_value,
            discount_amount=float(line.discount_amount),
            is_return=line.is_return,
            return_of_invoice_id=line.return_of_invoice_id,
            return_of_line_id=line.return_of_line_id,
            refund_method=line.refund_method,
            reason=line.reason,
        )
        for position, line in enumerate(draft.lines)
    ]
    return record


def _expense_from_record(record: ExpenseRecord) -> Expense:
    return Expense(
        business_date=record.business_date,
        amount=_money(record.amount),
        payment_method=record.payment_method,
        description=record.description,
    )


class SqlInvoiceLedger:
    """Ledger backed by the ``invoices``/``expenses`` tables.

    Every call opens its own session from ``session_factory`` so a single
    instance can serve all terminals.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def get(self, invoice_id: str) -> Invoice:
        with self._session_factory() as db:
            record = InvoiceRepository(db).get_by_number(invoice_id)
            if record is None:
                raise _not_found(invoice_id)
            return invoice_from_record(record)

    def submit(self, draft: Invoice) -> Invoice:
        business_date = draft.business_date
        for attempt in range(_MAX_NUMBER_ATTEMPTS):
            with self._session_factory() as db:
                repo = InvoiceRepository(db)
                try:
                    sequence = repo.count_with_prefix(_daily_prefix(business_date)) + 1
                    record = repo.add(_record_from_draft(draft, next_invoice_number(business_date, sequence)))
                    db.commit()
                    db.refresh(record)
                    return invoice_from_record(record)
                except IntegrityError:
                    # another terminal took the same daily number
                    db.rollback()
                    logger.warning("invoice number collision on attempt %s", attempt + 1)
                except SQLAlchemyError as exc:
                    db.rollback()
                    raise AppError(
                        ErrorCatalog.SUBMISSION_FAILED,
                        details={"message": "invoice could not be stored", "type": exc.__class__.__name__},
                    ) from exc
        raise AppError(
            ErrorCatalog.SUBMISSION_FAILED,
            details={"message": "could not allocate an invoice number", "business_date": business_date.isoformat()},
        )

    def returned_quantities(self, invoice_id: str) -> dict[str, int]:
        with self._session_factory() as db:
            return InvoiceRepository(db).returned_quantities(invoice_id)

    def list_invoices(self, business_date: date, cashier_id: str | None = None) -> list[Invoice]:
        with self._session_factory() as db:
            records = InvoiceRepository(db).list_invoices(
                InvoiceQueryFilters(business_date=business_date, cashier_id=cashier_id)
            )
            return [invoice_from_record(record) for record in records]

    def add_expense(self, expense: Expense) -> Expense:
        with self._session_factory() as db:
            record = ExpenseRepository(db).add(
                ExpenseRecord(
                    id=uuid.uuid4(),
                    business_date=expense.business_date,
                    amount=float(expense.amount),
                    payment_method=expense.payment_method,
                    description=expense.description,
                )
            )
            db.commit()
            db.refresh(record)
            return _expense_from_record(record)

    def list_expenses(self, business_date: date) -> list[Expense]:
        with self._session_factory() as db:
            return [_expense_from_record(record) for record in ExpenseRepository(db).list_for_date(business_date)]


def build_ledger():
    backend = settings.LEDGER_BACKEND.lower()
    if backend == "memory":
        return InMemoryInvoiceLedger()
    if backend == "remote":
        from app.till.services.remote_ledger import RemoteSalesLedger

        return RemoteSalesLedger(settings.LEDGER_API_BASE_URL, timeout=settings.LEDGER_TIMEOUT_SECONDS)
    if backend == "sql":
        from app.till.db import session as db_session

        return SqlInvoiceLedger(db_session.SessionLocal)
    raise AppError(
        ErrorCatalog.INVALID_CONFIGURATION,
        details={"message": "unknown ledger backend", "LEDGER_BACKEND": settings.LEDGER_BACKEND},
    )
