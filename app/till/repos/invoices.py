from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, select

from app.till.db.models import ExpenseRecord, InvoiceLineRecord, InvoiceRecord


@dataclass(frozen=True)
class InvoiceQueryFilters:
    business_date: date | None = None
    cashier_id: str | None = None


class InvoiceRepository:
    def __init__(self, db):
        self.db = db

    def get_by_number(self, invoice_number: str) -> InvoiceRecord | None:
        return (
            self.db.execute(select(InvoiceRecord).where(InvoiceRecord.invoice_number == invoice_number))
            .scalars()
            .first()
        )

    def list_invoices(self, filters: InvoiceQueryFilters) -> list[InvoiceRecord]:
        query = select(InvoiceRecord)
        if filters.business_date is not None:
            query = query.where(InvoiceRecord.business_date == filters.business_date)
        if filters.cashier_id:
            query = query.where(InvoiceRecord.cashier_id == filters.cashier_id)
        return self.db.execute(query.order_by(InvoiceRecord.issued_at, InvoiceRecord.invoice_number)).scalars().all()

    def count_with_prefix(self, prefix: str) -> int:
        query = select(func.count()).select_from(InvoiceRecord).where(InvoiceRecord.invoice_number.like(f"{prefix}%"))
        return int(self.db.execute(query).scalar_one())

    def returned_quantities(self, invoice_id: str) -> dict[str, int]:
        query = (
            select(InvoiceLineRecord.return_of_line_id, func.sum(InvoiceLineRecord.quantity))
            .where(
                InvoiceLineRecord.is_return.is_(True),
                InvoiceLineRecord.return_of_invoice_id == invoice_id,
            )
            .group_by(InvoiceLineRecord.return_of_line_id)
        )
        return {line_id: -int(quantity) for line_id, quantity in self.db.execute(query).all() if line_id}

    def add(self, record: InvoiceRecord) -> InvoiceRecord:
        self.db.add(record)
        self.db.flush()
        return record


class ExpenseRepository:
    def __init__(self, db):
        self.db = db

    def list_for_date(self, business_date: date) -> list[ExpenseRecord]:
        return (
            self.db.execute(
                select(ExpenseRecord)
                .where(ExpenseRecord.business_date == business_date)
                .order_by(ExpenseRecord.created_at)
            )
            .scalars()
            .all()
        )

    def add(self, record: ExpenseRecord) -> ExpenseRecord:
        self.db.add(record)
        self.db.flush()
        return record
