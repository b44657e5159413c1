"""till ledger tables

Revision ID: 0001_till_ledger
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_till_ledger"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "invoices",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("invoice_number", sa.String(length=32), nullable=False),
        sa.Column("business_date", sa.Date(), nullable=False),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.Column("subtotal", sa.Float(), nullable=False, server_default="0"),
        sa.Column("item_discount_total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("order_discount_kind", sa.String(length=20), nullable=False, server_default="fixed"),
        sa.Column("order_discount_value", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("order_discount_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("tax", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("tendered", sa.Float(), nullable=False, server_default="0"),
        sa.Column("balance", sa.Float(), nullable=False, server_default="0"),
        sa.Column("cashier_id", sa.String(length=100), nullable=True),
        sa.Column("cashier_name", sa.String(length=255), nullable=True),
        sa.Column("customer_phone", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"], unique=True)
    op.create_index("ix_invoices_business_date", "invoices", ["business_date"])
    op.create_index("ix_invoices_cashier_id", "invoices", ["cashier_id"])
    op.create_index("ix_invoices_date_cashier", "invoices", ["business_date", "cashier_id"])

    op.create_table(
        "invoice_lines",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("invoice_id", GUID(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("line_id", sa.String(length=32), nullable=False),
        sa.Column("product_id", sa.String(length=100), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("unit_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("discount_kind", sa.String(length=20), nullable=False, server_default="fixed"),
        sa.Column("discount_value", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("discount_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_return", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("return_of_invoice_id", sa.String(length=32), nullable=True),
        sa.Column("return_of_line_id", sa.String(length=32), nullable=True),
        sa.Column("refund_method", sa.String(length=20), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"])
    op.create_index("ix_invoice_lines_return_of_invoice_id", "invoice_lines", ["return_of_invoice_id"])

    op.create_table(
        "expenses",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("business_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(length=20), nullable=False, server_default="CASH"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_expenses_business_date", "expenses", ["business_date"])


def downgrade() -> None:
    op.drop_index("ix_expenses_business_date", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_invoice_lines_return_of_invoice_id", table_name="invoice_lines")
    op.drop_index("ix_invoice_lines_invoice_id", table_name="invoice_lines")
    op.drop_table("invoice_lines")
    op.drop_index("ix_invoices_date_cashier", table_name="invoices")
    op.drop_index("ix_invoices_cashier_id", table_name="invoices")
    op.drop_index("ix_invoices_business_date", table_name="invoices")
    op.drop_index("ix_invoices_invoice_number", table_name="invoices")
    op.drop_table("invoices")
