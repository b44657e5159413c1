from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from app.till.core.deps import get_ledger, get_payment_calculator, get_terminal
from app.till.engine.models import Invoice
from app.till.engine.payments import PaymentCalculator
from app.till.schemas.invoices import (
    CheckoutRequest,
    InvoiceListResponse,
    InvoiceResponse,
    TenderPreviewRequest,
    TenderPreviewResponse,
)
from app.till.services.terminals import TerminalSession

router = APIRouter()


def invoice_response(invoice: Invoice) -> InvoiceResponse:
    return InvoiceResponse(
        **invoice.model_dump(),
        business_date=invoice.business_date,
        amount_due=invoice.amount_due,
        refund_payouts=invoice.refund_payouts,
    )


@router.post("/till/terminals/{terminal_id}/checkout/preview", response_model=TenderPreviewResponse)
def preview_tender(
    payload: TenderPreviewRequest,
    session: TerminalSession = Depends(get_terminal),
    calculator: PaymentCalculator = Depends(get_payment_calculator),
):
    result = calculator.quote(session.cart, payload.payment_method, payload.tendered)
    return TenderPreviewResponse(
        payment_method=result.payment_method,
        total=result.total,
        amount_due=result.amount_due,
        refund_payouts=dict(result.refund_payouts),
        tendered=result.tendered,
        balance=result.balance,
        is_sufficient=result.is_sufficient,
    )


@router.post("/till/terminals/{terminal_id}/checkout", response_model=InvoiceResponse, status_code=201)
def checkout(
    payload: CheckoutRequest,
    session: TerminalSession = Depends(get_terminal),
    calculator: PaymentCalculator = Depends(get_payment_calculator),
):
    with session.lock:
        invoice = calculator.complete(
            session.cart,
            payload.payment_method,
            payload.tendered,
            cashier_id=payload.cashier_id,
            cashier_name=payload.cashier_name,
            customer_phone=payload.customer_phone,
        )
        session.returns.reset()
    return invoice_response(invoice)


@router.get("/till/invoices/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(invoice_id: str, ledger=Depends(get_ledger)):
    return invoice_response(ledger.get(invoice_id))


@router.get("/till/invoices", response_model=InvoiceListResponse)
def list_invoices(
    business_date: date = Query(...),
    cashier_id: str | None = Query(default=None),
    ledger=Depends(get_ledger),
):
    invoices = ledger.list_invoices(business_date, cashier_id)
    return InvoiceListResponse(invoices=[invoice_response(invoice) for invoice in invoices])
