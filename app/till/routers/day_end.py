from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.till.core.deps import get_ledger, get_reconciler
from app.till.engine.day_end import DayEndReconciler, DayEndSummary
from app.till.engine.models import Expense
from app.till.schemas.day_end import DayEndRequest, DayEndResponse, ExpenseCreateRequest, ExpenseResponse
from app.till.services.reports import TextReportRenderer

router = APIRouter()


def _summary_for(payload: DayEndRequest, reconciler: DayEndReconciler) -> DayEndSummary:
    summary = reconciler.reconcile(
        payload.business_date,
        opening_cash=payload.opening_cash,
        cashier_id=payload.cashier_id,
        cashier_name=payload.cashier_name,
        shift_start=payload.shift_start,
        shift_end=payload.shift_end,
    )
    if payload.actual_cash_counted is not None:
        summary.actual_cash_counted = payload.actual_cash_counted
    summary.notes = payload.notes or ""
    summary.signature = payload.signature or ""
    return summary


def _summary_response(summary: DayEndSummary) -> DayEndResponse:
    return DayEndResponse(
        business_date=summary.business_date,
        cashier_id=summary.cashier_id,
        cashier_name=summary.cashier_name,
        shift_start=summary.shift_start,
        shift_end=summary.shift_end,
        opening_cash=summary.opening_cash,
        total_sales=summary.total_sales,
        total_orders=summary.total_orders,
        sales_by_method=summary.sales_by_method,
        total_cash_sales=summary.total_cash_sales,
        total_cash_refunds=summary.total_cash_refunds,
        total_expenses=summary.total_expenses,
        cash_expenses=summary.cash_expenses,
        total_discounts=summary.total_discounts,
        total_tax=summary.total_tax,
        net_revenue=summary.net_revenue,
        expected_cash=summary.expected_cash,
        actual_cash_counted=summary.actual_cash_counted,
        difference=summary.difference,
        is_balanced=summary.is_balanced,
        notes=summary.notes,
        signature=summary.signature,
    )


@router.post("/till/expenses", response_model=ExpenseResponse, status_code=201)
def create_expense(payload: ExpenseCreateRequest, ledger=Depends(get_ledger)):
    expense = ledger.add_expense(
        Expense(
            business_date=payload.business_date,
            amount=payload.amount,
            payment_method=payload.payment_method.strip().upper().replace(" ", "_"),
            description=payload.description,
        )
    )
    return ExpenseResponse(**expense.model_dump())


@router.post("/till/day-end", response_model=DayEndResponse)
def reconcile_day_end(payload: DayEndRequest, reconciler: DayEndReconciler = Depends(get_reconciler)):
    return _summary_response(_summary_for(payload, reconciler))


@router.post("/till/day-end/report", response_class=PlainTextResponse)
def day_end_report(payload: DayEndRequest, reconciler: DayEndReconciler = Depends(get_reconciler)):
    summary = _summary_for(payload, reconciler)
    return PlainTextResponse(reconciler.print_day_end_report(summary, TextReportRenderer()))
