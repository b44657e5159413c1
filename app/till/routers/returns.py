from __future__ import annotations

from fastapi import APIRouter, Depends

from app.till.core.deps import get_terminal
from app.till.engine.returns import ReturnProcessor, ReturnRequest, ReturnSelection
from app.till.routers.cart import cart_response
from app.till.schemas.returns import (
    ReturnApplyRequest,
    ReturnCandidateResponse,
    ReturnCommitResponse,
    ReturnLineUpdateRequest,
    ReturnLoadRequest,
    ReturnSessionResponse,
)
from app.till.services.terminals import TerminalSession

router = APIRouter()


def _session_response(processor: ReturnProcessor) -> ReturnSessionResponse:
    invoice = processor.invoice
    return ReturnSessionResponse(
        state=processor.state.value,
        invoice_id=invoice.id if invoice is not None else None,
        payment_method=invoice.payment_method if invoice is not None else None,
        candidates=[
            ReturnCandidateResponse(
                line_id=candidate.line_id,
                product_id=candidate.line.product_id,
                name=candidate.line.name,
                unit_price=candidate.line.unit_price,
                original_quantity=candidate.line.quantity,
                returnable_quantity=candidate.returnable_quantity,
                return_quantity=candidate.return_quantity,
                reason=candidate.reason,
            )
            for candidate in processor.candidates
        ],
    )


@router.get("/till/terminals/{terminal_id}/returns", response_model=ReturnSessionResponse)
def get_return_session(session: TerminalSession = Depends(get_terminal)):
    return _session_response(session.returns)


@router.post("/till/terminals/{terminal_id}/returns/load", response_model=ReturnSessionResponse)
def load_invoice(payload: ReturnLoadRequest, session: TerminalSession = Depends(get_terminal)):
    with session.lock:
        session.returns.load_invoice(payload.invoice_id)
        return _session_response(session.returns)


@router.patch("/till/terminals/{terminal_id}/returns/lines/{line_id}", response_model=ReturnSessionResponse)
def update_return_line(line_id: str, payload: ReturnLineUpdateRequest, session: TerminalSession = Depends(get_terminal)):
    with session.lock:
        if payload.return_quantity is not None:
            session.returns.set_return_quantity(line_id, payload.return_quantity)
        if payload.reason is not None:
            session.returns.set_return_reason(line_id, payload.reason)
        return _session_response(session.returns)


@router.post("/till/terminals/{terminal_id}/returns/commit", response_model=ReturnCommitResponse)
def commit_return(session: TerminalSession = Depends(get_terminal)):
    with session.lock:
        merged = session.returns.commit()
        return ReturnCommitResponse(merged_line_ids=[line.line_id for line in merged], cart=cart_response(session))


@router.post("/till/terminals/{terminal_id}/returns", response_model=ReturnCommitResponse)
def apply_return(payload: ReturnApplyRequest, session: TerminalSession = Depends(get_terminal)):
    request = ReturnRequest(
        original_invoice_id=payload.original_invoice_id,
        selections=tuple(
            ReturnSelection(line_id=item.line_id, return_quantity=item.return_quantity, reason=item.reason)
            for item in payload.selections
        ),
    )
    with session.lock:
        merged = session.returns.apply(request)
        return ReturnCommitResponse(merged_line_ids=[line.line_id for line in merged], cart=cart_response(session))


@router.delete("/till/terminals/{terminal_id}/returns", response_model=ReturnSessionResponse)
def reset_return(session: TerminalSession = Depends(get_terminal)):
    with session.lock:
        session.returns.reset()
        return _session_response(session.returns)
