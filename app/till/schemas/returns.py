from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from app.till.schemas.cart import CartResponse


class ReturnLoadRequest(BaseModel):
    invoice_id: str = Field(min_length=1)


class ReturnLineUpdateRequest(BaseModel):
    return_quantity: int | None = None
    reason: str | None = None


class ReturnSelectionRequest(BaseModel):
    line_id: str
    return_quantity: int
    reason: str | None = None


class ReturnApplyRequest(BaseModel):
    original_invoice_id: str
    selections: list[ReturnSelectionRequest]


class ReturnCandidateResponse(BaseModel):
    line_id: str
    product_id: str
    name: str | None
    unit_price: Decimal
    original_quantity: int
    returnable_quantity: int
    return_quantity: int
    reason: str


class ReturnSessionResponse(BaseModel):
    state: str
    invoice_id: str | None
    payment_method: str | None
    candidates: list[ReturnCandidateResponse]


class ReturnCommitResponse(BaseModel):
    merged_line_ids: list[str]
    cart: CartResponse
