from fastapi import Depends, Request

from app.till.engine.day_end import DayEndReconciler
from app.till.engine.events import EventChannel
from app.till.engine.payments import PaymentCalculator
from app.till.services.terminals import TerminalRegistry, TerminalSession


def get_ledger(request: Request):
    return request.app.state.ledger


def get_channel(request: Request) -> EventChannel:
    return request.app.state.channel


def get_registry(request: Request) -> TerminalRegistry:
    return request.app.state.terminals


def get_terminal(terminal_id: str, registry: TerminalRegistry = Depends(get_registry)) -> TerminalSession:
    return registry.get(terminal_id)


def get_payment_calculator(ledger=Depends(get_ledger), channel: EventChannel = Depends(get_channel)) -> PaymentCalculator:
    return PaymentCalculator(ledger, channel)


def get_reconciler(ledger=Depends(get_ledger)) -> DayEndReconciler:
    return DayEndReconciler(ledger, ledger)
