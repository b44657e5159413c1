from fastapi import FastAPI

from app.till.api import api_router
from app.till.core.config import settings
from app.till.core.errors import setup_exception_handlers
from app.till.core.logging import configure_logging
from app.till.engine.contracts import ReturnHistory
from app.till.engine.events import EventChannel
from app.till.middleware.observability import ObservabilityMiddleware
from app.till.middleware.trace import TraceIdMiddleware
from app.till.services.ledger import build_ledger
from app.till.services.subscribers import register_default_subscribers
from app.till.services.terminals import TerminalRegistry


def create_app(ledger=None) -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)

    ledger = ledger if ledger is not None else build_ledger()
    app.state.ledger = ledger
    app.state.channel = register_default_subscribers(EventChannel())
    # the remote backend cannot report earlier returns
    history = ledger if isinstance(ledger, ReturnHistory) else None
    app.state.terminals = TerminalRegistry(ledger, history)

    app.include_router(api_router)
    return app


app = create_app()
