from __future__ import annotations

import threading
from dataclasses import dataclass, field

from app.till.engine.cart import CartStore
from app.till.engine.contracts import InvoiceLookup, ReturnHistory
from app.till.engine.returns import ReturnProcessor


@dataclass
class TerminalSession:
    terminal_id: str
    cart: CartStore
    returns: ReturnProcessor
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class TerminalRegistry:
    """One open transaction per terminal id.

    The registry lock only guards the mapping. Work on a session is
    serialized by the session's own lock.
    """

    def __init__(self, lookup: InvoiceLookup, history: ReturnHistory | None = None):
        self._lookup = lookup
        self._history = history
        self._sessions: dict[str, TerminalSession] = {}
        self._lock = threading.Lock()

    def get(self, terminal_id: str) -> TerminalSession:
        with self._lock:
            session = self._sessions.get(terminal_id)
            if session is None:
                cart = CartStore()
                session = TerminalSession(
                    terminal_id=terminal_id,
                    cart=cart,
                    returns=ReturnProcessor(self._lookup, cart, self._history),
                )
                self._sessions[terminal_id] = session
            return session

    def discard(self, terminal_id: str) -> None:
        with self._lock:
            self._sessions.pop(terminal_id, None)

    def terminal_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._sessions)
