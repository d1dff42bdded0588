"""Correlation ID propagation across a trigger invocation.

HTTP requests get an id from the X-Correlation-ID header or a fresh uuid.
Trigger deliveries then switch to the event id, so every redelivery of one
document-created event logs under the same id.
"""

import uuid
from contextvars import ContextVar, Token

# Visible to every coroutine spawned from the request (asyncio copies context)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    """Fresh id for a request that arrived without one."""
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Id in effect for the current request, or "" outside one."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    """Bind `cid` to the current context; keep the token to undo it."""
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    """Restore the id that was bound before set_correlation_id()."""
    correlation_id_var.reset(token)


def bind_event_id(event_id: str | None, header_value: str | None) -> str:
    """Correlate a trigger delivery by its event id.

    An explicit header always wins; without one the event id replaces the
    generated uuid. Returns the id now in effect.
    """
    if event_id and not header_value:
        correlation_id_var.set(event_id)
    return correlation_id_var.get()
