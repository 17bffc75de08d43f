from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def generate_request_id() -> str:
    return uuid.uuid4().hex


def set_request_id(request_id: str | None) -> None:
    """Store request id in context (None to clear)."""
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


def resolve_request_id(incoming: str | None) -> str:
    """Reuse a caller-supplied id when it is usable, otherwise mint a new one."""
    if incoming is not None:
        incoming = incoming.strip()
        if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
            return incoming
    return generate_request_id()
