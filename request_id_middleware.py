"""Request correlation for the API.

Every request gets an id, echoed back in ``X-Request-ID`` and bound into
structlog contextvars, so the log lines of one ranking run (batch progress,
scoring failures, the persisted analysis id) can be grepped together.
"""
from __future__ import annotations

import re
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

REQUEST_ID_HEADER = "X-Request-ID"

# Caller ids end up in logs and headers: short, printable tokens only
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9\-_.]{1,64}$")


def resolve_request_id(incoming: Optional[str]) -> str:
    """Keep a well-formed caller id, otherwise mint a hyphen-less uuid4."""
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = REQUEST_ID_HEADER) -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:  # type: ignore[override]
        request_id = resolve_request_id(request.headers.get(self.header_name))
        request.state.request_id = request_id
        bind_contextvars(request_id=request_id, path=request.url.path)

        try:
            response = await call_next(request)
        finally:
            clear_contextvars()

        response.headers[self.header_name] = request_id
        return response
