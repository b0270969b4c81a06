"""Per-request values that log records and error envelopes pick up."""

import contextvars
import re
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

request_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default="-"
)
principal_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar(
    "principal_id", default="-"
)


def resolve_request_id(raw: str | None) -> str:
    """Reuse the caller's request id when it is a plain token, else mint one."""
    candidate = (raw or "").strip()
    if _REQUEST_ID_PATTERN.match(candidate):
        return candidate
    return uuid.uuid4().hex


def bind_principal(user_id: int) -> None:
    principal_id_ctx.set(str(user_id))


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        request_token = request_id_ctx.set(request_id)
        principal_token = principal_id_ctx.set("-")
        try:
            response = await call_next(request)
        finally:
            principal_id_ctx.reset(principal_token)
            request_id_ctx.reset(request_token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
