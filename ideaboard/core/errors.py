import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ideaboard.core.request_context import request_id_ctx

logger = logging.getLogger(__name__)

ERROR_KINDS: dict[int, str] = {
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation",
    429: "rate_limited",
}


def error_kind(status_code: int) -> str:
    return ERROR_KINDS.get(status_code, "unexpected")


class ErrorResponse(BaseModel):
    kind: str
    error_code: str
    message: str
    request_id: str
    details: dict[str, Any] | None = None


class ApiException(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details

    @property
    def kind(self) -> str:
        return error_kind(self.status_code)


def build_error_payload(
    *,
    status_code: int,
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return ErrorResponse(
        kind=error_kind(status_code),
        error_code=error_code,
        message=message,
        details=details,
        request_id=request_id_ctx.get(),
    ).model_dump()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiException)
    async def handle_api_exception(_: Request, exc: ApiException):
        payload = build_error_payload(
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details,
        )
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        issues = [
            {
                "loc": [str(part) for part in error.get("loc", ())],
                "message": str(error.get("msg", "")),
            }
            for error in exc.errors()
        ]
        payload = build_error_payload(
            status_code=422,
            error_code="VALIDATION_FAILED",
            message="Request payload failed validation",
            details={"issues": issues},
        )
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(_: Request, exc: Exception):
        logger.exception("Unhandled backend exception: %s", exc.__class__.__name__)
        payload = build_error_payload(
            status_code=500,
            error_code="INTERNAL_SERVER_ERROR",
            message="Unexpected server error",
        )
        return JSONResponse(status_code=500, content=payload)
