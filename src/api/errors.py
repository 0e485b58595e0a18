"""Map domain exceptions to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.models.schemas import ErrorResponse
from src.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InputValidationError,
    NotFoundError,
    QuillError,
    QuotaExceededError,
    TokenVerificationError,
    UnauthenticatedError,
)
from src.core.logging import get_logger

log = get_logger(__name__)

# Format: Exception -> (status_code, error_code). First isinstance match wins.
EXCEPTION_MAP: tuple[tuple[type[QuillError], int, str], ...] = (
    (InputValidationError, status.HTTP_400_BAD_REQUEST, "validation_error"),
    (ConflictError, status.HTTP_400_BAD_REQUEST, "conflict"),
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED, "unauthenticated"),
    (TokenVerificationError, status.HTTP_401_UNAUTHORIZED, "unauthenticated"),
    (ForbiddenError, status.HTTP_403_FORBIDDEN, "forbidden"),
    (QuotaExceededError, status.HTTP_403_FORBIDDEN, "quota_exceeded"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
)

_GENERIC_UNAUTHENTICATED = "Invalid or expired token"


def map_exception(exc: QuillError) -> tuple[int, str]:
    for exc_type, status_code, error_code in EXCEPTION_MAP:
        if isinstance(exc, exc_type):
            return status_code, error_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"


def _error_response(
    status_code: int,
    error_code: str,
    detail: str,
    hint: str | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=error_code, detail=detail, hint=hint)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


async def quill_error_handler(request: Request, exc: QuillError) -> JSONResponse:
    status_code, error_code = map_exception(exc)
    detail = exc.message
    if isinstance(exc, TokenVerificationError):
        # Expired and forged tokens must look the same to the caller.
        detail = _GENERIC_UNAUTHENTICATED
    if status_code >= 500:
        log.error("unmapped_domain_error", error=type(exc).__name__, path=request.url.path)
        detail = "Internal server error"

    hint = exc.hint if isinstance(exc, QuotaExceededError) else None
    return _error_response(status_code, error_code, detail, hint)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Body/query schema violations are a 400 with the first problem spelled out."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{loc}: {first.get('msg', 'invalid value')}" if loc else first.get("msg", "")
    else:
        detail = "Invalid request"
    return _error_response(status.HTTP_400_BAD_REQUEST, "validation_error", detail)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_error", path=request.url.path, method=request.method)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal server error"
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(QuillError, quill_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
