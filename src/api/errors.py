"""
Exception handlers - Map domain errors to HTTP responses.

Every error body has the same shape: ``{"kind": ..., "detail": ...}``,
plus ``remainingAttempts`` for a wrong verification code.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.models import ErrorResponse
from src.domain.exceptions import InvalidCode, RegistrationError, ValidationError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "unauthorized": status.HTTP_401_UNAUTHORIZED,
    "invalid_code": status.HTTP_401_UNAUTHORIZED,
    "not_found": status.HTTP_404_NOT_FOUND,
    "duplicate_identity": status.HTTP_409_CONFLICT,
    "concurrent_modification": status.HTTP_409_CONFLICT,
    "expired": status.HTTP_400_BAD_REQUEST,
    "attempts_exhausted": status.HTTP_400_BAD_REQUEST,
    "notification_failure": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = ErrorResponse(
        kind=exc.kind,
        detail=exc.message,
        remaining_attempts=exc.remaining_attempts if isinstance(exc, InvalidCode) else None,
    )
    return _error_response(status_code, body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    body = ErrorResponse(kind=ValidationError.kind, detail="; ".join(problems) or "Invalid request")
    return _error_response(status.HTTP_400_BAD_REQUEST, body)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RegistrationError, registration_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
