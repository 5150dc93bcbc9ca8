"""Global exception handlers — map SDK exceptions to HTTP status codes.

The SDK raises typed ``IntakeError`` subclasses (bad token, bad identity,
missing credentials, upstream rejection).  Rather than catching these in
every route, we install global handlers that pick the status code and a
client-safe message from the exception class.  Route handlers stay on the
happy path.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from intake_forms.errors import (
    ConfigurationError,
    DeliveryError,
    IntakeError,
    InvalidIdentityError,
    InvalidSignatureError,
    InvalidTokenError,
    SessionNotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

# --- Exception classes and their (status, client message) ---
# Checked in order; first isinstance match wins.
_ERROR_RESPONSES: list[tuple[type[IntakeError], int, str]] = [
    (InvalidTokenError, 400, "Invalid or expired token"),
    (SessionNotFoundError, 400, "Session not found or expired"),
    (InvalidSignatureError, 400, "Invalid signature"),
    (InvalidIdentityError, 400, "Invalid user data"),
    (ConfigurationError, 500, "Server configuration error"),
    (DeliveryError, 500, "Failed to send message"),
]


# --- Client-safe messages keyed by HTTP status code ---
# Internal details (tokens, upstream descriptions) stay in the server
# log; the client receives only a generic description.
_SAFE_MESSAGES: dict[int, str] = {
    404: "Resource not found",
    400: "Invalid request",
    500: "Internal server error",
}


async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    """Map an SDK ``IntakeError`` to its HTTP status and safe message.

    ``ValidationFailedError`` is the one case that returns structured
    detail: the per-question error map is what the form needs to render
    inline messages, and it contains no internal state.

    The raw exception message is logged server-side but never sent to
    the client.
    """
    if isinstance(exc, ValidationFailedError):
        logger.info("Validation failed at %s: %d error(s)", request.url.path, len(exc.errors))
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation failed", "errors": exc.errors},
        )

    status, detail = 400, _SAFE_MESSAGES[400]
    for error_cls, code, message in _ERROR_RESPONSES:
        if isinstance(exc, error_cls):
            status, detail = code, message
            break

    if status >= 500:
        logger.error("%s [%d] at %s: %s", type(exc).__name__, status, request.url.path, exc)
    else:
        logger.warning("%s [%d] at %s: %s", type(exc).__name__, status, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": detail})


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map a stray ``ValueError`` (bad input outside the SDK taxonomy) to 400."""
    logger.warning("ValueError at %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": _SAFE_MESSAGES[400]})


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """Map a body that fails its request model to 400.

    Only the error count is logged.  The rejected input is neither logged
    nor echoed to the client.
    """
    logger.warning("Request validation failed at %s: %d error(s)", request.url.path, len(exc.errors()))
    return JSONResponse(status_code=400, content={"detail": _SAFE_MESSAGES[400]})


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Map ``KeyError`` (e.g. unknown category or section id) to 404."""
    logger.warning("KeyError at %s: %s", request.url.path, exc)
    return JSONResponse(status_code=404, content={"detail": _SAFE_MESSAGES[404]})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": _SAFE_MESSAGES[500]},
    )
