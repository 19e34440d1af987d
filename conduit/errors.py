"""
Error taxonomy and its mapping onto HTTP responses.

Services raise these exceptions; routers never build error responses
themselves.  ``install_exception_handlers`` registers one handler per
concern on the FastAPI app:

- ``Unauthenticated``  -> 401 with ``WWW-Authenticate: Token``
- ``Forbidden``        -> 403
- ``NotFound``         -> 404
- ``ValidationFailed`` -> 422 with ``{"errors": {field: [messages]}}``
- ``Internal``         -> 500

Only ``ValidationFailed`` carries detail in its body.  The others return a
fixed message so a response never reveals which check failed or anything
about the schema or query behind it.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from conduit.middleware import request_id_var

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that translate directly into an HTTP status."""

    status_code: int = 500
    public_message: str = "internal server error"


class Unauthenticated(ApiError):
    status_code = 401
    public_message = "authentication required"


class Forbidden(ApiError):
    status_code = 403
    public_message = "forbidden"


class NotFound(ApiError):
    status_code = 404
    public_message = "not found"


class Internal(ApiError):
    """Opaque failure: store/transport errors and programming errors."""


class ValidationFailed(ApiError):
    """
    Field-level validation failure.

    ``errors`` maps a field name to an ordered list of messages, e.g.
    ``{"username": ["username taken"]}``.
    """

    status_code = 422
    public_message = "validation failed"

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(errors)
        self.errors = errors

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> "ValidationFailed":
        errors: dict[str, list[str]] = {}
        for field, message in pairs:
            errors.setdefault(field, []).append(message)
        return cls(errors)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if isinstance(exc, ValidationFailed):
        return JSONResponse(status_code=exc.status_code, content={"errors": exc.errors})

    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Token"}
    elif exc.status_code >= 500:
        logger.error(
            "internal error while handling %s %s request_id=%s",
            request.method,
            request.url.path,
            request_id_var.get(),
            exc_info=exc,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message},
        headers=headers,
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Reshape FastAPI's list-of-dicts into the same field-keyed body that
    # ValidationFailed produces, keyed by the innermost location.
    pairs = []
    for error in exc.errors():
        loc = error.get("loc") or ("body",)
        pairs.append((str(loc[-1]), error.get("msg", "invalid value")))
    return JSONResponse(
        status_code=422,
        content={"errors": ValidationFailed.from_pairs(pairs).errors},
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
