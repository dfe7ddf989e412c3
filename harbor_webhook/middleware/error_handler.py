"""Global error hierarchy and FastAPI exception handlers.

All webhook-specific errors extend WebhookError. The FastAPI exception handlers
catch these errors (plus Pydantic's RequestValidationError and unhandled exceptions)
and return a consistent JSON envelope: { success, data, error, meta }.

None of these errors is fatal to the process. Upstream and parse failures are
recovered where they happen; the handlers below only cover what reaches the
HTTP layer.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from harbor_webhook.models.projects import CacheSnapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class WebhookError(Exception):
    """Base error for all webhook-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class RegistryAPIError(WebhookError):
    """Harbor API unreachable, timed out, or answered with a non-2xx status."""

    status_code = 502
    message = "Harbor API request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream_status: int | None = None,
        **kwargs: object,
    ) -> None:
        self.upstream_status = upstream_status
        if upstream_status is not None:
            kwargs["upstream_status"] = upstream_status
        super().__init__(message, **kwargs)


class MalformedPayloadError(WebhookError):
    """Harbor API returned a payload that cannot be interpreted."""

    status_code = 502
    message = "Malformed Harbor API payload"


class InvalidImageReferenceError(WebhookError):
    """Container image string cannot be parsed into host/path/tag-or-digest."""

    status_code = 422
    message = "Invalid image reference"


class CacheNotPopulatedError(WebhookError):
    """No refresh of the projects cache has succeeded yet.

    Carries the empty snapshot so callers can proceed fail-open.
    """

    status_code = 503
    message = "Projects cache not yet populated"

    def __init__(
        self,
        message: str | None = None,
        *,
        snapshot: CacheSnapshot | None = None,
        **kwargs: object,
    ) -> None:
        self.snapshot = snapshot
        super().__init__(message, **kwargs)


class InvalidAdmissionReviewError(WebhookError):
    """Request body is not a usable AdmissionReview."""

    status_code = 400
    message = "Invalid AdmissionReview request"


def error_locations(errors: list[dict]) -> list[str]:
    """Flatten pydantic error locations into ``a -> b -> c`` strings."""
    return [" -> ".join(str(part) for part in err["loc"]) for err in errors]


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _error_body(error: str, meta: dict | None = None) -> dict:
    return {"success": False, "data": None, "error": error, "meta": meta}


async def _webhook_error_handler(request: Request, exc: WebhookError) -> JSONResponse:
    """Handle WebhookError subclasses.

    Client mistakes (4xx) are logged at INFO, upstream trouble at WARNING.
    """
    level = logging.INFO if exc.status_code < 500 else logging.WARNING
    logger.log(
        level,
        "%s %s failed with %d: %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.message,
        extra={"error_reason": exc.message},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, meta=exc.details or None),
    )


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI / Pydantic RequestValidationError (422)."""
    errors = exc.errors()
    fields = [
        {"field": location, "message": err["msg"], "type": err["type"]}
        for location, err in zip(error_locations(errors), errors)
    ]
    return JSONResponse(
        status_code=422,
        content=_error_body("Validation error", meta={"fields": fields}),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log with traceback, answer with a generic 500."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(WebhookError, _webhook_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
