"""Exception handlers shared by the service apps.

Usage:
    from libs.common.error_handler import add_exception_handlers

    add_exception_handlers(app, domain_error=BookingError)
"""

from typing import Any, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


def domain_error_body(exc: Exception) -> dict[str, Any]:
    """Render a domain error as ``{"detail", "code"}`` plus any extra context."""
    body: dict[str, Any] = {
        "detail": getattr(exc, "message", str(exc)),
        "code": getattr(exc, "code", "error"),
    }
    extra = getattr(exc, "context", None)
    if callable(extra):
        body.update(extra())
    return body


def add_exception_handlers(
    app: FastAPI,
    *,
    domain_error: Optional[type[Exception]] = None,
    render: Callable[[Exception], dict[str, Any]] = domain_error_body,
) -> None:
    """
    Register consistent JSON error responses.

    ``domain_error`` instances answer with their own ``status_code``; any
    other unhandled exception becomes a 500 carrying the request id.
    """
    if domain_error is not None:

        async def handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
            status_code = getattr(exc, "status_code", 400)
            logger.info(
                "%s %s rejected: %s",
                request.method,
                request.url.path,
                getattr(exc, "code", type(exc).__name__),
            )
            return JSONResponse(status_code=status_code, content=render(exc))

        app.add_exception_handler(domain_error, handle_domain_error)

    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "request_id": get_request_id()},
        )

    app.add_exception_handler(Exception, handle_unexpected)
