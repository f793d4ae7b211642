"""
Exception handlers for the optional FastAPI integration.

Design:
    - A single generic handler catches all Vinti4Error subclasses.
    - HTTP status codes come from the exception's `http_status_code` attribute.
    - Client responses use `to_safe_dict()`; internal details are logged, not sent.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from vinti4net.core.exceptions import Vinti4Error
from vinti4net.core.monitoring import sanitize_fields
import logging

logger = logging.getLogger(__name__)


async def gateway_exception_handler(request: Request, exc: Vinti4Error) -> JSONResponse:
    """
    Generic handler for all Vinti4Error subclasses.

    - Logs sanitized internal details (to_dict) for debugging.
    - Returns the client-safe payload (to_safe_dict).
    """
    details = sanitize_fields(exc.to_dict())

    if exc.http_status_code >= 500:
        logger.error(f"[{exc.__class__.__name__}] {exc.message}", extra={"error_details": details})
    else:
        logger.warning(f"[{exc.__class__.__name__}] {exc.message}", extra={"error_details": details})

    return JSONResponse(
        status_code=exc.http_status_code,
        content=exc.to_safe_dict(),
    )


def setup_exception_handlers(app: FastAPI):
    """
    Register the generic handler.

    Vinti4Error is the base class, so InvalidArgument, MissingBillingField,
    AlreadyPrepared and ConfigurationError are all covered.
    """
    app.add_exception_handler(Vinti4Error, gateway_exception_handler)
