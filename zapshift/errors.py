"""
Error taxonomy shared by the stores, adapters, reconciler and HTTP layer.

Every error carries the HTTP status it maps to and a stable ``code`` that
clients can check without parsing the message.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ZapShiftError(Exception):
    """Base application error."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)


class InvalidRequest(ZapShiftError):
    """Invalid request"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"


class Unauthenticated(ZapShiftError):
    """Invalid or missing token"""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class Forbidden(ZapShiftError):
    """Forbidden access"""
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFound(ZapShiftError):
    """Resource not found"""
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class DataIntegrity(ZapShiftError):
    """Inconsistent data"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "data_integrity"


class UpstreamUnavailable(ZapShiftError):
    """Payment provider unreachable"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "upstream_unavailable"


class GatewayError(ZapShiftError):
    """Payment provider error"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "gateway_error"


class StoreUnavailable(ZapShiftError):
    """Database unavailable"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "store_unavailable"


def _error_body(message: str, code: str) -> dict:
    return {"success": False, "message": message, "code": code}


async def zapshift_error_handler(request: Request, exc: ZapShiftError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.code))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in errors
    ) or "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(message, InvalidRequest.code),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Internal server error", ZapShiftError.code),
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(ZapShiftError, zapshift_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
