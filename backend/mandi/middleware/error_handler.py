"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent {success: false, error, code, details} envelopes with proper status codes
HOW: FastAPI exception handlers for business and validation exceptions
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from ..utils.exceptions import (
    BusinessException,
    NegotiationNotFoundException,
    ProductNotFoundException,
    UserNotFoundException,
    SelfNegotiationException,
    NegotiationAlreadyActiveException,
    NegotiationNotActiveException,
    ConcurrentModificationException,
    PermissionDeniedException,
    AuthenticationException,
    ValidationException,
    AnalysisUnavailableException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

# First match wins
STATUS_BY_EXCEPTION = (
    ((NegotiationNotFoundException, ProductNotFoundException, UserNotFoundException), status.HTTP_404_NOT_FOUND),
    ((NegotiationAlreadyActiveException, NegotiationNotActiveException, ConcurrentModificationException), status.HTTP_409_CONFLICT),
    ((SelfNegotiationException, ValidationException), status.HTTP_400_BAD_REQUEST),
    ((AuthenticationException,), status.HTTP_401_UNAUTHORIZED),
    ((PermissionDeniedException,), status.HTTP_403_FORBIDDEN),
    ((AnalysisUnavailableException,), status.HTTP_503_SERVICE_UNAVAILABLE),
)


def error_envelope(message: str, code: str, details=None) -> dict:
    return {"success": False, "error": message, "code": code, "details": details}


def status_code_for(exc: BusinessException) -> int:
    for exception_types, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exception_types):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    # Clean up error details to be JSON serializable
    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg"),
        }
        if "ctx" in error:
            cleaned_error["ctx"] = {
                k: str(v) if isinstance(v, Exception) else v
                for k, v in error["ctx"].items()
            }
        cleaned_errors.append(cleaned_error)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope("Request validation failed", "VALIDATION_ERROR", cleaned_errors)
    )


async def business_exception_handler(request: Request, exc: BusinessException):
    """
    Handle domain exceptions.

    WHAT: Not found, conflicts, auth and permission failures
    WHY: Endpoints raise; this module decides the status code
    HOW: Look up the status in STATUS_BY_EXCEPTION
    """
    status_code = status_code_for(exc)
    logger.warning(f"Business exception on {request.url.path}: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=error_envelope(exc.message, exc.code, exc.details)
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)

    logger.info("Exception handlers registered")
