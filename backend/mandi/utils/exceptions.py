"""
Custom business exceptions for the marketplace API.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Consistent error handling across REST endpoints and the realtime layer
HOW: Custom exception classes with error codes and messages
"""

from typing import Optional, List, Dict, Any


class BusinessException(Exception):
    """Base class for business logic exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class NegotiationNotFoundException(BusinessException):
    """Raised when a negotiation is missing or the caller is not a party to it."""

    def __init__(self, negotiation_id: str):
        super().__init__(
            message=f"Negotiation not found: {negotiation_id}",
            code="NEGOTIATION_NOT_FOUND",
            details={"negotiation_id": negotiation_id}
        )


class ProductNotFoundException(BusinessException):
    """Raised when a product listing is not found."""

    def __init__(self, product_id: str):
        super().__init__(
            message=f"Product not found: {product_id}",
            code="PRODUCT_NOT_FOUND",
            details={"product_id": product_id}
        )


class UserNotFoundException(BusinessException):
    """Raised when a user is not found."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"User not found: {user_id}",
            code="USER_NOT_FOUND",
            details={"user_id": user_id}
        )


class SelfNegotiationException(BusinessException):
    """Raised when a vendor tries to negotiate on their own listing."""

    def __init__(self, product_id: str):
        super().__init__(
            message="Cannot negotiate on your own product",
            code="SELF_NEGOTIATION",
            details={"product_id": product_id}
        )


class NegotiationAlreadyActiveException(BusinessException):
    """Raised when the buyer already has an active negotiation for the product."""

    def __init__(self, product_id: str, buyer_id: str):
        super().__init__(
            message="Active negotiation already exists for this product",
            code="NEGOTIATION_ALREADY_ACTIVE",
            details={"product_id": product_id, "buyer_id": buyer_id}
        )


class NegotiationNotActiveException(BusinessException):
    """Raised when attempting to mutate a completed or cancelled negotiation."""

    def __init__(self, negotiation_id: str, current_status: str):
        super().__init__(
            message=f"Negotiation {negotiation_id} is not active. Current status: {current_status}",
            code="NEGOTIATION_NOT_ACTIVE",
            details={"negotiation_id": negotiation_id, "current_status": current_status}
        )


class ConcurrentModificationException(BusinessException):
    """Raised when a negotiation was changed by another writer in between."""

    def __init__(self, negotiation_id: str):
        super().__init__(
            message=f"Negotiation {negotiation_id} was modified concurrently, retry with fresh state",
            code="CONCURRENT_MODIFICATION",
            details={"negotiation_id": negotiation_id}
        )


class PermissionDeniedException(BusinessException):
    """Raised when the caller may see a resource but not change it."""

    def __init__(self, message: str):
        super().__init__(message=message, code="PERMISSION_DENIED")


class AuthenticationException(BusinessException):
    """Raised for missing, malformed or expired bearer tokens."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, code="AUTHENTICATION_FAILED")


class ValidationException(BusinessException):
    """Raised for validation errors."""

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field_errors": field_errors} if field_errors else None
        )


class AnalysisUnavailableException(BusinessException):
    """Raised when the negotiation engine could not produce a result."""

    def __init__(self, negotiation_id: str, analysis: str):
        super().__init__(
            message=f"{analysis} is unavailable for negotiation {negotiation_id}",
            code="ANALYSIS_UNAVAILABLE",
            details={"negotiation_id": negotiation_id, "analysis": analysis}
        )
