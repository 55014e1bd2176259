"""
Custom exceptions for the MDMC CRM API.
Every error carries its HTTP status and an optional machine-readable code;
main.py turns them into the JSON error envelope.
"""
from typing import Optional, List


class CRMException(Exception):
    """Base exception for the CRM"""
    status_code: int = 500
    default_message: str = "An error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        errors: Optional[List[dict]] = None
    ):
        self.message = message or self.default_message
        self.code = code
        self.errors = errors
        super().__init__(self.message)


class ValidationError(CRMException):
    """Validation failed"""
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: str = "Validation failed", field: str = None, errors: Optional[List[dict]] = None):
        if field and not errors:
            errors = [{"field": field, "message": message}]
        super().__init__(message, errors=errors)


class UnauthorizedError(CRMException):
    """Authentication failed"""
    status_code = 401
    default_message = "Could not validate credentials"


class TokenExpiredError(UnauthorizedError):
    """Token has expired"""
    def __init__(self, token_type: str = "Token"):
        super().__init__(f"{token_type} has expired", code="TOKEN_EXPIRED")


class TokenInvalidError(UnauthorizedError):
    """Token is invalid"""
    def __init__(self, token_type: str = "Token"):
        super().__init__(f"{token_type} is invalid", code="INVALID_TOKEN")


class ForbiddenError(CRMException):
    """Access denied"""
    status_code = 403
    default_message = "You don't have permission to access this resource"


class NotFoundError(CRMException):
    """Resource not found"""
    status_code = 404

    def __init__(self, resource: str = "Resource", resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(message)


class ConflictError(CRMException):
    """Resource already exists"""
    status_code = 409

    def __init__(self, resource: str = "Resource", field: str = None, value: str = None):
        if field and value:
            message = f"{resource} with {field} '{value}' already exists"
        else:
            message = f"{resource} already exists"
        super().__init__(message)


class TooManyRequestsError(CRMException):
    """Rate limit exceeded"""
    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests, please try again later"):
        self.retry_after = retry_after
        super().__init__(message, code="RATE_LIMIT_EXCEEDED")


class InternalError(CRMException):
    """Unexpected server-side failure"""
    status_code = 500
    default_message = "Internal server error"


class ExternalServiceError(CRMException):
    """External service call failed"""
    status_code = 502

    def __init__(self, service: str = "External service", message: str = None):
        msg = f"{service} call failed"
        if message:
            msg = f"{msg}: {message}"
        super().__init__(msg)


def raise_not_found(resource: str = "Resource", resource_id: str = None):
    raise NotFoundError(resource, resource_id)


def raise_conflict(resource: str = "Resource", field: str = None, value: str = None):
    raise ConflictError(resource, field, value)


def raise_unauthorized(message: str = "Could not validate credentials"):
    raise UnauthorizedError(message)


def raise_forbidden(message: str = "You don't have permission to access this resource"):
    raise ForbiddenError(message)


def raise_validation_error(message: str = "Validation failed", field: str = None):
    raise ValidationError(message, field)
