# Overview: Error taxonomy shared by services and routes.

"""
Service errors

Every business failure raised by the service layer is a ServiceError.
Routes render them with error_response(); anything else is an unexpected
failure and is answered with a generic 500.

- ValidationError (400): malformed input, carries [{field, message}]
- NotFoundError (404): referenced row does not exist
- InsufficientStockError (400): operation would drive stock below zero
- InvalidStateError (400): operation not allowed in the entity's current state
- InternalError (500): unexpected failure, message never leaks internals
"""

from __future__ import annotations

from flask import jsonify


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 400
    code = "SERVICE_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ServiceError):
    """400-level input problem with per-field messages."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation error", errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "errors": self.errors}


class NotFoundError(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class InsufficientStockError(ServiceError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, available: int, requested: int | None = None, message: str | None = None):
        if message is None:
            message = (
                f"Insufficient stock for product {product_id}. "
                f"Available: {available}, Requested: {requested}"
            )
        details = {"product_id": product_id, "available": available}
        if requested is not None:
            details["requested"] = requested
        super().__init__(message, details=details)
        self.product_id = product_id
        self.available = available
        self.requested = requested


class InvalidStateError(ServiceError):
    code = "INVALID_STATE"


class InternalError(ServiceError):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


def error_response(exc: ServiceError):
    """Render a ServiceError as a (response, status) tuple."""
    return jsonify(exc.to_dict()), exc.status_code
