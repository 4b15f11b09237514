from __future__ import annotations

from typing import Any


class OrderingError(Exception):
    """Base for every domain error rendered as ``{"code", "message"}``."""

    code = "ORDERING_ERROR"
    status_code = 400
    retryable = False
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.retryable:
            body["retryable"] = True
        if self.details:
            body["details"] = self.details
        return body


# Cart / order validation (client-caused, not retryable without a corrected cart)
class OrderValidationError(OrderingError):
    status_code = 400


class ValidationFailed(OrderValidationError):
    code = "VALIDATION_FAILED"
    default_message = "Order validation failed"


class ItemsUnavailable(OrderValidationError):
    code = "ITEMS_UNAVAILABLE"
    default_message = "Some menu items are not available"


class ComboTypeUnavailable(OrderValidationError):
    code = "COMBO_TYPE_UNAVAILABLE"
    default_message = "Combo type is not available"


class TotalsMismatch(OrderValidationError):
    code = "TOTALS_MISMATCH"
    default_message = "Order totals do not match the cart"


# Tenant resolution
class TenantContextRequired(OrderingError):
    code = "TENANT_CONTEXT_REQUIRED"
    status_code = 400
    default_message = "This endpoint requires restaurant identification via subdomain or custom domain"


class TenantNotFound(OrderingError):
    code = "TENANT_NOT_FOUND"
    status_code = 404
    default_message = "Restaurant not found"


class TenantDirectoryUnavailable(OrderingError):
    code = "TENANT_DIRECTORY_UNAVAILABLE"
    status_code = 503
    retryable = True
    default_message = "Restaurant could not be determined right now"


class TenantConflict(OrderingError):
    code = "TENANT_CONFLICT"
    status_code = 409
    default_message = "Slug or custom domain already in use"


# Order store
class OrderNotFound(OrderingError):
    code = "ORDER_NOT_FOUND"
    status_code = 404
    default_message = "Order not found"


class InvalidTransition(OrderingError):
    code = "INVALID_TRANSITION"
    status_code = 409
    default_message = "Order status transition is not allowed"


class NotCancelable(OrderingError):
    code = "NOT_CANCELABLE"
    status_code = 409
    default_message = "Only pending orders can be cancelled"


class OrderNumberCollision(OrderingError):
    code = "ORDER_NUMBER_COLLISION"
    status_code = 409
    retryable = True
    default_message = "Order number already in use, please retry"


def format_validation_errors(errors: list[dict[str, Any]]) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or ValidationFailed.default_message
