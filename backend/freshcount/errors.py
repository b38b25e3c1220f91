# Overview: Domain error taxonomy shared by services and routes.

"""
Every service failure is raised as a FreshCountError subclass. Each class
carries the HTTP status the API layer answers with, so routes can translate
without a lookup table:

- ValidationError          400  malformed or missing input
- InsufficientStockError   400  OUT movement larger than the balance
- AuthError                401  bad credentials or token
- ForbiddenError           403  role lacks the permission
- NotFoundError            404  missing entity
- ConflictError            409  duplicate name, referenced entity on delete
- InternalError            500  unexpected
- ServiceUnavailableError  503  persistence layer unreachable
"""

from __future__ import annotations


def format_quantity(value: float) -> str:
    """
    Render a quantity for messages: fixed 3 places, trailing zeros dropped.

    1234567.0 -> "1234567", 12.5 -> "12.5", 0.001 -> "0.001"
    """
    text = f"{float(value) + 0.0:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


class FreshCountError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(FreshCountError, ValueError):
    """400-level input problem."""
    status_code = 400


class AuthError(FreshCountError):
    status_code = 401


class ForbiddenError(FreshCountError):
    status_code = 403


class NotFoundError(FreshCountError):
    status_code = 404


class ConflictError(FreshCountError):
    """409-level business rule conflict (e.g., duplicate category name)."""
    status_code = 409


class InsufficientStockError(FreshCountError):
    status_code = 400

    def __init__(self, current_stock: float, message: str | None = None):
        super().__init__(
            message or f"Insufficient stock. Current stock: {format_quantity(current_stock)}"
        )
        self.current_stock = current_stock

    def to_dict(self) -> dict:
        return {"error": self.message, "current_stock": self.current_stock}


class InternalError(FreshCountError):
    status_code = 500


class ServiceUnavailableError(FreshCountError):
    status_code = 503
