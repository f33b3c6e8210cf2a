"""
Catalog exception classes.

Every error carries the HTTP status and the plain-English message that the
global exception handler renders into the `{success, statusCode, message}`
envelope.
"""

from typing import Any, Dict, List, Optional


class CatalogError(Exception):
    """
    Base exception for all catalog errors.

    Attributes:
        message: Human-readable message
        status_code: HTTP status code
        errors: Field-level details, when there are any
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors or []
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        body = {
            "success": False,
            "statusCode": self.status_code,
            "message": self.message,
        }
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(CatalogError):
    """Request failed validation before reaching the handler (400)."""

    status_code = 400

    def __init__(self, errors: List[Dict[str, Any]], message: str = "Validation failed"):
        super().__init__(message, errors=errors)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])


class NotFoundError(CatalogError):
    """Resource not found (404)."""

    status_code = 404


class ProductNotFoundError(NotFoundError):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__("Product not found")


class ConflictError(CatalogError):
    """Write collides with an existing resource (400)."""

    status_code = 400


class SlugConflictError(ConflictError):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__("Product already exists")
