"""
Catalog Module
"""
from .errors import CatalogError, ConflictError, NotFoundError, ProductNotFoundError, SlugConflictError, ValidationError
from .query import ProductQuery
from .slugs import slugify

__all__ = [
    "CatalogError",
    "ConflictError",
    "NotFoundError",
    "ProductNotFoundError",
    "SlugConflictError",
    "ValidationError",
    "ProductQuery",
    "slugify",
]
