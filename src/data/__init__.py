"""
Data Module
"""
from .seed import ProductPayloadGenerator, seed_catalog

__all__ = [
    "ProductPayloadGenerator",
    "seed_catalog",
]
