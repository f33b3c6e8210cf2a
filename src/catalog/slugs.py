"""
Slug generation for catalog names.
"""

import re
import unicodedata
from typing import Optional

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """
    Turn a display name into a URL-safe slug.

    Accents are folded to ASCII, every run of other characters becomes a
    single hyphen and leading/trailing hyphens are dropped.

    Example:
        >>> slugify("  Crème Brûlée Tee (XL) ")
        'creme-brulee-tee-xl'
    """
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return _NON_SLUG_CHARS.sub("-", normalized.lower()).strip("-")


# path segments under /products that are routes of their own
RESERVED_SLUGS = frozenset({"create", "views"})


def slug_error(slug: str) -> Optional[str]:
    """Reason a product slug cannot be used, or None when it can."""
    if not slug:
        return "Name must contain at least one letter or digit"
    if slug in RESERVED_SLUGS:
        return f"Name '{slug}' is reserved"
    return None
