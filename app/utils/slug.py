"""
URL-friendly slugs for organizations.
"""

import re
import unicodedata

MAX_SLUG_LENGTH = 50


def generate_slug(name: str) -> str:
    """Generate a URL-friendly slug from an organization name."""
    slug = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    slug = slug.lower().strip()
    slug = re.sub(r"[^a-z0-9\s_-]", "", slug)  # Remove special chars
    slug = re.sub(r"[\s_]+", "-", slug)  # Spaces/underscores to hyphens
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")
    return slug[:MAX_SLUG_LENGTH] or "organization"


def with_suffix(slug: str, counter: int) -> str:
    """Append -N, trimming the base so the result stays within MAX_SLUG_LENGTH."""
    suffix = f"-{counter}"
    return f"{slug[: MAX_SLUG_LENGTH - len(suffix)]}{suffix}"
