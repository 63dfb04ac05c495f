"""Category name to slug conversion.

Slugs are the path segments of the materialized category path, so the
conversion must be deterministic: the same name always yields the same
segment.
"""

import re

from slugify import slugify as _slugify

from catalog_api.domain.exceptions import InvalidSlugError

# Dropped outright rather than turned into separators ("Levi's" -> "levis")
REMOVE_PATTERN = re.compile(r"[*+~.()'\";!:@]")

REPLACEMENTS = [["&", " and "]]


def slugify(name: str | None) -> str:
    """Create a URL-safe slug from a category name.

    Args:
        name: Display name.

    Returns:
        Lower-case slug of ASCII letters, digits and single hyphens.

    Raises:
        InvalidSlugError: If the name is empty or nothing is left
            after stripping punctuation.
    """
    if not name or not name.strip():
        raise InvalidSlugError(name)

    slug = _slugify(
        REMOVE_PATTERN.sub("", name),
        lowercase=True,
        replacements=REPLACEMENTS,
    )

    if not slug:
        raise InvalidSlugError(name)

    return slug
