"""Identity key helpers.

This module provides the rename suffix scheme used for colliding identity
keys, and formatting of identity keys for user-facing messages.
"""

from collections.abc import Iterator, Mapping
from datetime import datetime
from typing import Any


def suffixed(value: str, n: int) -> str:
    """Append a numeric suffix to an identity key.

    Email addresses keep their domain, paths keep a trailing slash.

    Args:
        value: Original key (slug, email, path, code)
        n: Suffix number, starting at 2

    Returns:
        Suffixed key

    Examples:
        >>> suffixed("about", 2)
        'about-2'
        >>> suffixed("jane@example.com", 3)
        'jane-3@example.com'
        >>> suffixed("/old-blog/", 2)
        '/old-blog-2/'
    """
    if "@" in value:
        local, _, domain = value.rpartition("@")
        return f"{local}-{n}@{domain}"
    if len(value) > 1 and value.endswith("/"):
        return f"{value.rstrip('/')}-{n}/"
    return f"{value}-{n}"


def candidate_keys(value: str, max_attempts: int) -> Iterator[str]:
    """Yield rename candidates ``value-2`` through ``value-(max_attempts + 1)``.

    Args:
        value: Colliding identity key
        max_attempts: Number of candidates to try

    Examples:
        >>> list(candidate_keys("news", 3))
        ['news-2', 'news-3', 'news-4']
    """
    for n in range(2, max_attempts + 2):
        yield suffixed(value, n)


def format_value(value: Any) -> str:
    """Render one identity component for display."""
    if value is None:
        return "-"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def format_identity(identity: Mapping[str, Any]) -> str:
    """Render an identity mapping for messages.

    Examples:
        >>> format_identity({"slug": "about"})
        'about'
        >>> format_identity({"slug": "about", "language": 1})
        'slug=about, language=1'
    """
    if len(identity) == 1:
        return format_value(next(iter(identity.values())))
    return ", ".join(f"{name}={format_value(value)}" for name, value in identity.items())
