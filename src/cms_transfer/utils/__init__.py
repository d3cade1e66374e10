"""Utility modules for cms-transfer.

This package contains helper utilities including:
- Rename suffix generation for colliding identity keys
- Identity key formatting for messages
"""

from cms_transfer.utils.keys import candidate_keys, format_identity, format_value, suffixed

__all__ = [
    # Rename suffixes
    "suffixed",
    "candidate_keys",
    # Formatting
    "format_identity",
    "format_value",
]
