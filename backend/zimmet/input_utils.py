from __future__ import annotations

from typing import Any, Optional

from zimmet.errors import ValidationError


def optional_text(value: Any, field: str) -> Optional[str]:
    """
    Trim a free-text JSON field; blank becomes None.

    Raises ValidationError when the value is present but not a string.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() or None


def optional_id(value: Any, field: str) -> Optional[str]:
    """Identifiers arrive as strings (UUIDs); anything else is rejected."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value
