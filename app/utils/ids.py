"""
Identifier parsing for path and query parameters.
"""
import uuid

from app.core.exceptions import ValidationException


def parse_id(value: str, label: str = "id") -> uuid.UUID:
    """
    Parse a client supplied identifier.

    Raises:
        ValidationException: if the value is not a well-formed identifier
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError):
        raise ValidationException(f"Invalid {label} format: {value}")
