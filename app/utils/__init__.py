"""
Utility functions for the VidShare application.
"""

from app.utils.ids import parse_id
from app.utils.retry import is_transient_error, retry_with_backoff

__all__ = [
    "parse_id",
    "is_transient_error",
    "retry_with_backoff",
]
