"""Upload API errors and exceptions."""
from .api_errors import VaultAPIError, parse_error_body

__all__ = [
    'VaultAPIError',
    'parse_error_body',
]
