"""Upload API error parsing and exceptions."""
import json
from typing import Optional

from ...exceptions import VaultException

TRANSIENT_STATUSES = frozenset({408, 429})


def parse_error_body(body: str, default: str) -> str:
    """
    Extract a message from a non-2xx response body.
    
    JSON bodies are read for 'error' then 'message'; anything else
    falls back to the raw text, then to the default.
    """
    if body:
        try:
            data = json.loads(body)
        except ValueError:
            return body.strip() or default
        if isinstance(data, dict):
            message = data.get('error') or data.get('message')
            if message:
                return str(message)
        return default
    return default


class VaultAPIError(VaultException):
    """Exception raised for non-2xx responses from the upload server."""
    
    def __init__(self, status: int, message: str, body: Optional[str] = None):
        self.status = status
        self.body = body
        super().__init__(message, error_code=status)
    
    @property
    def is_transient(self) -> bool:
        """True for statuses worth retrying (timeouts, throttling, 5xx)."""
        return self.status >= 500 or self.status in TRANSIENT_STATUSES
    
    @classmethod
    def from_body(cls, status: int, body: str, default: str) -> 'VaultAPIError':
        """Build the error from a raw response body."""
        return cls(status, parse_error_body(body, default), body)
