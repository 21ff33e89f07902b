"""Job status tracking."""
from .poller import StatusPoller
from .protocols import StatusApiProtocol

__all__ = [
    'StatusPoller',
    'StatusApiProtocol',
]
