"""
Upload API module.

HTTP client for the chunked upload, single-shot upload and job
status endpoints, plus its configuration.
"""
from .config import (
    APIConfig,
    ProxyConfig,
    SSLConfig,
    TimeoutConfig,
    RetryConfig,
    PollingConfig
)
from .errors import VaultAPIError, parse_error_body
from .events import EventEmitter
from .retry import RetryStrategy, ExponentialBackoffStrategy
from .async_client import AsyncAPIClient, Endpoints

__all__ = [
    'APIConfig',
    'ProxyConfig',
    'SSLConfig',
    'TimeoutConfig',
    'RetryConfig',
    'PollingConfig',
    'VaultAPIError',
    'parse_error_body',
    'EventEmitter',
    'RetryStrategy',
    'ExponentialBackoffStrategy',
    'AsyncAPIClient',
    'Endpoints',
]
