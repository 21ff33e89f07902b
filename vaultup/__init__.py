"""
vaultup - Async Python client for chunked, resumable uploads.

Usage:
    >>> from vaultup import VaultClient
    >>> 
    >>> async with VaultClient("jwt-token") as vault:
    ...     result = await vault.upload("movie.mkv", chunked=True)
    ...     print(result.job_id)
"""
import logging
from .client import VaultClient

# Configuration
from .core.api import (
    APIConfig,
    ProxyConfig,
    SSLConfig,
    TimeoutConfig,
    RetryConfig,
    PollingConfig,
    AsyncAPIClient,
    VaultAPIError
)

# Upload engine
from .core.upload import (
    UploadCoordinator,
    UploadConfig,
    UploadResult,
    UploadSession,
    FinalizePolicy,
    SingleShotUploader
)

# Progress tracking
from .core.progress import (
    GlobalProgressStore,
    UploadProgress,
    ProgressStatus,
    SQLiteProgressStorage,
    MemoryProgressStorage
)
from .core.status import StatusPoller

from .core.exceptions import (
    VaultException,
    PreconditionError,
    ChunkUploadError,
    UploadSessionError,
    UploadCancelledError,
    StatusPollError
)

__version__ = '1.0.0'


def setup_logging(level=logging.INFO):
    """
    Configure logging for vaultup modules.
    
    This ensures that all vaultup loggers are properly configured
    to show log messages at the specified level.
    
    Args:
        level: Logging level (default: logging.INFO)
    """
    loggers = [
        'vaultup',
        'vaultup.client',
        'vaultup.api',
        'vaultup.upload',
        'vaultup.upload.coordinator',
        'vaultup.upload.scheduler',
        'vaultup.upload.chunk',
        'vaultup.upload.file',
        'vaultup.upload.finalize',
        'vaultup.upload.single',
        'vaultup.upload.state',
        'vaultup.status',
        'vaultup.progress',
    ]
    
    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        # Ensure propagation is enabled
        logger.propagate = True


__all__ = [
    'VaultClient',
    'APIConfig',
    'ProxyConfig',
    'SSLConfig',
    'TimeoutConfig',
    'RetryConfig',
    'PollingConfig',
    'AsyncAPIClient',
    'VaultAPIError',
    'UploadCoordinator',
    'UploadConfig',
    'UploadResult',
    'UploadSession',
    'FinalizePolicy',
    'SingleShotUploader',
    'GlobalProgressStore',
    'UploadProgress',
    'ProgressStatus',
    'SQLiteProgressStorage',
    'MemoryProgressStorage',
    'StatusPoller',
    'VaultException',
    'PreconditionError',
    'ChunkUploadError',
    'UploadSessionError',
    'UploadCancelledError',
    'StatusPollError',
    'setup_logging',
]
