"""
Custom exceptions for vaultup upload operations.

This module defines the error taxonomy of the upload engine:
precondition failures, per-chunk failures, session failures,
user cancellation and status polling failures.
"""
from typing import Optional


class VaultException(Exception):
    """Base exception for all vaultup errors."""
    
    def __init__(self, message: str, error_code: Optional[int] = None) -> None:
        """
        Initialize the exception.
        
        Args:
            message: Error message
            error_code: Numeric error code, usually an HTTP status (if available)
        """
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class PreconditionError(VaultException):
    """Raised before any network call when a credential or the file is missing."""
    pass


class ChunkUploadError(VaultException):
    """
    Exception raised when a single chunk transfer fails.
    
    Scheduler absorbs these; they never fail the session directly.
    """
    
    def __init__(
        self,
        message: str,
        chunk_index: int,
        retries: int = 0,
        terminal: bool = False,
        error_code: Optional[int] = None
    ) -> None:
        """
        Initialize the exception.
        
        Args:
            message: Error message
            chunk_index: Index of the failed chunk
            retries: Failed attempts so far
            terminal: True when the chunk will not be retried again
            error_code: HTTP status (if available)
        """
        self.chunk_index = chunk_index
        self.retries = retries
        self.terminal = terminal
        super().__init__(message, error_code)


class UploadSessionError(VaultException):
    """Exception raised when a whole upload session fails."""
    
    def __init__(
        self,
        message: str,
        stage: str,
        error_code: Optional[int] = None
    ) -> None:
        """
        Initialize the exception.
        
        Args:
            message: Error message
            stage: Failing stage ('init', 'chunks' or 'finalize')
            error_code: HTTP status (if available)
        """
        self.stage = stage
        super().__init__(message, error_code)


class UploadCancelledError(VaultException):
    """Raised when the user cancels an upload. Not an error state."""
    pass


class StatusPollError(VaultException):
    """Exception raised when the job status endpoint cannot be read."""
    
    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        error_code: Optional[int] = None
    ) -> None:
        self.job_id = job_id
        super().__init__(message, error_code)
    
    @property
    def is_not_found(self) -> bool:
        """True when the server no longer knows the job."""
        return self.error_code == 404
