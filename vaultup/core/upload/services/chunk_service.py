"""
Chunk transport service.

Performs exactly one chunk transfer and turns the result into a
typed outcome for the scheduler.
"""
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import aiohttp

from ..models import ChunkState
from ..protocols import FileReaderProtocol, UploadApiProtocol
from ..state import (
    ChunkCompleted,
    ChunkFailed,
    ChunkProgressed,
    ChunkStarted,
    SessionStore
)
from ...api.config import RetryConfig
from ...api.errors import VaultAPIError
from ...api.retry import ExponentialBackoffStrategy, RetryStrategy
from ...exceptions import ChunkUploadError, UploadCancelledError
from ...logging import get_logger


class ChunkOutcome(str, Enum):
    """How a single transfer attempt ended."""
    COMPLETE = 'complete'
    RETRY = 'retry'
    FAILED = 'failed'


@dataclass(frozen=True)
class ChunkResult:
    """
    Result of one transfer attempt.
    
    Attributes:
        index: Chunk index
        outcome: COMPLETE, RETRY (re-enqueue) or FAILED (terminal)
        retries: Failed attempts so far
        error: Failure details for RETRY and FAILED
    """
    index: int
    outcome: ChunkOutcome
    retries: int = 0
    error: Optional[ChunkUploadError] = None


class ChunkTransport:
    """
    Uploads single chunks of one session.
    
    Responsibilities:
    - Slice [index*chunk_size, min((index+1)*chunk_size, file_size))
    - Report fractional progress to the session store
    - Translate network errors, timeouts and non-2xx into retry/failure
    
    PreconditionError (credential gone) and cancellation propagate;
    everything else becomes a ChunkResult.
    """
    
    def __init__(
        self,
        api: UploadApiProtocol,
        store: SessionStore,
        file_reader: FileReaderProtocol,
        file_path: Path,
        retry_config: Optional[RetryConfig] = None,
        timeout: Optional[float] = None,
        retry_strategy: Optional[RetryStrategy] = None
    ):
        """
        Initialize chunk transport.
        
        Args:
            api: Upload API client
            store: Store of the session being uploaded
            file_reader: Reader for chunk bytes
            file_path: Source file
            retry_config: Attempts allowed per chunk
            timeout: Per-chunk timeout in seconds (client default when None)
            retry_strategy: Decides whether a failed chunk is re-queued
        """
        self._api = api
        self._store = store
        self._reader = file_reader
        self._file_path = file_path
        self._retry = retry_config or RetryConfig()
        self._timeout = timeout
        self._retry_strategy = retry_strategy or ExponentialBackoffStrategy(self._retry)
        self._logger = get_logger('vaultup.upload.chunk')
    
    @property
    def retry_strategy(self) -> RetryStrategy:
        return self._retry_strategy
    
    @retry_strategy.setter
    def retry_strategy(self, strategy: RetryStrategy) -> None:
        self._retry_strategy = strategy
    
    async def send(self, index: int) -> ChunkResult:
        """
        Upload one chunk.
        
        Args:
            index: Chunk index
            
        Returns:
            ChunkResult describing the attempt
            
        Raises:
            PreconditionError: If the credential disappeared
            UploadCancelledError: If the session is no longer uploading
        """
        session = self._store.session
        if session.is_terminal:
            raise UploadCancelledError("Upload aborted")
        
        chunk = session.chunk(index)
        self._store.dispatch(ChunkStarted(index))
        
        upload_start = time.time()
        chunk_size_kb = chunk.size / 1024
        self._logger.debug(
            f"Uploading chunk {index} at position {chunk.start} ({chunk_size_kb:.1f} KB)"
        )
        
        data = await self._reader.read_chunk(self._file_path, chunk.start, chunk.end)
        if not data:
            return self._fail(index, f"Failed to read chunk {index}")
        
        def on_progress(loaded: int, total: int) -> None:
            self._store.dispatch(ChunkProgressed(index, loaded, total))
        
        try:
            response = await self._api.upload_chunk(
                session.upload_id,
                index,
                data,
                progress_callback=on_progress,
                timeout=self._timeout
            )
        except asyncio.TimeoutError:
            self._logger.error(
                f"Chunk {index} upload timeout after {time.time() - upload_start:.2f}s"
            )
            return self._fail(index, "Timeout error", note="Timeout")
        except VaultAPIError as e:
            self._logger.error(f"Chunk {index} upload failed with status {e.status}: {e.message}")
            return self._fail(
                index,
                f"Failed with status {e.status}: {e.message}",
                note="Server error" if e.is_transient else f"HTTP {e.status}",
                error_code=e.status
            )
        except aiohttp.ClientError as e:
            self._logger.error(f"Chunk {index} upload failed after {time.time() - upload_start:.2f}s: {e}")
            return self._fail(index, "Network error")
        
        server_count = response.get('uploadedChunks') if isinstance(response, dict) else None
        self._store.dispatch(ChunkCompleted(index, server_count))
        
        upload_time = time.time() - upload_start
        speed_kbps = (chunk_size_kb / upload_time) if upload_time > 0 else 0
        self._logger.debug(
            f"Chunk {index} uploaded successfully in {upload_time:.2f}s ({speed_kbps:.1f} KB/s)"
        )
        return ChunkResult(index, ChunkOutcome.COMPLETE, self._store.session.chunk(index).retries)
    
    def _fail(
        self,
        index: int,
        reason: str,
        note: Optional[str] = None,
        error_code: Optional[int] = None
    ) -> ChunkResult:
        retries = self._store.session.chunk(index).retries + 1
        session = self._store.dispatch(ChunkFailed(
            index,
            reason,
            max_retries=self._retry.max_retries,
            note=note,
            terminal=not self._retry_strategy.should_retry(retries)
        ))
        chunk = session.chunk(index)
        terminal = chunk.state == ChunkState.ERROR
        error = ChunkUploadError(
            f"Chunk {index}: {reason}",
            chunk_index=index,
            retries=chunk.retries,
            terminal=terminal,
            error_code=error_code
        )
        
        if terminal:
            self._logger.error(f"Chunk {index} failed permanently after {chunk.retries} attempts: {reason}")
            return ChunkResult(index, ChunkOutcome.FAILED, chunk.retries, error)
        
        self._logger.warning(f"Chunk {index}: {chunk.last_error}")
        return ChunkResult(index, ChunkOutcome.RETRY, chunk.retries, error)
