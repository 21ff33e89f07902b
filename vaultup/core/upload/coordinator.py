"""
Upload coordinator.

Orchestrates one chunked upload session using injected dependencies:
validate, plan, init, schedule chunks, gate, finalize.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from .models import (
    FinalizePolicy,
    SessionStatus,
    UploadConfig,
    UploadResult,
    UploadSession
)
from .protocols import ChunkingStrategy, FileReaderProtocol, UploadApiProtocol
from .scheduler import ConcurrencyScheduler
from .services import AsyncFileReader, ChunkTransport, FileValidator, UploadFinalizer
from .state import (
    ChunkCompleted,
    FinalizeStarted,
    SessionCancelled,
    SessionCompleted,
    SessionEvent,
    SessionFailed,
    SessionInitialized,
    SessionStore,
    SpeedSampled
)
from .strategies import AdaptiveChunkingStrategy
from ..api.config import RetryConfig
from ..api.errors import VaultAPIError
from ..api.events import EventEmitter
from ..api.retry import ExponentialBackoffStrategy
from ..clock import Clock, SystemClock
from ..exceptions import PreconditionError, UploadCancelledError, UploadSessionError
from ..logging import get_logger
from ..progress import GlobalProgressStore, ProgressStatus, UploadProgress
from ..utils import GIB

logger = get_logger('vaultup.upload.coordinator')

MAX_CHUNKED_FILE_SIZE = 10 * GIB

_NETWORK_ERRORS = (VaultAPIError, aiohttp.ClientError, asyncio.TimeoutError)

_PROJECTED_STATUS = {
    SessionStatus.INITIALIZING: ProgressStatus.STARTING,
    SessionStatus.UPLOADING: ProgressStatus.UPLOADING,
    SessionStatus.FINALIZING: ProgressStatus.FINALIZING,
    SessionStatus.COMPLETE: ProgressStatus.PROCESSING,
    SessionStatus.ERROR: ProgressStatus.ERROR,
    SessionStatus.PAUSED: ProgressStatus.CANCELLED,
}


class UploadCoordinator:
    """
    Coordinates the chunked upload process.
    
    Uses dependency injection for all components, making it:
    - Testable (mock dependencies)
    - Extensible (swap strategies)
    - Maintainable (single responsibility)
    
    Session changes are projected into the GlobalProgressStore on
    every status change and chunk completion. After finalization an
    'upload_finished' event carrying the job id is emitted.
    """
    
    FINISHED = 'upload_finished'
    
    def __init__(
        self,
        api: UploadApiProtocol,
        progress_store: Optional[GlobalProgressStore] = None,
        clock: Optional[Clock] = None,
        chunking_strategy: Optional[ChunkingStrategy] = None,
        file_reader: Optional[FileReaderProtocol] = None,
        retry_config: Optional[RetryConfig] = None,
        chunk_timeout: Optional[float] = None,
        emitter: Optional[EventEmitter] = None,
        max_file_size: Optional[int] = MAX_CHUNKED_FILE_SIZE
    ):
        """
        Initialize upload coordinator.
        
        Args:
            api: Upload API client
            progress_store: Shared progress slot (private one when omitted)
            clock: Time source for the speed sampler
            chunking_strategy: Chunk sizing rule
            file_reader: File reader implementation
            retry_config: Attempts and backoff per chunk
            chunk_timeout: Per-chunk timeout in seconds
            emitter: Emitter for 'upload_finished'
            max_file_size: Largest accepted file (None for no limit)
        """
        self._api = api
        self._clock = clock or SystemClock()
        self._progress = progress_store or GlobalProgressStore(clock=self._clock)
        self._chunking = chunking_strategy or AdaptiveChunkingStrategy()
        self._file_reader = file_reader or AsyncFileReader()
        self._retry_config = retry_config or RetryConfig()
        self._chunk_timeout = chunk_timeout
        self._emitter = emitter or EventEmitter('vaultup.upload')
        self._validator = FileValidator()
        self._max_file_size = max_file_size
        
        self._store: Optional[SessionStore] = None
        self._scheduler: Optional[ConcurrencyScheduler] = None
        self._inflight: Optional[asyncio.Future] = None
        self._cancel_requested = False
    
    @property
    def session(self) -> Optional[UploadSession]:
        """Snapshot of the current (or last) session."""
        return self._store.session if self._store else None
    
    @property
    def progress_store(self) -> GlobalProgressStore:
        return self._progress
    
    def on(self, event: str, callback: Callable) -> 'UploadCoordinator':
        self._emitter.on(event, callback)
        return self
    
    async def upload(self, config: UploadConfig) -> UploadResult:
        """
        Execute the complete chunked upload.
        
        Args:
            config: Upload configuration
            
        Returns:
            UploadResult with the finalization job id
            
        Raises:
            PreconditionError: Missing credential, missing or empty file
            UploadSessionError: Init, chunk or finalize stage failed
            UploadCancelledError: cancel() was called
        """
        path, file_size = self._validator.validate(config.file_path)
        self._validator.validate_size(file_size, self._max_file_size)
        self._api.require_credential()
        self._cancel_requested = False
        
        strategy = AdaptiveChunkingStrategy(config.chunk_size) if config.chunk_size else self._chunking
        chunk_size = strategy.select_chunk_size(file_size)
        session = UploadSession.create(
            filename=path.name,
            file_size=file_size,
            file_type=config.file_type,
            chunk_size=chunk_size,
            start_time=self._clock.now()
        )
        file_size_mb = file_size / (1024 * 1024)
        logger.info(
            f"Starting upload: {path.name} ({file_size_mb:.2f} MB, "
            f"{session.total_chunks} chunks of {chunk_size / 1024:.0f} KB)"
        )
        
        self._store = SessionStore(session)
        self._store.on_change(self._project)
        self._project(session, None, None)
        
        upload_id = await self._initialize(session)
        self._dispatch(SessionInitialized(upload_id))
        
        sampler = asyncio.ensure_future(self._sample_speed(config.speed_sample_interval))
        try:
            await self._upload_chunks(path, config)
        finally:
            sampler.cancel()
            await asyncio.gather(sampler, return_exceptions=True)
        self._dispatch(SpeedSampled(self._clock.now()))
        
        self._check_finalize(config.finalize_policy)
        
        job_id, status, response = await self._finalize(upload_id)
        session = self._dispatch(SessionCompleted(job_id))
        logger.info(f"Upload {upload_id} complete, server job {job_id}")
        
        self._emitter.emit(self.FINISHED, {
            'job_id': job_id,
            'upload_id': upload_id,
            'filename': session.filename,
        })
        
        return UploadResult(
            upload_id=upload_id,
            job_id=job_id,
            status=status,
            file_size=file_size,
            session=session,
            response=response
        )
    
    def cancel(self) -> None:
        """
        Abort the running session.
        
        In-flight chunk transfers and the init or finalize call are
        cancelled and no further chunks are scheduled. The session
        ends PAUSED and cannot be resumed.
        """
        if self._store is None or self._store.session.is_terminal:
            return
        logger.info(f"Cancelling upload of {self._store.session.filename}")
        self._cancel_requested = True
        self._store.dispatch(SessionCancelled())
        if self._scheduler is not None:
            self._scheduler.abort()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
    
    def _dispatch(self, event: SessionEvent) -> UploadSession:
        if self._cancel_requested:
            raise UploadCancelledError("Upload cancelled by user")
        return self._store.dispatch(event)
    
    async def _cancellable(self, call: Awaitable[Dict[str, Any]]) -> Any:
        """Run an init/finalize call that cancel() can interrupt."""
        self._inflight = asyncio.ensure_future(call)
        try:
            return await self._inflight
        except asyncio.CancelledError:
            if self._cancel_requested:
                raise UploadCancelledError("Upload cancelled by user")
            raise
        finally:
            self._inflight = None
    
    async def _initialize(self, session: UploadSession) -> str:
        logger.info("Requesting upload session from server")
        try:
            response = await self._cancellable(self._api.init_upload(
                session.filename,
                session.file_size,
                session.chunk_size,
                session.total_chunks,
                session.file_type
            ))
        except _NETWORK_ERRORS as e:
            raise self._session_error("init", self._describe(e, "Failed to initialize upload"), e)
        
        upload_id = response.get('uploadId') if isinstance(response, dict) else None
        if not upload_id:
            raise self._session_error("init", "No upload ID returned from server")
        
        server_chunks = response.get('totalChunks')
        if server_chunks is not None and server_chunks != session.total_chunks:
            logger.warning(
                f"Server expects {server_chunks} chunks, planned {session.total_chunks}"
            )
        logger.debug(f"Upload session opened: {upload_id}")
        return str(upload_id)
    
    async def _upload_chunks(self, path, config: UploadConfig) -> None:
        transport = ChunkTransport(
            self._api,
            self._store,
            self._file_reader,
            path,
            retry_config=self._retry_config,
            timeout=self._chunk_timeout,
            retry_strategy=ExponentialBackoffStrategy(self._retry_config, self._clock)
        )
        self._scheduler = ConcurrencyScheduler(transport, max_concurrent=config.max_concurrent_chunks)
        try:
            report = await self._scheduler.run(range(self._store.session.total_chunks))
        except PreconditionError as e:
            self._store.dispatch(SessionFailed(e.message))
            raise
        finally:
            self._scheduler = None
        
        if self._cancel_requested:
            raise UploadCancelledError("Upload cancelled by user")
        
        if report.failed:
            logger.warning(f"Chunks failed permanently: {sorted(report.failed)}")
    
    def _check_finalize(self, policy: FinalizePolicy) -> None:
        session = self._store.session
        if session.can_finalize(policy):
            if session.failed_indices:
                logger.warning(
                    f"Finalizing with {len(session.failed_indices)} failed chunk(s) "
                    f"({policy.value})"
                )
            return
        
        failed = session.failed_indices
        if failed:
            last = session.chunk(failed[0]).last_error
            message = f"{len(failed)} chunk(s) failed to upload: {last}"
        else:
            message = "Upload ended with chunks still pending"
        raise self._session_error("chunks", message)
    
    async def _finalize(self, upload_id: str):
        self._dispatch(FinalizeStarted())
        finalizer = UploadFinalizer(self._api)
        try:
            return await self._cancellable(finalizer.finalize(upload_id))
        except _NETWORK_ERRORS as e:
            raise self._session_error("finalize", self._describe(e, "Failed to finalize upload"), e)
    
    async def _sample_speed(self, interval: float) -> None:
        if interval <= 0:
            return
        while self._store is not None and not self._store.session.is_terminal:
            await self._clock.sleep(interval)
            self._store.dispatch(SpeedSampled(self._clock.now()))
    
    def _session_error(
        self,
        stage: str,
        message: str,
        cause: Optional[Exception] = None
    ) -> UploadSessionError:
        logger.error(f"Upload failed during {stage}: {message}")
        self._store.dispatch(SessionFailed(message))
        code = getattr(cause, 'status', None)
        return UploadSessionError(message, stage, code)
    
    @staticmethod
    def _describe(error: Exception, default: str) -> str:
        if isinstance(error, VaultAPIError):
            return error.message
        if isinstance(error, asyncio.TimeoutError):
            return f"{default}: timeout"
        return f"{default}: {error}" if str(error) else default
    
    def _project(
        self,
        session: UploadSession,
        previous: Optional[UploadSession],
        event: Optional[SessionEvent]
    ) -> None:
        """Mirror status changes and chunk completions into the progress store."""
        if previous is not None and session.status == previous.status and not isinstance(event, ChunkCompleted):
            return
        
        status = _PROJECTED_STATUS[session.status]
        progress = UploadProgress(
            status=status,
            progress=session.progress_percent,
            message=session.describe(),
            filename=session.filename,
            job_id=session.job_id,
            last_updated=self._clock.now(),
        )
        if session.status == SessionStatus.COMPLETE:
            progress = progress.evolve(progress=100, message="Upload complete, processing on server...")
        elif session.status == SessionStatus.ERROR:
            progress = progress.evolve(error=session.error_message)
        self._progress.set(progress)
