"""
VaultClient - High-level async client for chunked uploads.

Example:
    >>> async with VaultClient(token, base_url="http://localhost:8008") as vault:
    ...     result = await vault.upload("movie.mkv")
    ...     print(result.job_id)
"""
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .core.api import (
    AsyncAPIClient,
    APIConfig,
    EventEmitter,
    PollingConfig,
    ProxyConfig,
    SSLConfig,
    TimeoutConfig,
    RetryConfig
)
from .core.clock import Clock, SystemClock
from .core.logging import get_logger
from .core.progress import (
    GlobalProgressStore,
    MemoryProgressStorage,
    ProgressStorage,
    SQLiteProgressStorage,
    UploadProgress
)
from .core.status import StatusPoller
from .core.upload import (
    FinalizePolicy,
    SingleShotUploader,
    UploadConfig,
    UploadCoordinator,
    UploadResult,
    UploadSession
)
from .core.utils import MIB

logger = get_logger('vaultup.client')

# Files above this size go through the chunked path when not chosen explicitly
CHUNKED_THRESHOLD = 100 * MIB


class VaultClient:
    """
    Composition root for the upload engine.
    
    Owns the HTTP client, the process-wide progress store and the
    coordinators. Every component receives its collaborators from
    here; nothing is a global.
    
    Events (via on()):
        'change': progress record or None
        'upload_completed': {'job_id', 'cid', 'filename', 'proof_set_id'}
        'upload_finished': {'job_id', 'upload_id', 'filename'} after finalization
    
    With custom configuration:
        >>> config = VaultClient.create_config(base_url="https://vault.example", proxy="http://proxy:8080")
        >>> vault = VaultClient(token, config=config, storage="progress.db")
    """
    
    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        config: Optional[APIConfig] = None,
        storage: Optional[Union[str, Path, ProgressStorage]] = None,
        clock: Optional[Clock] = None,
        api: Optional[AsyncAPIClient] = None
    ):
        """
        Initialize the client.
        
        Args:
            token: Bearer credential
            base_url: Server URL (overrides config.base_url)
            config: Optional API configuration
            storage: SQLite path or storage backend for progress snapshots
            clock: Time source shared by every component
            api: Pre-built API client
        """
        self._config = config or APIConfig.default()
        if base_url:
            self._config.base_url = base_url.rstrip('/')
        if token is not None:
            self._config.token = token
        
        self._clock = clock or SystemClock()
        self._emitter = EventEmitter('vaultup.client')
        self._api = api or AsyncAPIClient(self._config)
        
        if storage is None:
            backend: ProgressStorage = MemoryProgressStorage()
        elif isinstance(storage, (str, Path)):
            backend = SQLiteProgressStorage(storage)
        else:
            backend = storage
        
        self._store = GlobalProgressStore(
            backend,
            clock=self._clock,
            stall_threshold=self._config.polling.stall_threshold,
            emitter=self._emitter
        )
        self._coordinator: Optional[UploadCoordinator] = None
        self._single: Optional[SingleShotUploader] = None
        self._pollers: Dict[str, StatusPoller] = {}
    
    @staticmethod
    def create_config(
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        proxy: Optional[str] = None,
        proxy_user: Optional[str] = None,
        proxy_pass: Optional[str] = None,
        timeout: float = 300,
        chunk_timeout: float = 120,
        max_retries: int = 3,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None
    ) -> APIConfig:
        """
        Create API configuration with common options.
        
        Args:
            base_url: Server URL
            token: Bearer credential
            proxy: Proxy URL (e.g., "http://proxy:8080")
            proxy_user: Proxy username
            proxy_pass: Proxy password
            timeout: Control request timeout in seconds
            chunk_timeout: Per-chunk transfer timeout in seconds
            max_retries: Attempts per chunk
            verify_ssl: Whether to verify SSL certificates
            user_agent: Custom user agent string
        
        Returns:
            APIConfig instance
        """
        proxy_config = None
        if proxy:
            proxy_config = ProxyConfig(
                url=proxy,
                username=proxy_user,
                password=proxy_pass
            )
        
        config = APIConfig(
            token=token,
            proxy=proxy_config,
            timeout=TimeoutConfig(total=timeout, chunk_timeout=chunk_timeout),
            retry=RetryConfig(max_retries=max_retries),
            ssl=SSLConfig(verify=verify_ssl),
            user_agent=user_agent or 'vaultup/1.0.0'
        )
        if base_url:
            config.base_url = base_url.rstrip('/')
        return config
    
    # =========================================================================
    # Context manager
    # =========================================================================
    
    async def __aenter__(self) -> 'VaultClient':
        """Enter async context - opens the HTTP session and restores progress."""
        await self._api.__aenter__()
        self._store.rehydrate()
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context - cleanup."""
        await self.close()
    
    async def close(self):
        """Close the client and release resources."""
        for poller in self._pollers.values():
            poller.stop()
        await self._api.close()
        await self._store.aclose()
    
    # =========================================================================
    # State
    # =========================================================================
    
    @property
    def api(self) -> AsyncAPIClient:
        return self._api
    
    @property
    def store(self) -> GlobalProgressStore:
        return self._store
    
    @property
    def progress(self) -> Optional[UploadProgress]:
        """Current upload progress record, if any."""
        return self._store.progress
    
    @property
    def session(self) -> Optional[UploadSession]:
        """Session of the last chunked upload."""
        return self._coordinator.session if self._coordinator else None
    
    @property
    def is_logged_in(self) -> bool:
        return self._api.has_credential
    
    def on(self, event: str, callback: Callable) -> 'VaultClient':
        """Subscribe to 'change', 'upload_completed' or 'upload_finished'."""
        self._emitter.on(event, callback)
        return self
    
    def off(self, event: str, callback: Optional[Callable] = None) -> 'VaultClient':
        self._emitter.off(event, callback)
        return self
    
    # =========================================================================
    # Uploads
    # =========================================================================
    
    async def upload(
        self,
        file_path: Union[str, Path],
        chunked: Optional[bool] = None,
        **kwargs
    ) -> Union[UploadResult, Optional[UploadProgress]]:
        """
        Upload a file.
        
        Args:
            file_path: Local file path
            chunked: Force the chunked (True) or single-shot (False) path;
                by default files above 100 MiB are chunked
            **kwargs: Passed to upload_chunked() or upload_single()
        
        Returns:
            UploadResult for chunked uploads, the last progress record otherwise
        """
        path = Path(file_path)
        if chunked is None:
            chunked = path.is_file() and path.stat().st_size > CHUNKED_THRESHOLD
        
        if chunked:
            return await self.upload_chunked(path, **kwargs)
        return await self.upload_single(path, **kwargs)
    
    async def upload_chunked(
        self,
        file_path: Union[str, Path],
        chunk_size: Optional[int] = None,
        max_concurrent_chunks: int = 3,
        file_type: Optional[str] = None,
        finalize_policy: FinalizePolicy = FinalizePolicy.REQUIRE_ALL_COMPLETE,
        track_status: bool = True
    ) -> UploadResult:
        """
        Upload a file in chunks and, optionally, follow the server job.
        
        Args:
            file_path: Local file path
            chunk_size: Chunk size override in bytes
            max_concurrent_chunks: Chunks uploading at once
            file_type: MIME type (guessed when omitted)
            finalize_policy: Whether chunk errors block finalization
            track_status: Poll the job created by finalization
        
        Returns:
            UploadResult with upload and job identifiers
        
        Example:
            >>> result = await vault.upload_chunked("backup.tar", chunk_size=8 * MIB)
        """
        config = UploadConfig(
            file_path=Path(file_path),
            chunk_size=chunk_size,
            max_concurrent_chunks=max_concurrent_chunks,
            file_type=file_type,
            finalize_policy=finalize_policy,
            track_status=track_status
        )
        self._coordinator = UploadCoordinator(
            self._api,
            self._store,
            clock=self._clock,
            retry_config=self._config.retry,
            chunk_timeout=self._config.timeout.chunk_timeout,
            emitter=self._emitter
        )
        result = await self._coordinator.upload(config)
        
        if config.track_status:
            await self.track(result.job_id, filename=result.session.filename)
        return result
    
    async def upload_single(
        self,
        file_path: Union[str, Path],
        content_type: str = 'application/octet-stream',
        track_status: bool = True
    ) -> Optional[UploadProgress]:
        """
        Upload a whole file in one request and follow its job.
        
        Returns:
            Last progress record seen for the upload
        """
        self._single = SingleShotUploader(
            self._api,
            self._store,
            clock=self._clock,
            polling=PollingConfig.upload_form()
        )
        try:
            return await self._single.upload(file_path, content_type, track_status)
        finally:
            self._single = None
    
    def cancel(self) -> None:
        """Cancel whatever upload is running."""
        if self._coordinator is not None:
            self._coordinator.cancel()
        if self._single is not None:
            self._single.cancel()
        for poller in self._pollers.values():
            poller.stop()
    
    # =========================================================================
    # Status
    # =========================================================================
    
    async def track(
        self,
        job_id: str,
        filename: Optional[str] = None,
        polling: Optional[PollingConfig] = None
    ) -> Optional[UploadProgress]:
        """
        Poll a server job until it finishes.
        
        Args:
            job_id: Job identifier from finalization or a single-shot upload
            filename: Shown on records when the server omits it
            polling: Cadence (global observer cadence by default)
        
        Returns:
            Final progress record, or None if tracking was stopped
        """
        poller = StatusPoller(
            self._api,
            self._store,
            self._clock,
            polling or self._config.polling
        )
        self._pollers[job_id] = poller
        try:
            return await poller.poll(job_id, filename)
        finally:
            self._pollers.pop(job_id, None)
    
    async def refresh_status(self, job_id: Optional[str] = None) -> Optional[UploadProgress]:
        """Manually re-check the current job, resetting its stall timer."""
        current = self._store.progress
        job_id = job_id or (current.job_id if current else None)
        poller = self._pollers.get(job_id) if job_id else None
        if poller is None:
            poller = StatusPoller(self._api, self._store, self._clock, self._config.polling)
        return await poller.refresh(job_id)
    
    async def job_status(self, job_id: str) -> Dict[str, Any]:
        """One raw read of the job status endpoint."""
        return await self._api.get_job_status(job_id)
    
    async def chunked_status(self, upload_id: str) -> Dict[str, Any]:
        """Server view of a chunked upload."""
        return await self._api.get_chunked_status(upload_id)
    
    def clear_progress(self) -> None:
        """Drop the current progress record (leaves a tombstone)."""
        self._store.clear()
    
    async def logout(self) -> None:
        """Forget the credential and any upload progress."""
        self.cancel()
        self._api.token = None
        self._store.clear()
        logger.info("Logged out")
