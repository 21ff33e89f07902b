"""
Async upload API client.

Fully asynchronous client for the HTTP contract consumed by the
upload engine: chunked init/chunk/complete, chunked status,
single-shot upload and job status.
"""
import logging
from pathlib import Path
from typing import Dict, Optional, Any, Callable, AsyncIterator
import aiofiles
import aiohttp

from .config import APIConfig
from .errors import VaultAPIError
from ..exceptions import PreconditionError
from ..logging import get_logger

ProgressCallback = Callable[[int, int], None]


class Endpoints:
    """Endpoint paths relative to the API base URL."""
    
    CHUNKED_INIT = '/api/v1/chunked-upload/init'
    CHUNKED_CHUNK = '/api/v1/chunked-upload/chunk'
    CHUNKED_COMPLETE = '/api/v1/chunked-upload/complete'
    CHUNKED_STATUS = '/api/v1/chunked-upload/status/{upload_id}'
    UPLOAD = '/api/v1/upload'
    UPLOAD_STATUS = '/api/v1/upload/status/{job_id}'


async def stream_bytes(
    data: bytes,
    callback: Optional[ProgressCallback] = None,
    piece_size: int = 64 * 1024
) -> AsyncIterator[bytes]:
    """
    Yield data in pieces, reporting bytes handed to the transport.
    
    The callback fires after each piece has been consumed by the
    request writer, so reported progress trails the socket.
    """
    total = len(data)
    view = memoryview(data)
    sent = 0
    while sent < total:
        piece = bytes(view[sent:sent + piece_size])
        yield piece
        sent += len(piece)
        if callback:
            callback(sent, total)


async def stream_file(
    file_path: Path,
    callback: Optional[ProgressCallback] = None,
    piece_size: int = 256 * 1024
) -> AsyncIterator[bytes]:
    """Yield a file's contents without loading it whole."""
    total = file_path.stat().st_size
    sent = 0
    async with aiofiles.open(file_path, 'rb') as f:
        while True:
            piece = await f.read(piece_size)
            if not piece:
                break
            yield piece
            sent += len(piece)
            if callback:
                callback(sent, total)


class AsyncAPIClient:
    """
    Asynchronous upload API client.
    
    Features:
    - Full async/await support
    - Bearer credential checked before any request is issued
    - Configurable proxy, SSL, timeouts
    - Connection pooling
    - Error bodies parsed as JSON with raw-text fallback
    
    Example:
        >>> config = APIConfig(base_url='http://localhost:8008', token='jwt')
        >>> async with AsyncAPIClient(config) as client:
        ...     result = await client.get_job_status('job-id')
    """
    
    def __init__(self, config: Optional[APIConfig] = None):
        """
        Initialize async API client.
        
        Args:
            config: API configuration (uses defaults if not provided)
        """
        self._config = config or APIConfig.default()
        self._session: Optional[aiohttp.ClientSession] = None
        self._connector: Optional[aiohttp.TCPConnector] = None
        self._logger = get_logger('vaultup.api')
        # Only set level if root logger has no handlers (basicConfig not called)
        if not logging.getLogger().handlers:
            self._logger.setLevel(self._config.log_level)
    
    @property
    def config(self) -> APIConfig:
        """Get current configuration."""
        return self._config
    
    @property
    def token(self) -> Optional[str]:
        """Current bearer credential."""
        return self._config.token
    
    @token.setter
    def token(self, value: Optional[str]):
        self._config.token = value
    
    @property
    def has_credential(self) -> bool:
        return bool(self._config.token)
    
    async def __aenter__(self) -> 'AsyncAPIClient':
        """Async context manager entry."""
        await self._ensure_session()
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
    
    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session is created and open."""
        if self._session is None or self._session.closed:
            self._connector = aiohttp.TCPConnector(
                **self._config.get_connector_kwargs()
            )
            self._session = aiohttp.ClientSession(
                connector=self._connector,
                **self._config.get_session_kwargs()
            )
        return self._session
    
    async def close(self):
        """Close client and release resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._connector = None
    
    def require_credential(self) -> str:
        """
        Return the bearer token or fail before touching the network.
        
        Raises:
            PreconditionError: If no credential is configured
        """
        token = self._config.token
        if not token:
            raise PreconditionError("Authentication required. Please login again.")
        return token
    
    def _auth_headers(self) -> Dict[str, str]:
        return {'Authorization': f"Bearer {self.require_credential()}"}
    
    async def _request(
        self,
        method: str,
        path: str,
        default_error: str,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        **kwargs
    ) -> Any:
        """
        Issue one request and decode its JSON body.
        
        Raises:
            PreconditionError: If no credential is configured
            VaultAPIError: On non-2xx responses or undecodable bodies
            aiohttp.ClientError: On network errors
            asyncio.TimeoutError: When the timeout expires
        """
        headers = self._auth_headers()
        session = await self._ensure_session()
        url = self._config.url(path)
        
        if self._config.proxy:
            kwargs.setdefault('proxy', self._config.proxy.to_aiohttp_proxy())
        if timeout is not None:
            kwargs['timeout'] = timeout
        
        self._logger.debug(f"{method} {url}")
        async with session.request(method, url, headers=headers, **kwargs) as response:
            if not 200 <= response.status < 300:
                body = await response.text()
                error = VaultAPIError.from_body(
                    response.status, body, f"{default_error} ({response.status})"
                )
                self._logger.debug(f"{method} {url} failed with {response.status}: {error.message}")
                raise error
            
            try:
                return await response.json(content_type=None)
            except ValueError:
                raise VaultAPIError(response.status, "Invalid response from server")
    
    async def init_upload(
        self,
        filename: str,
        total_size: int,
        chunk_size: int,
        total_chunks: int,
        file_type: str
    ) -> Dict[str, Any]:
        """
        Open a chunked upload on the server.
        
        Returns:
            {'uploadId': ..., 'totalChunks': ...}
        """
        return await self._request(
            'POST',
            Endpoints.CHUNKED_INIT,
            "Failed to initialize upload",
            json={
                'filename': filename,
                'totalSize': total_size,
                'chunkSize': chunk_size,
                'totalChunks': total_chunks,
                'fileType': file_type,
            }
        )
    
    async def upload_chunk(
        self,
        upload_id: str,
        chunk_index: int,
        data: bytes,
        progress_callback: Optional[ProgressCallback] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Send one chunk as a multipart request.
        
        Args:
            upload_id: Server upload identifier
            chunk_index: Index of the chunk
            data: Chunk bytes
            progress_callback: Called with (bytes_sent, chunk_size)
            timeout: Total timeout in seconds (defaults to the configured chunk timeout)
            
        Returns:
            {'uploadId', 'chunkIndex', 'uploadedChunks', 'totalChunks', 'allChunksReceived'}
        """
        if not data:
            raise ValueError(f"Cannot upload empty chunk {chunk_index}")
        
        form = aiohttp.FormData()
        form.add_field(
            'chunk',
            stream_bytes(data, progress_callback),
            filename=f"chunk_{chunk_index}",
            content_type='application/octet-stream'
        )
        
        client_timeout = self._config.timeout.to_chunk_timeout()
        if timeout is not None:
            client_timeout = aiohttp.ClientTimeout(total=timeout, connect=self._config.timeout.connect)
        
        return await self._request(
            'POST',
            Endpoints.CHUNKED_CHUNK,
            f"Chunk {chunk_index} upload failed",
            params={'uploadId': upload_id, 'chunkIndex': str(chunk_index)},
            data=form,
            timeout=client_timeout
        )
    
    async def complete_upload(self, upload_id: str) -> Dict[str, Any]:
        """
        Ask the server to assemble the chunks.
        
        Returns:
            {'jobId': ..., 'status': ...}
        """
        return await self._request(
            'POST',
            Endpoints.CHUNKED_COMPLETE,
            "Failed to finalize upload",
            json={'uploadId': upload_id}
        )
    
    async def get_chunked_status(self, upload_id: str) -> Dict[str, Any]:
        """Server view of a chunked upload (received chunk count, status)."""
        return await self._request(
            'GET',
            Endpoints.CHUNKED_STATUS.format(upload_id=upload_id),
            "Failed to get chunked upload status"
        )
    
    async def upload_file(
        self,
        file_path: Path,
        filename: Optional[str] = None,
        content_type: str = 'application/octet-stream',
        progress_callback: Optional[ProgressCallback] = None
    ) -> Dict[str, Any]:
        """
        Single-shot upload of a whole file.
        
        Returns:
            {'status', 'progress', 'cid'?, 'jobId'?, 'proofSetId'?}
        """
        self.require_credential()
        form = aiohttp.FormData()
        form.add_field(
            'file',
            stream_file(file_path, progress_callback),
            filename=filename or file_path.name,
            content_type=content_type
        )
        return await self._request(
            'POST',
            Endpoints.UPLOAD,
            "Upload failed",
            data=form,
            timeout=aiohttp.ClientTimeout(total=None, connect=self._config.timeout.connect)
        )
    
    async def get_job_status(self, job_id: str) -> Dict[str, Any]:
        """
        Fetch the processing status of a server-side job.
        
        Returns:
            {'status', 'progress'?, 'message'?, 'cid'?, 'serviceProofSetId'?, 'error'?}
        """
        return await self._request(
            'GET',
            Endpoints.UPLOAD_STATUS.format(job_id=job_id),
            "Failed to get status"
        )
