"""
Single-shot upload service.

Uploads a whole file in one multipart request and tracks the
resulting server job through the progress store.
"""
import asyncio
from pathlib import Path
from typing import Optional, Union

import aiohttp

from .file_service import FileValidator
from ..protocols import UploadApiProtocol
from ...api.config import PollingConfig
from ...api.errors import VaultAPIError
from ...clock import Clock, SystemClock
from ...exceptions import UploadCancelledError
from ...logging import get_logger
from ...progress import GlobalProgressStore, ProgressStatus, UploadProgress
from ...status import StatusPoller

logger = get_logger('vaultup.upload.single')


class SingleShotUploader:
    """
    Non-chunked upload path.
    
    Writes a 'starting' record into the store, posts the file, merges
    the server response into the record and then polls the returned
    job on the upload-form cadence until it finishes.
    
    Example:
        >>> uploader = SingleShotUploader(api, store)
        >>> final = await uploader.upload("report.pdf")
    """
    
    def __init__(
        self,
        api: UploadApiProtocol,
        store: GlobalProgressStore,
        clock: Optional[Clock] = None,
        polling: Optional[PollingConfig] = None
    ):
        self._api = api
        self._store = store
        self._clock = clock or SystemClock()
        self._polling = polling or PollingConfig.upload_form()
        self._validator = FileValidator()
        self._poller: Optional[StatusPoller] = None
        self._inflight: Optional[asyncio.Future] = None
        self._cancelled = False
    
    async def upload(
        self,
        file_path: Union[str, Path],
        content_type: str = 'application/octet-stream',
        track_status: bool = True
    ) -> Optional[UploadProgress]:
        """
        Upload a file and follow its job.
        
        Args:
            file_path: File to upload
            content_type: MIME type of the file part
            track_status: Poll the job until it finishes
            
        Returns:
            The last record seen for this upload
            
        Raises:
            PreconditionError: No credential or no usable file
            UploadCancelledError: If cancel() was called
            VaultAPIError: If the upload request fails
        """
        path, file_size = self._validator.validate(file_path)
        self._api.require_credential()
        self._cancelled = False
        filename = path.name
        
        logger.info(f"Starting single-shot upload: {filename} ({file_size} bytes)")
        self._store.set(UploadProgress(
            status=ProgressStatus.STARTING,
            progress=0,
            message="Starting upload...",
            filename=filename,
            last_updated=self._clock.now(),
        ))
        
        def on_progress(sent: int, total: int) -> None:
            percent = round(sent / total * 100) if total else 0
            self._store.set(lambda prev: prev.evolve(
                status=ProgressStatus.UPLOADING,
                progress=percent,
                message=f"Uploading file... {percent}%",
                last_updated=self._clock.now(),
            ) if prev is not None else None)
        
        self._inflight = asyncio.ensure_future(
            self._api.upload_file(path, filename, content_type, on_progress)
        )
        try:
            data = await self._inflight
        except asyncio.CancelledError:
            if self._cancelled:
                raise UploadCancelledError("Upload cancelled by user")
            raise
        except (VaultAPIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            message = getattr(e, 'message', None) or str(e) or "Upload failed"
            logger.error(f"Single-shot upload of {filename} failed: {message}")
            self._fail(filename, message)
            raise
        finally:
            self._inflight = None
        
        record = self._store.set(lambda prev: (prev or UploadProgress(
            status=ProgressStatus.PROCESSING,
            filename=filename,
        )).merge(data).evolve(last_updated=self._clock.now()))
        
        if record is not None and record.status.is_terminal:
            return record
        
        job_id = record.job_id if record is not None else None
        if not job_id:
            self._fail(filename, "No job ID received from server")
            return self._store.progress
        
        if not track_status:
            return record
        
        self._poller = StatusPoller(self._api, self._store, self._clock, self._polling)
        try:
            return await self._poller.poll(job_id, filename)
        finally:
            self._poller = None
    
    def cancel(self) -> None:
        """Abort the request or polling and leave a cancelled record."""
        self._cancelled = True
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        if self._poller is not None:
            self._poller.stop()
        
        current = self._store.progress
        if current is not None and not current.status.is_terminal:
            logger.info("Single-shot upload cancelled")
            self._store.set(current.evolve(
                status=ProgressStatus.CANCELLED,
                message="Upload cancelled by user",
                last_updated=self._clock.now(),
            ))
    
    def _fail(self, filename: str, message: str) -> None:
        self._store.set(lambda prev: (prev or UploadProgress(
            status=ProgressStatus.ERROR,
            filename=filename,
        )).evolve(
            status=ProgressStatus.ERROR,
            error=message,
            last_updated=self._clock.now(),
        ))
