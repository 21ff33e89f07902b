"""
Job status poller.

Tracks a server-side job (chunk assembly, proof generation) by
polling the status endpoint until a terminal status, writing every
observed change into the GlobalProgressStore.
"""
import asyncio
from typing import Any, Dict, Optional

import aiohttp

from ..api.config import PollingConfig
from ..api.errors import VaultAPIError
from ..clock import Clock, SystemClock
from ..exceptions import StatusPollError
from ..logging import get_logger
from ..progress import GlobalProgressStore, ProgressStatus, UploadProgress
from .protocols import StatusApiProtocol

logger = get_logger('vaultup.status')


class StatusPoller:
    """
    Polls one job until it completes or fails.
    
    Polling continues through stalls; a stall only raises the
    is_stalled flag on the stored record. Network errors are logged
    and retried on the next tick, HTTP errors end polling with an
    error record.
    
    Example:
        >>> poller = StatusPoller(api, store, config=PollingConfig.upload_form())
        >>> final = await poller.poll(job_id, filename="movie.mkv")
    """
    
    def __init__(
        self,
        api: StatusApiProtocol,
        store: GlobalProgressStore,
        clock: Optional[Clock] = None,
        config: Optional[PollingConfig] = None
    ):
        self._api = api
        self._store = store
        self._clock = clock or SystemClock()
        self._config = config or PollingConfig.global_observer()
        self._stopped = False
        self._polling = False
        self._seen_record = False
    
    @property
    def config(self) -> PollingConfig:
        return self._config
    
    @property
    def is_polling(self) -> bool:
        return self._polling
    
    def stop(self) -> None:
        """Stop after the current tick."""
        self._stopped = True
    
    async def poll(self, job_id: str, filename: Optional[str] = None) -> Optional[UploadProgress]:
        """
        Poll a job until a terminal status.
        
        Args:
            job_id: Server job identifier
            filename: File name kept on records the server omits it from
            
        Returns:
            The final record, or None if polling was stopped or the
            store was cleared underneath it
        """
        self._stopped = False
        self._polling = True
        self._seen_record = self._store.progress is not None
        logger.info(f"Starting status polling for job {job_id}")
        
        try:
            if self._config.initial_delay > 0:
                await self._clock.sleep(self._config.initial_delay)
            
            while not self._stopped:
                result = await self._tick(job_id, filename)
                if result is not None and result.status.is_terminal:
                    return result
                if self._stopped:
                    break
                await self._clock.sleep(self._config.interval)
            
            logger.info(f"Status polling for job {job_id} stopped")
            return self._store.progress
        finally:
            self._polling = False
    
    async def _tick(self, job_id: str, filename: Optional[str]) -> Optional[UploadProgress]:
        """Fetch once and apply. None means "keep polling without a record"."""
        try:
            data = await self._api.get_job_status(job_id)
        except VaultAPIError as e:
            error = self._poll_error(job_id, e)
            logger.error(f"Status polling for job {job_id} failed: {error.message}")
            current = self._store.progress
            return self._store.set(UploadProgress(
                status=ProgressStatus.ERROR,
                error=error.message,
                last_updated=self._clock.now(),
                job_id=job_id,
                filename=(current.filename if current else None) or filename,
            ))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Status poll for job {job_id} failed, will retry: {e}")
            self._store.check_stall(self._config.stall_threshold)
            return self._store.progress
        
        current = self._store.progress
        if current is None and self._seen_record:
            logger.info("Progress was cleared, stopping status polling")
            self.stop()
            return None
        
        return self._apply(job_id, filename, current, data)
    
    def _apply(
        self,
        job_id: str,
        filename: Optional[str],
        current: Optional[UploadProgress],
        data: Dict[str, Any]
    ) -> UploadProgress:
        self._seen_record = True
        base = current or UploadProgress(
            status=ProgressStatus.PENDING,
            job_id=job_id,
            filename=filename,
        )
        incoming = base.merge(data)
        now = self._clock.now()
        
        if incoming.is_complete:
            logger.info(f"Job {job_id} complete with 100% progress")
            return self._store.set(incoming.evolve(last_updated=now, is_stalled=False))
        
        if incoming.differs_from(current):
            logger.debug(
                f"Job {job_id}: {incoming.status.value} "
                f"{incoming.progress if incoming.progress is not None else '-'}% {incoming.message or ''}"
            )
            return self._store.set(incoming.evolve(last_updated=now, is_stalled=False))
        
        self._store.check_stall(self._config.stall_threshold)
        return self._store.progress
    
    def _poll_error(self, job_id: str, error: VaultAPIError) -> StatusPollError:
        if error.status == 404:
            message = (
                f"Upload status not found (Job ID: {job_id}). "
                "The job may have expired or the server restarted."
            )
        else:
            message = f"Failed to get status ({error.status})"
        return StatusPollError(message, job_id, error.status)
    
    async def refresh(self, job_id: Optional[str] = None) -> Optional[UploadProgress]:
        """
        Manual refresh: reset the stall timer and fetch once now.
        
        Only records that are still moving server-side are refreshed;
        settled or client-side states come back unchanged.
        
        Raises:
            StatusPollError: If the status endpoint fails
        """
        current = self._store.progress
        if current is None:
            return None
        if not (current.status.can_stall or current.is_stalled):
            logger.debug(f"Skipping refresh of {current.status.value} record")
            return current
        
        job_id = job_id or current.job_id
        message = current.message
        if message and 'attempt' not in message:
            message = f"{message} (manually refreshed)"
        
        self._store.set(current.evolve(
            last_updated=self._clock.now(),
            message=message,
            is_stalled=False
        ))
        
        if not job_id:
            return self._store.progress
        
        try:
            data = await self._api.get_job_status(job_id)
        except VaultAPIError as e:
            raise self._poll_error(job_id, e)
        
        incoming = current.merge(data)
        if (
            current.is_stalled
            and incoming.status == current.status
            and incoming.message == current.message
        ):
            logger.warning(
                f"Job {job_id} appears to be stuck in {current.status.value}. "
                "You may want to cancel and try again."
            )
            return self._store.progress
        
        return self._store.set(incoming.evolve(last_updated=self._clock.now(), is_stalled=False))
