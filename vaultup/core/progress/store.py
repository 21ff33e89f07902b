"""
Process-wide upload progress slot.

GlobalProgressStore holds at most one UploadProgress. It is created
empty by the composition root, filled when an upload starts, cleared
on completion, cancel or error, and optionally rehydrated from
durable storage after a restart.
"""
import asyncio
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional, Set, Union

from .models import ProgressStatus, UploadProgress
from .storage import MemoryProgressStorage, ProgressStorage
from ..api.events import EventEmitter
from ..clock import Clock, SystemClock
from ..logging import get_logger

logger = get_logger('vaultup.progress')

ProgressUpdater = Callable[[Optional[UploadProgress]], Optional[UploadProgress]]


class GlobalProgressStore:
    """
    Single progress slot observed by the rest of the application.
    
    Events:
        'change': (progress or None) after every set/clear
        'upload_completed': ({'job_id', 'cid', 'filename', 'proof_set_id'}) once per job
    
    Example:
        >>> store = GlobalProgressStore(SQLiteProgressStorage("progress.db"))
        >>> store.rehydrate()
        >>> store.on('upload_completed', refresh_file_list)
        >>> store.set(lambda prev: prev.evolve(message="Still working"))
    """
    
    CHANGE = 'change'
    COMPLETED = 'upload_completed'
    # Recent completions remembered for de-duplication
    COMPLETED_HISTORY = 32
    
    def __init__(
        self,
        storage: Optional[ProgressStorage] = None,
        clock: Optional[Clock] = None,
        stall_threshold: float = 10.0,
        complete_clear_delay: float = 0.25,
        success_clear_delay: float = 0.5,
        error_clear_delay: float = 5.0,
        cancel_clear_delay: float = 2.0,
        emitter: Optional[EventEmitter] = None
    ):
        """
        Initialize the store.
        
        Args:
            storage: Durable backend (in-memory when omitted)
            clock: Time source for stall checks and auto-clear timers
            stall_threshold: Seconds without updates before a record is stalled
            complete_clear_delay: Clear delay after success with 100% progress
            success_clear_delay: Clear delay after any other success
            error_clear_delay: Clear delay after an error
            cancel_clear_delay: Clear delay after a cancellation
            emitter: Event emitter shared with the composition root
        """
        self._storage = storage or MemoryProgressStorage()
        self._clock = clock or SystemClock()
        self._emitter = emitter or EventEmitter('vaultup.progress')
        self.stall_threshold = stall_threshold
        self._complete_clear_delay = complete_clear_delay
        self._success_clear_delay = success_clear_delay
        self._error_clear_delay = error_clear_delay
        self._cancel_clear_delay = cancel_clear_delay
        
        self._progress: Optional[UploadProgress] = None
        self._cleared = False
        self._generation = 0
        self._completed_keys: Deque[str] = deque(maxlen=self.COMPLETED_HISTORY)
        self._timers: Set[asyncio.Task] = set()
    
    @property
    def progress(self) -> Optional[UploadProgress]:
        """Current progress record."""
        return self._progress
    
    @property
    def is_active(self) -> bool:
        return self._progress is not None
    
    @property
    def was_cleared(self) -> bool:
        """True when the slot was explicitly cleared and nothing was set since."""
        return self._cleared
    
    def on(self, event: str, callback: Callable) -> 'GlobalProgressStore':
        self._emitter.on(event, callback)
        return self
    
    def off(self, event: str, callback: Optional[Callable] = None) -> 'GlobalProgressStore':
        self._emitter.off(event, callback)
        return self
    
    def set(
        self,
        value: Union[UploadProgress, ProgressUpdater, None]
    ) -> Optional[UploadProgress]:
        """
        Replace the current record.
        
        Args:
            value: New record, or a function of the previous record
            
        Returns:
            The stored record (None if the slot ended up empty)
        """
        progress = value(self._progress) if callable(value) else value
        if progress is None:
            self.clear()
            return None
        
        if progress.is_complete:
            logger.info("Complete status with 100% detected, clearing shortly")
            self._commit(progress)
            self._notify_completed(progress)
            self._schedule_clear(self._complete_clear_delay)
            return progress
        
        if progress.is_stalled_at(self._clock.now(), self.stall_threshold):
            progress = progress.evolve(is_stalled=True)
        
        self._commit(progress)
        
        status = progress.status
        if status.is_success:
            self._notify_completed(progress)
            self._schedule_clear(self._success_clear_delay)
        elif status == ProgressStatus.ERROR:
            if progress.is_duplicate:
                logger.warning(f"Duplicate upload rejected: {progress.error}")
            self._schedule_clear(self._error_clear_delay)
        elif status == ProgressStatus.CANCELLED:
            self._schedule_clear(self._cancel_clear_delay)
        
        return progress
    
    def clear(self) -> None:
        """Empty the slot and leave a tombstone in storage."""
        logger.debug("Clearing progress")
        self._progress = None
        self._cleared = True
        self._generation += 1
        self._storage.mark_cleared()
        self._emitter.emit(self.CHANGE, None)
    
    def check_stall(self, threshold: Optional[float] = None) -> bool:
        """
        Re-evaluate the stall flag of the current record.
        
        last_updated is left untouched so the record stays stalled
        until a real change arrives.
        
        Returns:
            Current value of the stall flag
        """
        progress = self._progress
        if progress is None:
            return False
        
        limit = self.stall_threshold if threshold is None else threshold
        if (
            not progress.is_stalled
            and progress.status.can_stall
            and progress.is_stalled_at(self._clock.now(), limit)
        ):
            logger.warning(
                f"No status change for more than {limit:.0f}s "
                f"(status={progress.status.value}, job={progress.job_id})"
            )
            self._commit(progress.evolve(is_stalled=True))
            return True
        return progress.is_stalled
    
    def rehydrate(self) -> Optional[UploadProgress]:
        """
        Restore the record from durable storage.
        
        Nothing is restored when the slot already holds a record, was
        cleared in memory, carries a tombstone in storage, or holds a
        finished upload.
        """
        if self._progress is not None:
            return self._progress
        
        if self._cleared:
            logger.info("Upload progress was cleared in memory, not restoring from storage")
            return None
        
        snapshot = self._storage.load()
        if snapshot.cleared:
            logger.debug("Stored progress was cleared, nothing to restore")
            return None
        
        progress = snapshot.progress
        if progress is None:
            return None
        
        if progress.status.is_terminal:
            logger.info(f"Discarding finished upload snapshot ({progress.status.value})")
            self._storage.mark_cleared()
            return None
        
        if progress.is_stalled_at(self._clock.now(), self.stall_threshold):
            progress = progress.evolve(is_stalled=True)
        
        logger.info(f"Restored upload progress for {progress.filename or progress.job_id}")
        self._progress = progress
        self._emitter.emit(self.CHANGE, progress)
        return progress
    
    async def aclose(self) -> None:
        """Cancel pending auto-clear timers and close storage."""
        timers = list(self._timers)
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
        self._storage.close()
    
    def _commit(self, progress: UploadProgress) -> None:
        self._progress = progress
        self._cleared = False
        self._generation += 1
        self._storage.save(progress)
        self._emitter.emit(self.CHANGE, progress)
    
    def _notify_completed(self, progress: UploadProgress) -> None:
        key = progress.job_id or progress.cid or progress.filename
        if key is not None:
            if key in self._completed_keys:
                return
            self._completed_keys.append(key)
        
        detail: Dict[str, Any] = {
            'job_id': progress.job_id,
            'cid': progress.cid,
            'filename': progress.filename,
            'proof_set_id': progress.proof_set_id,
        }
        logger.info(f"Upload completed: {progress.filename or progress.job_id}")
        self._emitter.emit(self.COMPLETED, detail)
    
    def _schedule_clear(self, delay: float) -> None:
        """Clear after a delay unless a newer record replaced this one."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, auto-clear skipped")
            return
        
        generation = self._generation
        
        async def clear_later():
            await self._clock.sleep(delay)
            if self._generation == generation:
                self.clear()
        
        task = loop.create_task(clear_later())
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)
