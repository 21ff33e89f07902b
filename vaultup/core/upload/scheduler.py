"""
Bounded-concurrency chunk scheduler.

Keeps at most max_concurrent chunk transfers in flight, refilling
from a FIFO of pending indices whenever one settles. Retryable
failures go back to the tail of the queue.
"""
import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional

from .services.chunk_service import ChunkOutcome, ChunkResult, ChunkTransport
from ..api.retry import RetryStrategy
from ..exceptions import ChunkUploadError, UploadCancelledError
from ..logging import get_logger

logger = get_logger('vaultup.upload.scheduler')


@dataclass
class ScheduleReport:
    """
    Outcome of one scheduler run.
    
    Attributes:
        completed: Indices that finished, in completion order
        failed: Indices that exhausted their retries
        errors: Last error per failed index
        attempts: Total transfer attempts started
        peak_active: Highest number of simultaneous transfers
    """
    completed: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    errors: Dict[int, ChunkUploadError] = field(default_factory=dict)
    attempts: int = 0
    peak_active: int = 0
    
    @property
    def all_complete(self) -> bool:
        return not self.failed


class ConcurrencyScheduler:
    """
    Drives ChunkTransport over a queue of chunk indices.
    
    The queue is drained when it is empty and nothing is in flight.
    Per-chunk failures are absorbed into the report; only
    PreconditionError, unexpected errors and abort() end a run early.
    
    Example:
        >>> scheduler = ConcurrencyScheduler(transport, max_concurrent=3)
        >>> report = await scheduler.run(range(session.total_chunks))
    """
    
    def __init__(
        self,
        transport: ChunkTransport,
        max_concurrent: int = 3,
        retry_strategy: Optional[RetryStrategy] = None
    ):
        """
        Initialize scheduler.
        
        Args:
            transport: Transport bound to the session being uploaded
            max_concurrent: Maximum chunks in flight
            retry_strategy: Decides re-queueing and backoff (transport's when None)
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._transport = transport
        self._max_concurrent = max_concurrent
        if retry_strategy is not None:
            transport.retry_strategy = retry_strategy
        self._active: Dict[asyncio.Task, int] = {}
        self._aborted = False
    
    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent
    
    @property
    def active_count(self) -> int:
        return len(self._active)
    
    @property
    def aborted(self) -> bool:
        return self._aborted
    
    def abort(self) -> None:
        """Cancel every in-flight transfer and stop scheduling."""
        if self._aborted:
            return
        self._aborted = True
        logger.info(f"Aborting {len(self._active)} in-flight chunk uploads")
        for task in self._active:
            task.cancel()
    
    async def run(self, indices: Iterable[int]) -> ScheduleReport:
        """
        Upload every index in the queue.
        
        Args:
            indices: Chunk indices in the order they should start
            
        Returns:
            ScheduleReport once the queue is drained
            
        Raises:
            UploadCancelledError: If abort() was called
            PreconditionError: If the credential disappeared mid-upload
        """
        queue: Deque[int] = deque(indices)
        report = ScheduleReport()
        logger.info(f"Scheduling {len(queue)} chunks (max {self._max_concurrent} parallel uploads)")
        
        try:
            while queue or self._active:
                if self._aborted:
                    raise UploadCancelledError("Upload cancelled by user")
                
                while queue and len(self._active) < self._max_concurrent:
                    index = queue.popleft()
                    task = asyncio.ensure_future(self._attempt(index))
                    self._active[task] = index
                    report.attempts += 1
                report.peak_active = max(report.peak_active, len(self._active))
                
                done, _ = await asyncio.wait(
                    list(self._active),
                    return_when=asyncio.FIRST_COMPLETED
                )
                
                for task in done:
                    index = self._active.pop(task)
                    if task.cancelled():
                        continue
                    result = task.result()
                    self._settle(result, queue, report)
            
            if self._aborted:
                raise UploadCancelledError("Upload cancelled by user")
        finally:
            await self._drain()
        
        logger.info(
            f"Chunk queue drained: {len(report.completed)} complete, "
            f"{len(report.failed)} failed, {report.attempts} attempts"
        )
        return report
    
    async def _attempt(self, index: int) -> ChunkResult:
        result = await self._transport.send(index)
        # Backoff holds the slot; the chunk itself is already pending again
        if result.outcome == ChunkOutcome.RETRY:
            await self._transport.retry_strategy.wait_async(result.retries)
        return result
    
    def _settle(self, result: ChunkResult, queue: Deque[int], report: ScheduleReport) -> None:
        if result.outcome == ChunkOutcome.COMPLETE:
            report.completed.append(result.index)
        elif result.outcome == ChunkOutcome.RETRY:
            queue.append(result.index)
        else:
            report.failed.append(result.index)
            if result.error is not None:
                report.errors[result.index] = result.error
    
    async def _drain(self) -> None:
        """Cancel and await whatever is still in flight."""
        if not self._active:
            return
        tasks = list(self._active)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._active.clear()
