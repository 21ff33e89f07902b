"""Retry strategies using Strategy Pattern."""
from abc import ABC, abstractmethod
from typing import Optional

from ..config import RetryConfig
from ...clock import Clock, SystemClock


class RetryStrategy(ABC):
    """Abstract retry strategy for chunk transfers."""
    
    @abstractmethod
    def should_retry(self, retry_count: int) -> bool:
        """Determines if a chunk that failed retry_count times goes back to the queue."""
        pass
    
    @abstractmethod
    async def wait_async(self, retry_count: int):
        """Waits before the chunk is re-enqueued."""
        pass


class ExponentialBackoffStrategy(RetryStrategy):
    """Exponential backoff retry strategy driven by RetryConfig."""
    
    def __init__(self, config: Optional[RetryConfig] = None, clock: Optional[Clock] = None):
        self._config = config or RetryConfig()
        self._clock = clock or SystemClock()
    
    @property
    def max_retries(self) -> int:
        return self._config.max_retries
    
    def should_retry(self, retry_count: int) -> bool:
        """Retries while fewer than max_retries attempts have failed."""
        return retry_count < self._config.max_retries
    
    def delay_for(self, retry_count: int) -> float:
        return self._config.calculate_delay(retry_count - 1) if retry_count > 0 else 0.0
    
    async def wait_async(self, retry_count: int):
        """Waits with exponential backoff (no-op when base_delay is 0)."""
        delay = self.delay_for(retry_count)
        if delay > 0:
            await self._clock.sleep(delay)
