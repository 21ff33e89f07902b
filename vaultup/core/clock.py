"""
Clock abstraction.

Polling, stall detection, auto-clear timers and the speed sampler
read time and sleep through a Clock so tests can simulate time.
"""
import asyncio
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Protocol for time sources."""
    
    def now(self) -> float:
        """Current time in seconds since the epoch."""
        ...
    
    async def sleep(self, seconds: float) -> None:
        """Suspend the calling coroutine."""
        ...


class SystemClock:
    """Wall clock backed by time.time() and asyncio.sleep()."""
    
    def now(self) -> float:
        return time.time()
    
    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
