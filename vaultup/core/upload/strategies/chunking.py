"""
Chunking strategies for file uploads.

Implements Strategy Pattern for different chunk sizing rules.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ...utils import MIB, GIB


@dataclass(frozen=True)
class ChunkPlan:
    """Chunk size picked for a file and the resulting chunk count."""
    chunk_size: int
    total_chunks: int


class BaseChunkingStrategy(ABC):
    """Abstract base class for fixed-stride chunking strategies."""
    
    @abstractmethod
    def select_chunk_size(self, file_size: int) -> int:
        """Pick the chunk size for a file."""
        pass
    
    def plan(self, file_size: int) -> ChunkPlan:
        """Chunk size and count for a file."""
        chunk_size = self.select_chunk_size(file_size)
        return ChunkPlan(chunk_size, -(-file_size // chunk_size))


class AdaptiveChunkingStrategy(BaseChunkingStrategy):
    """
    Chunk size grows with the file.
    
    > 1 GiB: 20 MiB, > 500 MiB: 10 MiB, > 100 MiB: 5 MiB, else 2 MiB.
    A caller-supplied chunk size overrides the table.
    """
    
    THRESHOLDS = (
        (1 * GIB, 20 * MIB),
        (500 * MIB, 10 * MIB),
        (100 * MIB, 5 * MIB),
    )
    DEFAULT_CHUNK_SIZE = 2 * MIB
    
    def __init__(self, chunk_size: Optional[int] = None):
        if chunk_size is not None and chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.chunk_size = chunk_size
    
    def select_chunk_size(self, file_size: int) -> int:
        if self.chunk_size:
            return self.chunk_size
        for threshold, size in self.THRESHOLDS:
            if file_size > threshold:
                return size
        return self.DEFAULT_CHUNK_SIZE


class FixedSizeChunkingStrategy(BaseChunkingStrategy):
    """
    Simple fixed-size chunking strategy.
    
    Useful for testing or when the server expects a known stride.
    """
    
    DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB
    
    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize with chunk size.
        
        Args:
            chunk_size: Size of each chunk in bytes
        """
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.chunk_size = chunk_size
    
    def select_chunk_size(self, file_size: int) -> int:
        return self.chunk_size


def plan_chunks(file_size: int, chunk_size: Optional[int] = None) -> ChunkPlan:
    """Chunk plan for a file using the adaptive table unless overridden."""
    return AdaptiveChunkingStrategy(chunk_size).plan(file_size)
