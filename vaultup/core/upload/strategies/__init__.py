"""Upload strategies module."""
from .chunking import (
    ChunkPlan,
    AdaptiveChunkingStrategy,
    FixedSizeChunkingStrategy,
    plan_chunks
)

__all__ = [
    'ChunkPlan',
    'AdaptiveChunkingStrategy',
    'FixedSizeChunkingStrategy',
    'plan_chunks',
]
