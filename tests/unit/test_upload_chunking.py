"""Tests for chunking strategies."""
import math

import pytest

from vaultup.core.upload.strategies.chunking import (
    AdaptiveChunkingStrategy,
    ChunkPlan,
    FixedSizeChunkingStrategy,
    plan_chunks
)
from vaultup.core.upload.models import UploadSession
from vaultup.core.utils import MIB, GIB


def session_for(strategy, file_size):
    return UploadSession.create(
        filename="a.bin",
        file_size=file_size,
        file_type="application/octet-stream",
        chunk_size=strategy.select_chunk_size(file_size),
        start_time=0.0
    )


class TestAdaptiveChunkingStrategy:
    """Test suite for AdaptiveChunkingStrategy."""
    
    @pytest.fixture
    def strategy(self):
        """Create strategy instance."""
        return AdaptiveChunkingStrategy()
    
    def test_empty_file(self, strategy):
        """Test an empty file plans no chunks."""
        assert strategy.plan(0).total_chunks == 0
    
    def test_small_file_single_chunk(self, strategy):
        """Test file smaller than one chunk."""
        assert strategy.plan(100) == ChunkPlan(2 * MIB, 1)
    
    def test_25mb_file_uses_2mib_chunks(self, strategy):
        """Test 25,000,000 bytes gives 2 MiB chunks and 12 chunks."""
        plan = strategy.plan(25_000_000)
        
        assert plan.chunk_size == 2 * MIB
        assert plan.total_chunks == 12
    
    @pytest.mark.parametrize("file_size,expected", [
        (100 * MIB, 2 * MIB),
        (100 * MIB + 1, 5 * MIB),
        (500 * MIB, 5 * MIB),
        (500 * MIB + 1, 10 * MIB),
        (1 * GIB, 10 * MIB),
        (1 * GIB + 1, 20 * MIB),
        (8 * GIB, 20 * MIB),
    ])
    def test_size_thresholds(self, strategy, file_size, expected):
        """Test thresholds are strict 'greater than' boundaries."""
        assert strategy.select_chunk_size(file_size) == expected
    
    def test_override_wins(self):
        """Test caller-supplied chunk size overrides the table."""
        strategy = AdaptiveChunkingStrategy(chunk_size=5 * MIB)
        
        assert strategy.select_chunk_size(10 * GIB) == 5 * MIB
    
    def test_invalid_override(self):
        """Test non-positive override raises error."""
        with pytest.raises(ValueError):
            AdaptiveChunkingStrategy(chunk_size=0)
    
    @pytest.mark.parametrize("file_size", [1, 1023, 2 * MIB, 2 * MIB + 1, 7_340_033, 150 * MIB + 17])
    def test_total_chunks_is_ceiling(self, strategy, file_size):
        """Test totalChunks == ceil(fileSize / chunkSize)."""
        plan = strategy.plan(file_size)
        
        assert plan.total_chunks == math.ceil(file_size / plan.chunk_size)
    
    def test_chunks_cover_entire_file(self, strategy):
        """Test that chunks are contiguous and cover the file."""
        size = 5 * MIB + 3
        chunks = session_for(strategy, size).chunks
        
        assert chunks[0].start == 0
        assert chunks[-1].end == size
        for i in range(len(chunks) - 1):
            assert chunks[i].end == chunks[i + 1].start


class TestFixedSizeChunkingStrategy:
    """Test suite for FixedSizeChunkingStrategy."""
    
    def test_default_chunk_size(self):
        """Test default chunk size is 1MB."""
        strategy = FixedSizeChunkingStrategy()
        assert strategy.chunk_size == 1024 * 1024
    
    def test_custom_chunk_size(self):
        """Test custom chunk size."""
        strategy = FixedSizeChunkingStrategy(chunk_size=1000)
        chunks = session_for(strategy, 2500).chunks
        
        assert [(c.start, c.end) for c in chunks] == [(0, 1000), (1000, 2000), (2000, 2500)]
    
    def test_invalid_chunk_size(self):
        """Test invalid chunk size raises error."""
        with pytest.raises(ValueError):
            FixedSizeChunkingStrategy(chunk_size=-1)


def test_plan_chunks_helper():
    """Test module-level planner uses the adaptive table."""
    plan = plan_chunks(25_000_000)
    
    assert plan.chunk_size == 2 * MIB
    assert plan.total_chunks == 12
    assert plan_chunks(3000, chunk_size=1000).total_chunks == 3
