"""Tests for upload models."""
from pathlib import Path

import pytest

from vaultup.core.upload.models import (
    Chunk,
    ChunkState,
    FinalizePolicy,
    SessionStatus,
    UploadConfig,
    UploadSession
)


@pytest.fixture
def session():
    """Session of 2500 bytes in 1000-byte chunks."""
    return UploadSession.create(
        filename="video.mp4",
        file_size=2500,
        file_type="video/mp4",
        chunk_size=1000,
        start_time=100.0
    )


class TestChunk:
    """Tests for Chunk."""
    
    def test_size(self):
        """Test size is end - start."""
        assert Chunk(index=0, start=1000, end=1500).size == 500
    
    def test_evolve_returns_new_object(self):
        """Test evolve leaves the original untouched."""
        chunk = Chunk(index=0, start=0, end=10)
        updated = chunk.evolve(state=ChunkState.UPLOADING)
        
        assert chunk.state == ChunkState.PENDING
        assert updated.state == ChunkState.UPLOADING


class TestUploadSession:
    """Tests for UploadSession."""
    
    def test_create_builds_chunks(self, session):
        """Test chunk ranges cover the file."""
        assert session.total_chunks == 3
        assert [(c.start, c.end) for c in session.chunks] == [(0, 1000), (1000, 2000), (2000, 2500)]
        assert all(c.state == ChunkState.PENDING for c in session.chunks)
        assert session.status == SessionStatus.INITIALIZING
        assert session.upload_id == ''
    
    def test_progress_percent(self, session):
        """Test byte progress rounding."""
        assert session.progress_percent == 0
        assert session.evolve(bytes_uploaded=1250).progress_percent == 50
    
    def test_eta_unknown_without_speed(self, session):
        """Test ETA is None before the first speed sample."""
        assert session.eta_seconds is None
    
    def test_eta(self, session):
        """Test ETA from average speed."""
        updated = session.evolve(bytes_uploaded=500, average_speed=100.0)
        
        assert updated.eta_seconds == 20.0
    
    def test_can_finalize_requires_no_pending(self, session):
        """Test pending chunks block finalization under any policy."""
        assert not session.can_finalize(FinalizePolicy.BEST_EFFORT)
        assert not session.can_finalize(FinalizePolicy.REQUIRE_ALL_COMPLETE)
    
    def test_can_finalize_with_error_chunk(self, session):
        """Test the policy decides what a terminal chunk error means."""
        chunks = (
            session.chunks[0].evolve(state=ChunkState.COMPLETE),
            session.chunks[1].evolve(state=ChunkState.ERROR),
            session.chunks[2].evolve(state=ChunkState.COMPLETE),
        )
        drained = session.evolve(chunks=chunks)
        
        assert drained.can_finalize(FinalizePolicy.BEST_EFFORT)
        assert not drained.can_finalize(FinalizePolicy.REQUIRE_ALL_COMPLETE)
        assert drained.failed_indices == (1,)
    
    @pytest.mark.parametrize("status,text", [
        (SessionStatus.INITIALIZING, "Initializing upload..."),
        (SessionStatus.FINALIZING, "Finalizing upload..."),
        (SessionStatus.COMPLETE, "Upload complete!"),
        (SessionStatus.PAUSED, "Upload cancelled"),
    ])
    def test_describe(self, session, status, text):
        """Test status lines."""
        assert session.evolve(status=status).describe() == text
    
    def test_describe_uploading(self, session):
        """Test uploading line shows chunk counts."""
        updated = session.evolve(status=SessionStatus.UPLOADING, uploaded_chunks=1, bytes_uploaded=1000)
        
        assert updated.describe() == "Uploading: 1/3 chunks (40%)"
    
    def test_describe_error(self, session):
        """Test error line falls back to a generic message."""
        assert session.evolve(status=SessionStatus.ERROR).describe() == "Error: Unknown error"
    
    def test_terminal_statuses(self):
        """Test which statuses end a session."""
        assert SessionStatus.PAUSED.is_terminal
        assert SessionStatus.COMPLETE.is_terminal
        assert SessionStatus.ERROR.is_terminal
        assert not SessionStatus.UPLOADING.is_terminal
        assert not SessionStatus.FINALIZING.is_terminal


class TestUploadConfig:
    """Tests for UploadConfig."""
    
    def test_string_path_converted(self):
        """Test string path becomes Path."""
        config = UploadConfig(file_path="/tmp/archive.zip")
        
        assert isinstance(config.file_path, Path)
    
    def test_file_type_guessed(self):
        """Test MIME type guessed from the name."""
        assert UploadConfig(file_path="/tmp/photo.png").file_type == "image/png"
    
    def test_unknown_file_type(self):
        """Test unknown extension falls back to octet-stream."""
        assert UploadConfig(file_path="/tmp/blob.zzzunknown").file_type == "application/octet-stream"
    
    def test_defaults(self):
        """Test default concurrency and policy."""
        config = UploadConfig(file_path="/tmp/a.txt")
        
        assert config.max_concurrent_chunks == 3
        assert config.finalize_policy == FinalizePolicy.REQUIRE_ALL_COMPLETE
    
    def test_invalid_concurrency(self):
        """Test zero concurrency raises error."""
        with pytest.raises(ValueError):
            UploadConfig(file_path="/tmp/a.txt", max_concurrent_chunks=0)
    
    def test_invalid_chunk_size(self):
        """Test negative chunk size raises error."""
        with pytest.raises(ValueError):
            UploadConfig(file_path="/tmp/a.txt", chunk_size=-5)
