"""
Data models for upload module.

Chunk and UploadSession are frozen dataclasses: every change goes
through the reducer in state.py and produces a new value.
"""
import mimetypes
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, Tuple


class ChunkState(str, Enum):
    """Lifecycle of a single chunk."""
    PENDING = 'pending'
    UPLOADING = 'uploading'
    COMPLETE = 'complete'
    ERROR = 'error'


class SessionStatus(str, Enum):
    """Lifecycle of an upload session."""
    INITIALIZING = 'initializing'
    UPLOADING = 'uploading'
    PAUSED = 'paused'
    FINALIZING = 'finalizing'
    COMPLETE = 'complete'
    ERROR = 'error'
    
    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.PAUSED, SessionStatus.COMPLETE, SessionStatus.ERROR)


class FinalizePolicy(str, Enum):
    """
    When a drained queue may be finalized.
    
    REQUIRE_ALL_COMPLETE refuses to finalize if any chunk ended in
    ERROR; BEST_EFFORT finalizes whenever nothing is pending or active.
    """
    REQUIRE_ALL_COMPLETE = 'require_all_complete'
    BEST_EFFORT = 'best_effort'


@dataclass(frozen=True)
class Chunk:
    """
    One contiguous byte range of the source file.
    
    Attributes:
        index: Chunk index
        start: Start position in bytes
        end: End position in bytes (exclusive)
        state: Current chunk state
        progress: Transfer progress percentage (0-100)
        bytes_sent: Bytes of this chunk accepted by the transport so far
        retries: Failed attempts
        last_error: Latest error or retry note
    """
    index: int
    start: int
    end: int
    state: ChunkState = ChunkState.PENDING
    progress: int = 0
    bytes_sent: int = 0
    retries: int = 0
    last_error: Optional[str] = None
    
    @property
    def size(self) -> int:
        """Returns chunk size."""
        return self.end - self.start
    
    def evolve(self, **changes) -> 'Chunk':
        return replace(self, **changes)


@dataclass(frozen=True)
class UploadSession:
    """
    In-memory record of one file's chunked upload.
    
    Invariants:
        total_chunks == ceil(file_size / chunk_size)
        uploaded_chunks == number of chunks in COMPLETE
    """
    filename: str
    file_size: int
    file_type: str
    chunk_size: int
    total_chunks: int
    chunks: Tuple[Chunk, ...]
    start_time: float
    upload_id: str = ''
    uploaded_chunks: int = 0
    server_uploaded_chunks: int = 0
    bytes_uploaded: int = 0
    average_speed: float = 0.0
    status: SessionStatus = SessionStatus.INITIALIZING
    job_id: Optional[str] = None
    error_message: Optional[str] = None
    
    @classmethod
    def create(
        cls,
        filename: str,
        file_size: int,
        file_type: str,
        chunk_size: int,
        start_time: float
    ) -> 'UploadSession':
        """Build a fresh session with every chunk pending."""
        total_chunks = -(-file_size // chunk_size)
        chunks = tuple(
            Chunk(
                index=i,
                start=i * chunk_size,
                end=min((i + 1) * chunk_size, file_size)
            )
            for i in range(total_chunks)
        )
        return cls(
            filename=filename,
            file_size=file_size,
            file_type=file_type,
            chunk_size=chunk_size,
            total_chunks=total_chunks,
            chunks=chunks,
            start_time=start_time
        )
    
    def evolve(self, **changes) -> 'UploadSession':
        return replace(self, **changes)
    
    def chunk(self, index: int) -> Chunk:
        return self.chunks[index]
    
    def count(self, state: ChunkState) -> int:
        """Number of chunks in the given state."""
        return sum(1 for c in self.chunks if c.state == state)
    
    @property
    def failed_indices(self) -> Tuple[int, ...]:
        return tuple(c.index for c in self.chunks if c.state == ChunkState.ERROR)
    
    @property
    def progress_percent(self) -> int:
        """Byte progress rounded to whole percent."""
        if self.file_size == 0:
            return 0
        return round(self.bytes_uploaded / self.file_size * 100)
    
    @property
    def eta_seconds(self) -> Optional[float]:
        """Estimated seconds left at the current average speed."""
        if self.average_speed <= 0:
            return None
        return (self.file_size - self.bytes_uploaded) / self.average_speed
    
    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
    
    def can_finalize(self, policy: FinalizePolicy) -> bool:
        """
        Finalize eligibility as an explicit predicate over chunk states.
        
        No chunk may still be pending or uploading; under
        REQUIRE_ALL_COMPLETE no chunk may have ended in ERROR either.
        """
        for c in self.chunks:
            if c.state in (ChunkState.PENDING, ChunkState.UPLOADING):
                return False
            if c.state == ChunkState.ERROR and policy == FinalizePolicy.REQUIRE_ALL_COMPLETE:
                return False
        return True
    
    def describe(self) -> str:
        """Short status line for progress displays."""
        if self.status == SessionStatus.INITIALIZING:
            return "Initializing upload..."
        if self.status == SessionStatus.UPLOADING:
            return (
                f"Uploading: {self.uploaded_chunks}/{self.total_chunks} chunks "
                f"({self.progress_percent}%)"
            )
        if self.status == SessionStatus.PAUSED:
            return "Upload cancelled"
        if self.status == SessionStatus.FINALIZING:
            return "Finalizing upload..."
        if self.status == SessionStatus.COMPLETE:
            return "Upload complete!"
        return f"Error: {self.error_message or 'Unknown error'}"


@dataclass
class UploadConfig:
    """
    Configuration for one upload.
    
    Attributes:
        file_path: Path to file to upload
        chunk_size: Optional chunk size override in bytes
        max_concurrent_chunks: Maximum chunks uploading at once
        file_type: MIME type (guessed from the name when omitted)
        finalize_policy: Gate applied before the finalize call
        speed_sample_interval: Seconds between average speed samples
        track_status: Poll the server job after finalization
    """
    file_path: Path
    chunk_size: Optional[int] = None
    max_concurrent_chunks: int = 3
    file_type: Optional[str] = None
    finalize_policy: FinalizePolicy = FinalizePolicy.REQUIRE_ALL_COMPLETE
    speed_sample_interval: float = 1.0
    track_status: bool = True
    
    def __post_init__(self):
        """Validate and normalize config."""
        if isinstance(self.file_path, str):
            self.file_path = Path(self.file_path)
        
        if self.max_concurrent_chunks < 1:
            raise ValueError("max_concurrent_chunks must be at least 1")
        
        if self.chunk_size is not None and self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        
        if self.file_type is None:
            guessed, _ = mimetypes.guess_type(self.file_path.name)
            self.file_type = guessed or 'application/octet-stream'


@dataclass(frozen=True)
class UploadResult:
    """
    Result of a finished chunked upload.
    
    Attributes:
        upload_id: Server upload identifier
        job_id: Background job started by finalization
        status: Status reported by the complete call
        file_size: Size of uploaded file
        session: Final session snapshot
        response: Raw complete response
    """
    upload_id: str
    job_id: str
    status: str
    file_size: int
    session: UploadSession
    response: Dict[str, Any] = field(default_factory=dict)
