"""
Protocol definitions for upload module.

Defines interfaces (protocols) for dependency injection and strategy pattern.
Following Interface Segregation Principle (ISP) and Dependency Inversion Principle (DIP).
"""
from typing import Protocol, Dict, Any, Optional, Callable
from pathlib import Path

from ..status.protocols import StatusApiProtocol

ProgressCallback = Callable[[int, int], None]


class ChunkingStrategy(Protocol):
    """
    Protocol for chunk sizing strategies.
    
    Allows different sizing rules to be plugged in.
    """
    
    def select_chunk_size(self, file_size: int) -> int:
        """
        Pick the chunk size for a file.
        
        Args:
            file_size: Total file size in bytes
            
        Returns:
            Chunk size in bytes
        """
        ...


class FileReaderProtocol(Protocol):
    """Protocol for file reading operations."""
    
    async def read_chunk(
        self, 
        file_path: Path, 
        start: int, 
        end: int
    ) -> Optional[bytes]:
        """
        Read a chunk from a file.
        
        Args:
            file_path: Path to the file
            start: Start position in bytes
            end: End position in bytes
            
        Returns:
            Chunk data or None if reading failed
        """
        ...


class UploadApiProtocol(StatusApiProtocol, Protocol):
    """Protocol for the chunked and single-shot upload endpoints."""
    
    def require_credential(self) -> str:
        """Return the bearer credential or raise PreconditionError."""
        ...
    
    async def init_upload(
        self,
        filename: str,
        total_size: int,
        chunk_size: int,
        total_chunks: int,
        file_type: str
    ) -> Dict[str, Any]:
        """Open a chunked upload; returns {'uploadId', 'totalChunks'}."""
        ...
    
    async def upload_chunk(
        self,
        upload_id: str,
        chunk_index: int,
        data: bytes,
        progress_callback: Optional[ProgressCallback] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """Send one chunk; returns {'uploadedChunks', 'allChunksReceived', ...}."""
        ...
    
    async def complete_upload(self, upload_id: str) -> Dict[str, Any]:
        """Finalize; returns {'jobId', 'status'}."""
        ...
    
    async def upload_file(
        self,
        file_path: Path,
        filename: Optional[str] = None,
        content_type: str = 'application/octet-stream',
        progress_callback: Optional[ProgressCallback] = None
    ) -> Dict[str, Any]:
        """Single-shot upload; returns {'status', 'jobId'?, ...}."""
        ...
