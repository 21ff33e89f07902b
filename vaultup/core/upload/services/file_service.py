"""
File validation and reading services.

Single Responsibility: Each class handles one specific task.
"""
from pathlib import Path
from typing import Tuple, Optional, Union
import logging
import aiofiles

from ...exceptions import PreconditionError


class FileValidator:
    """
    Validates files before upload.
    
    Responsibilities:
    - Check file existence
    - Verify file is not a directory
    - Get file size
    """
    
    def validate(self, file_path: Union[str, Path]) -> Tuple[Path, int]:
        """
        Validate a file for upload.
        
        Args:
            file_path: Path to the file
            
        Returns:
            Tuple of (validated Path, file size in bytes)
            
        Raises:
            PreconditionError: If the file is missing, not a regular file or empty
        """
        if file_path is None:
            raise PreconditionError("No file selected")
        
        path = Path(file_path) if isinstance(file_path, str) else file_path
        
        if not path.exists():
            raise PreconditionError(f"File not found: {path}")
        
        if not path.is_file():
            raise PreconditionError(f"Path is not a file: {path}")
        
        file_size = path.stat().st_size
        self.validate_size(file_size)
        
        return path, file_size
    
    def validate_size(self, file_size: int, max_size: Optional[int] = None) -> None:
        """
        Validate file size.
        
        Args:
            file_size: File size in bytes
            max_size: Optional maximum allowed size
            
        Raises:
            PreconditionError: If file is empty or exceeds max size
        """
        if file_size == 0:
            raise PreconditionError("Cannot upload empty file")
        
        if max_size and file_size > max_size:
            raise PreconditionError(
                f"File size {file_size} exceeds maximum {max_size}"
            )


class AsyncFileReader:
    """
    Asynchronous file reader for chunk-based reading.
    
    Uses aiofiles for non-blocking I/O operations.
    Every read opens its own handle: concurrent chunk tasks would
    otherwise race on a shared file position.
    """
    
    def __init__(self):
        """Initialize file reader."""
        self._logger = logging.getLogger('vaultup.upload.file')
    
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
        try:
            async with aiofiles.open(file_path, 'rb') as f:
                await f.seek(start)
                data = await f.read(end - start)
            
            if data:
                self._logger.debug(f"Read chunk: {start}-{end} ({len(data)} bytes)")
            return data if data else None
        except (IOError, OSError) as e:
            self._logger.error(f"Failed to read chunk {start}-{end}: {e}")
            return None
