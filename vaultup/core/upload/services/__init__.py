"""Upload services module."""
from .file_service import FileValidator, AsyncFileReader
from .chunk_service import ChunkTransport, ChunkResult, ChunkOutcome
from .finalize_service import UploadFinalizer
from .single_service import SingleShotUploader

__all__ = [
    'FileValidator',
    'AsyncFileReader',
    'ChunkTransport',
    'ChunkResult',
    'ChunkOutcome',
    'UploadFinalizer',
    'SingleShotUploader',
]
