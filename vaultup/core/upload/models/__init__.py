"""Upload models."""
from .upload_models import (
    Chunk,
    ChunkState,
    SessionStatus,
    FinalizePolicy,
    UploadSession,
    UploadConfig,
    UploadResult
)

__all__ = [
    'Chunk',
    'ChunkState',
    'SessionStatus',
    'FinalizePolicy',
    'UploadSession',
    'UploadConfig',
    'UploadResult'
]
