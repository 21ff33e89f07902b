"""
Upload module for chunked and single-shot uploads.

This module provides a clean, SOLID-compliant interface for uploading files.
Chunk sizing is pluggable; session state changes go through a pure reducer.
"""
from .coordinator import UploadCoordinator, MAX_CHUNKED_FILE_SIZE
from .scheduler import ConcurrencyScheduler, ScheduleReport
from .state import SessionStore, reduce_session
from .models import (
    Chunk,
    ChunkState,
    SessionStatus,
    FinalizePolicy,
    UploadSession,
    UploadConfig,
    UploadResult
)
from .services import (
    ChunkTransport,
    ChunkResult,
    ChunkOutcome,
    UploadFinalizer,
    SingleShotUploader
)
from .strategies import AdaptiveChunkingStrategy, FixedSizeChunkingStrategy, plan_chunks
from .protocols import (
    ChunkingStrategy,
    FileReaderProtocol,
    UploadApiProtocol
)

__all__ = [
    # Main classes
    'UploadCoordinator',
    'ConcurrencyScheduler',
    'ScheduleReport',
    'SessionStore',
    'reduce_session',
    'ChunkTransport',
    'ChunkResult',
    'ChunkOutcome',
    'UploadFinalizer',
    'SingleShotUploader',
    'MAX_CHUNKED_FILE_SIZE',
    
    # Models
    'Chunk',
    'ChunkState',
    'SessionStatus',
    'FinalizePolicy',
    'UploadSession',
    'UploadConfig',
    'UploadResult',
    
    # Strategies
    'AdaptiveChunkingStrategy',
    'FixedSizeChunkingStrategy',
    'plan_chunks',
    
    # Protocols
    'ChunkingStrategy',
    'FileReaderProtocol',
    'UploadApiProtocol',
]
