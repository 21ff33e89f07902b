"""
Progress module.

Process-wide upload progress slot with durable snapshots.
"""
from .models import ProgressStatus, UploadProgress
from .storage import (
    ProgressSnapshot,
    ProgressStorage,
    MemoryProgressStorage,
    SQLiteProgressStorage
)
from .store import GlobalProgressStore

__all__ = [
    'ProgressStatus',
    'UploadProgress',
    'ProgressSnapshot',
    'ProgressStorage',
    'MemoryProgressStorage',
    'SQLiteProgressStorage',
    'GlobalProgressStore',
]
