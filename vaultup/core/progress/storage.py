"""
Durable storage for the progress slot.

Clearing writes a tombstone instead of deleting the row, so a later
load can tell "never had a snapshot" from "was explicitly cleared".
"""
import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

from .models import UploadProgress


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    What a storage backend holds.
    
    Attributes:
        progress: Last saved progress, None when absent or cleared
        cleared: True when the slot was explicitly cleared
        updated_at: When the row was last written
    """
    progress: Optional[UploadProgress] = None
    cleared: bool = False
    updated_at: Optional[datetime] = None
    
    @property
    def is_empty(self) -> bool:
        """Nothing was ever stored."""
        return self.progress is None and not self.cleared


@runtime_checkable
class ProgressStorage(Protocol):
    """Protocol for progress persistence backends."""
    
    def load(self) -> ProgressSnapshot:
        """Load the stored snapshot."""
        ...
    
    def save(self, progress: UploadProgress) -> None:
        """Store progress, replacing any tombstone."""
        ...
    
    def mark_cleared(self) -> None:
        """Replace the stored progress with a tombstone."""
        ...
    
    def close(self) -> None:
        """Release resources."""
        ...


class MemoryProgressStorage:
    """
    In-memory progress storage.
    
    Useful for:
    - Unit testing
    - Processes that do not need to survive a restart
    """
    
    def __init__(self):
        self._snapshot = ProgressSnapshot()
    
    def load(self) -> ProgressSnapshot:
        return self._snapshot
    
    def save(self, progress: UploadProgress) -> None:
        self._snapshot = ProgressSnapshot(progress=progress, updated_at=datetime.now())
    
    def mark_cleared(self) -> None:
        self._snapshot = ProgressSnapshot(cleared=True, updated_at=datetime.now())
    
    def close(self) -> None:
        """Close storage (no-op for memory storage)."""
        pass


class SQLiteProgressStorage:
    """
    SQLite-based progress storage.
    
    Stores the progress record as JSON under a fixed key in a local
    SQLite database file. Thread-safe through a single locked connection.
    
    Example:
        >>> storage = SQLiteProgressStorage("~/.config/vaultup/progress.db")
        >>> storage.save(progress)
        >>> storage.load().progress
    """
    
    DEFAULT_KEY = 'upload-storage'
    SCHEMA_VERSION = 1
    
    def __init__(self, path: Union[str, Path], key: str = DEFAULT_KEY):
        """
        Initialize SQLite progress storage.
        
        Args:
            path: Database file path
            key: Row key, one slot per key
        """
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._path = Path(path).expanduser()
        self._key = key
        
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
    
    @property
    def path(self) -> Path:
        return self._path
    
    @contextmanager
    def _get_connection(self):
        """Get thread-safe database connection."""
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(
                    str(self._path),
                    check_same_thread=False
                )
                self._conn.row_factory = sqlite3.Row
            yield self._conn
    
    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS version (
                    version INTEGER PRIMARY KEY
                )
            ''')
            
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS progress (
                    key TEXT PRIMARY KEY,
                    value TEXT,
                    cleared INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL
                )
            ''')
            
            cursor.execute('SELECT version FROM version LIMIT 1')
            if cursor.fetchone() is None:
                cursor.execute(
                    'INSERT INTO version (version) VALUES (?)',
                    (self.SCHEMA_VERSION,)
                )
            
            conn.commit()
    
    def _write(self, value: Optional[str], cleared: bool) -> None:
        with self._get_connection() as conn:
            conn.execute(
                'INSERT OR REPLACE INTO progress (key, value, cleared, updated_at) VALUES (?, ?, ?, ?)',
                (self._key, value, int(cleared), datetime.now().isoformat())
            )
            conn.commit()
    
    def load(self) -> ProgressSnapshot:
        with self._get_connection() as conn:
            row = conn.execute(
                'SELECT value, cleared, updated_at FROM progress WHERE key = ?',
                (self._key,)
            ).fetchone()
        
        if row is None:
            return ProgressSnapshot()
        
        updated_at = datetime.fromisoformat(row['updated_at'])
        if row['cleared'] or not row['value']:
            return ProgressSnapshot(cleared=bool(row['cleared']), updated_at=updated_at)
        
        return ProgressSnapshot(
            progress=UploadProgress.from_dict(json.loads(row['value'])),
            updated_at=updated_at
        )
    
    def save(self, progress: UploadProgress) -> None:
        self._write(json.dumps(progress.to_dict()), cleared=False)
    
    def mark_cleared(self) -> None:
        self._write(None, cleared=True)
    
    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
    
    def __enter__(self) -> 'SQLiteProgressStorage':
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
