"""
Upload session state.

Every mutation of an UploadSession is an event applied by a pure
reducer: reduce_session(session, event) -> session. SessionStore
applies events one at a time, so interleaved chunk completions on
the event loop can never write back a stale copy.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Type

from .models import Chunk, ChunkState, SessionStatus, UploadSession
from ..api.events import EventEmitter
from ..logging import get_logger

logger = get_logger('vaultup.upload.state')


@dataclass(frozen=True)
class SessionEvent:
    """Base class for session events."""


@dataclass(frozen=True)
class SessionInitialized(SessionEvent):
    upload_id: str


@dataclass(frozen=True)
class ChunkStarted(SessionEvent):
    index: int


@dataclass(frozen=True)
class ChunkProgressed(SessionEvent):
    index: int
    loaded: int
    total: int


@dataclass(frozen=True)
class ChunkCompleted(SessionEvent):
    index: int
    server_uploaded_chunks: Optional[int] = None


@dataclass(frozen=True)
class ChunkFailed(SessionEvent):
    """
    A chunk attempt failed.
    
    Attributes:
        index: Chunk index
        reason: Error shown once the chunk gives up
        max_retries: Attempts allowed before the chunk turns ERROR
        note: Prefix for the retry note ("Timeout" gives "Timeout - Retrying (1/3)...")
        terminal: Give up now regardless of max_retries
    """
    index: int
    reason: str
    max_retries: int = 3
    note: Optional[str] = None
    terminal: bool = False


@dataclass(frozen=True)
class SpeedSampled(SessionEvent):
    now: float


@dataclass(frozen=True)
class FinalizeStarted(SessionEvent):
    pass


@dataclass(frozen=True)
class SessionCompleted(SessionEvent):
    job_id: str


@dataclass(frozen=True)
class SessionFailed(SessionEvent):
    message: str


@dataclass(frozen=True)
class SessionCancelled(SessionEvent):
    pass


def _recount(session: UploadSession, chunks) -> UploadSession:
    """Rebuild derived counters from the chunk list."""
    uploaded = 0
    byte_total = 0
    for c in chunks:
        if c.state == ChunkState.COMPLETE:
            uploaded += 1
            byte_total += c.size
        elif c.state == ChunkState.UPLOADING:
            byte_total += c.bytes_sent
    return session.evolve(
        chunks=tuple(chunks),
        uploaded_chunks=uploaded,
        bytes_uploaded=byte_total
    )


def _replace_chunk(session: UploadSession, chunk: Chunk) -> UploadSession:
    chunks = list(session.chunks)
    chunks[chunk.index] = chunk
    return _recount(session, chunks)


def _on_initialized(session: UploadSession, event: SessionInitialized) -> UploadSession:
    if session.status != SessionStatus.INITIALIZING:
        return session
    return session.evolve(upload_id=event.upload_id, status=SessionStatus.UPLOADING)


def _on_chunk_started(session: UploadSession, event: ChunkStarted) -> UploadSession:
    chunk = session.chunk(event.index)
    if session.status != SessionStatus.UPLOADING or chunk.state != ChunkState.PENDING:
        return session
    return _replace_chunk(
        session,
        chunk.evolve(state=ChunkState.UPLOADING, progress=0, bytes_sent=0)
    )


def _on_chunk_progressed(session: UploadSession, event: ChunkProgressed) -> UploadSession:
    chunk = session.chunk(event.index)
    if chunk.state != ChunkState.UPLOADING or event.total <= 0:
        return session
    fraction = min(event.loaded, event.total) / event.total
    sent = max(chunk.bytes_sent, int(fraction * chunk.size))
    return _replace_chunk(
        session,
        chunk.evolve(progress=round(fraction * 100), bytes_sent=sent)
    )


def _on_chunk_completed(session: UploadSession, event: ChunkCompleted) -> UploadSession:
    chunk = session.chunk(event.index)
    if chunk.state != ChunkState.UPLOADING:
        return session
    updated = _replace_chunk(
        session,
        chunk.evolve(
            state=ChunkState.COMPLETE,
            progress=100,
            bytes_sent=chunk.size,
            last_error=None
        )
    )
    # Responses arrive out of order; keep the highest count seen
    if event.server_uploaded_chunks is not None:
        updated = updated.evolve(
            server_uploaded_chunks=max(updated.server_uploaded_chunks, event.server_uploaded_chunks)
        )
    return updated


def _on_chunk_failed(session: UploadSession, event: ChunkFailed) -> UploadSession:
    chunk = session.chunk(event.index)
    if chunk.state != ChunkState.UPLOADING:
        return session
    retries = chunk.retries + 1
    if event.terminal or retries >= event.max_retries:
        failed = chunk.evolve(
            state=ChunkState.ERROR,
            retries=retries,
            bytes_sent=0,
            last_error=event.reason
        )
    else:
        note = f"Retrying ({retries}/{event.max_retries})..."
        if event.note:
            note = f"{event.note} - {note}"
        failed = chunk.evolve(
            state=ChunkState.PENDING,
            retries=retries,
            progress=0,
            bytes_sent=0,
            last_error=note
        )
    return _replace_chunk(session, failed)


def _on_speed_sampled(session: UploadSession, event: SpeedSampled) -> UploadSession:
    if session.is_terminal:
        return session
    elapsed = event.now - session.start_time
    speed = session.bytes_uploaded / elapsed if elapsed > 0 else 0.0
    return session.evolve(average_speed=speed)


def _on_finalize_started(session: UploadSession, event: FinalizeStarted) -> UploadSession:
    if session.status != SessionStatus.UPLOADING:
        return session
    return session.evolve(status=SessionStatus.FINALIZING)


def _on_completed(session: UploadSession, event: SessionCompleted) -> UploadSession:
    if session.status != SessionStatus.FINALIZING:
        return session
    return session.evolve(status=SessionStatus.COMPLETE, job_id=event.job_id)


def _on_failed(session: UploadSession, event: SessionFailed) -> UploadSession:
    if session.is_terminal:
        return session
    return session.evolve(status=SessionStatus.ERROR, error_message=event.message)


def _on_cancelled(session: UploadSession, event: SessionCancelled) -> UploadSession:
    if session.is_terminal:
        return session
    # Aborted transfers go back to pending without costing a retry
    chunks = [
        c.evolve(state=ChunkState.PENDING, progress=0, bytes_sent=0)
        if c.state == ChunkState.UPLOADING else c
        for c in session.chunks
    ]
    return _recount(session, chunks).evolve(status=SessionStatus.PAUSED)


_REDUCERS: Dict[Type[SessionEvent], Callable[[UploadSession, SessionEvent], UploadSession]] = {
    SessionInitialized: _on_initialized,
    ChunkStarted: _on_chunk_started,
    ChunkProgressed: _on_chunk_progressed,
    ChunkCompleted: _on_chunk_completed,
    ChunkFailed: _on_chunk_failed,
    SpeedSampled: _on_speed_sampled,
    FinalizeStarted: _on_finalize_started,
    SessionCompleted: _on_completed,
    SessionFailed: _on_failed,
    SessionCancelled: _on_cancelled,
}


def reduce_session(session: UploadSession, event: SessionEvent) -> UploadSession:
    """
    Apply one event to a session.
    
    Returns the same object when the event does not apply to the
    current state (late events after cancel, duplicate completions).
    
    Raises:
        TypeError: For unknown event types
    """
    try:
        reducer = _REDUCERS[type(event)]
    except KeyError:
        raise TypeError(f"Unknown session event: {type(event).__name__}")
    return reducer(session, event)


class SessionStore:
    """
    Holds the current UploadSession and applies events to it.
    
    Listeners registered with on_change() receive (new, previous, event)
    after every event that changed the session.
    """
    
    def __init__(self, session: UploadSession, emitter: Optional[EventEmitter] = None):
        self._session = session
        self._emitter = emitter or EventEmitter('vaultup.upload.state')
    
    @property
    def session(self) -> UploadSession:
        return self._session
    
    def dispatch(self, event: SessionEvent) -> UploadSession:
        """Apply an event and notify listeners if the session changed."""
        previous = self._session
        updated = reduce_session(previous, event)
        if updated is previous:
            logger.debug(f"Ignored {type(event).__name__} in status {previous.status.value}")
            return previous
        self._session = updated
        self._emitter.emit('change', updated, previous, event)
        return updated
    
    def on_change(self, callback: Callable) -> 'SessionStore':
        self._emitter.on('change', callback)
        return self
