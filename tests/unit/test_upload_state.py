"""Tests for the session reducer and SessionStore."""
import pytest

from vaultup.core.upload.models import ChunkState, SessionStatus, UploadSession
from vaultup.core.upload.state import (
    ChunkCompleted,
    ChunkFailed,
    ChunkProgressed,
    ChunkStarted,
    FinalizeStarted,
    SessionCancelled,
    SessionCompleted,
    SessionFailed,
    SessionInitialized,
    SessionStore,
    SpeedSampled,
    reduce_session
)


@pytest.fixture
def session():
    """Initialized session of 3 chunks (1000, 1000, 500 bytes)."""
    fresh = UploadSession.create(
        filename="data.bin",
        file_size=2500,
        file_type="application/octet-stream",
        chunk_size=1000,
        start_time=100.0
    )
    return reduce_session(fresh, SessionInitialized("upload-1"))


def apply(session, *events):
    for event in events:
        session = reduce_session(session, event)
    return session


class TestReducer:
    """Tests for reduce_session."""
    
    def test_initialized(self, session):
        """Test init moves to uploading with the upload id."""
        assert session.status == SessionStatus.UPLOADING
        assert session.upload_id == "upload-1"
    
    def test_chunk_started(self, session):
        """Test pending chunk starts uploading."""
        updated = reduce_session(session, ChunkStarted(0))
        
        assert updated.chunk(0).state == ChunkState.UPLOADING
    
    def test_progress_counts_in_flight_bytes(self, session):
        """Test bytes_uploaded includes partial transfers."""
        updated = apply(session, ChunkStarted(0), ChunkProgressed(0, 250, 1000))
        
        assert updated.chunk(0).progress == 25
        assert updated.bytes_uploaded == 250
    
    def test_completion_out_of_order(self, session):
        """Test counters do not depend on completion order."""
        updated = apply(
            session,
            ChunkStarted(0), ChunkStarted(2), ChunkStarted(1),
            ChunkCompleted(2, server_uploaded_chunks=1),
            ChunkCompleted(0, server_uploaded_chunks=3),
            ChunkCompleted(1, server_uploaded_chunks=2),
        )
        
        assert updated.uploaded_chunks == 3
        assert updated.bytes_uploaded == 2500
        assert updated.server_uploaded_chunks == 3
    
    def test_duplicate_completion_ignored(self, session):
        """Test a second completion does not change the session."""
        done = apply(session, ChunkStarted(0), ChunkCompleted(0))
        
        assert reduce_session(done, ChunkCompleted(0)) is done
    
    def test_failure_below_limit_returns_to_pending(self, session):
        """Test a transient failure re-queues with a retry note."""
        updated = apply(session, ChunkStarted(1), ChunkProgressed(1, 500, 1000), ChunkFailed(1, "Network error"))
        chunk = updated.chunk(1)
        
        assert chunk.state == ChunkState.PENDING
        assert chunk.retries == 1
        assert chunk.last_error == "Retrying (1/3)..."
        assert updated.bytes_uploaded == 0
    
    def test_timeout_note(self, session):
        """Test retry note carries the failure kind."""
        updated = apply(session, ChunkStarted(1), ChunkFailed(1, "Timeout error", note="Timeout"))
        
        assert updated.chunk(1).last_error == "Timeout - Retrying (1/3)..."
    
    def test_third_failure_is_terminal(self, session):
        """Test the third failure marks the chunk as error."""
        updated = session
        for _ in range(3):
            updated = apply(updated, ChunkStarted(1), ChunkFailed(1, "Failed with status 500: boom"))
        chunk = updated.chunk(1)
        
        assert chunk.state == ChunkState.ERROR
        assert chunk.retries == 3
        assert chunk.last_error == "Failed with status 500: boom"
    
    def test_terminal_failure_skips_retries(self, session):
        """Test a failure flagged terminal ends the chunk on the first attempt."""
        updated = apply(session, ChunkStarted(1), ChunkFailed(1, "Network error", terminal=True))
        chunk = updated.chunk(1)
        
        assert chunk.state == ChunkState.ERROR
        assert chunk.retries == 1
        assert chunk.last_error == "Network error"
    
    def test_error_chunk_never_restarts(self, session):
        """Test an error chunk ignores further start events."""
        updated = session
        for _ in range(3):
            updated = apply(updated, ChunkStarted(1), ChunkFailed(1, "Network error"))
        
        assert reduce_session(updated, ChunkStarted(1)) is updated
    
    def test_speed_sample(self, session):
        """Test average speed is bytes over elapsed time."""
        updated = apply(session, ChunkStarted(0), ChunkCompleted(0), SpeedSampled(now=110.0))
        
        assert updated.average_speed == 100.0
    
    def test_finalize_and_complete(self, session):
        """Test finalization path records the job id."""
        updated = apply(session, FinalizeStarted(), SessionCompleted("job-7"))
        
        assert updated.status == SessionStatus.COMPLETE
        assert updated.job_id == "job-7"
    
    def test_complete_requires_finalizing(self, session):
        """Test completion is ignored outside finalization."""
        assert reduce_session(session, SessionCompleted("job-7")) is session
    
    def test_failed(self, session):
        """Test session error keeps the message."""
        updated = reduce_session(session, SessionFailed("Failed to initialize upload"))
        
        assert updated.status == SessionStatus.ERROR
        assert updated.error_message == "Failed to initialize upload"
    
    def test_cancel_resets_in_flight_chunks(self, session):
        """Test cancel leaves no chunk uploading and costs no retry."""
        updated = apply(session, ChunkStarted(0), ChunkStarted(1), ChunkCompleted(1), SessionCancelled())
        
        assert updated.status == SessionStatus.PAUSED
        assert updated.chunk(0).state == ChunkState.PENDING
        assert updated.chunk(0).retries == 0
        assert updated.chunk(1).state == ChunkState.COMPLETE
    
    def test_events_after_cancel_ignored(self, session):
        """Test late completions do not touch a cancelled session."""
        cancelled = apply(session, ChunkStarted(0), SessionCancelled())
        
        assert reduce_session(cancelled, ChunkCompleted(0)) is cancelled
        assert reduce_session(cancelled, ChunkStarted(2)) is cancelled
        assert reduce_session(cancelled, SessionFailed("late")) is cancelled
    
    def test_unknown_event(self, session):
        """Test unknown events raise TypeError."""
        with pytest.raises(TypeError):
            reduce_session(session, object())


class TestSessionStore:
    """Tests for SessionStore."""
    
    def test_dispatch_notifies_on_change(self, session):
        """Test listeners get (new, previous, event)."""
        store = SessionStore(session)
        seen = []
        store.on_change(lambda new, prev, event: seen.append((new, prev, event)))
        
        event = ChunkStarted(0)
        updated = store.dispatch(event)
        
        assert store.session is updated
        assert seen == [(updated, session, event)]
    
    def test_ignored_event_not_notified(self, session):
        """Test no-op events are silent."""
        store = SessionStore(session)
        seen = []
        store.on_change(lambda *args: seen.append(args))
        
        store.dispatch(ChunkCompleted(0))
        
        assert seen == []
        assert store.session is session
