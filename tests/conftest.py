"""Pytest fixtures for vaultup tests."""
import asyncio
from typing import Any, Dict, List, Optional

import pytest

from vaultup.core.exceptions import PreconditionError
from vaultup.core.progress import GlobalProgressStore, MemoryProgressStorage


class FakeClock:
    """Clock whose sleep advances time instantly and yields to the loop."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.time = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.time

    def advance(self, seconds: float) -> None:
        self.time += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.time += seconds
        await asyncio.sleep(0)


class FakeUploadApi:
    """
    Scripted stand-in for AsyncAPIClient.

    failures maps a chunk index to exceptions raised by its next
    attempts, one per attempt. When gate is set, chunk calls block
    until it is released.
    """

    def __init__(self, token: Optional[str] = 'jwt-token'):
        self.token = token
        self.init_response: Dict[str, Any] = {'uploadId': 'upload-1', 'totalChunks': None}
        self.complete_response: Dict[str, Any] = {'jobId': 'job-1', 'status': 'processing'}
        self.init_error: Optional[Exception] = None
        self.complete_error: Optional[Exception] = None
        self.failures: Dict[int, List[Exception]] = {}
        self.status_responses: List[Any] = []
        self.upload_response: Dict[str, Any] = {'status': 'processing', 'progress': 0, 'jobId': 'job-single'}
        self.gate: Optional[asyncio.Event] = None
        self.yields = 1

        self.init_calls: List[tuple] = []
        self.chunk_calls: List[int] = []
        self.chunk_sizes: Dict[int, int] = {}
        self.complete_calls: List[str] = []
        self.status_calls: List[str] = []
        self.received = set()
        self.active = 0
        self.peak = 0

    def require_credential(self) -> str:
        if not self.token:
            raise PreconditionError("Authentication required. Please login again.")
        return self.token

    async def init_upload(self, filename, total_size, chunk_size, total_chunks, file_type):
        self.require_credential()
        self.init_calls.append((filename, total_size, chunk_size, total_chunks, file_type))
        await asyncio.sleep(0)
        if self.init_error is not None:
            raise self.init_error
        response = dict(self.init_response)
        if response.get('totalChunks') is None:
            response['totalChunks'] = total_chunks
        return response

    async def upload_chunk(self, upload_id, chunk_index, data, progress_callback=None, timeout=None):
        self.require_credential()
        self.chunk_calls.append(chunk_index)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if progress_callback:
                progress_callback(len(data) // 2, len(data))
            for _ in range(self.yields):
                await asyncio.sleep(0)
            if self.gate is not None:
                await self.gate.wait()
            pending = self.failures.get(chunk_index)
            if pending:
                raise pending.pop(0)
            if progress_callback:
                progress_callback(len(data), len(data))
            self.chunk_sizes[chunk_index] = len(data)
            self.received.add(chunk_index)
            return {
                'uploadId': upload_id,
                'chunkIndex': chunk_index,
                'uploadedChunks': len(self.received),
                'allChunksReceived': False,
            }
        finally:
            self.active -= 1

    async def complete_upload(self, upload_id):
        self.require_credential()
        self.complete_calls.append(upload_id)
        await asyncio.sleep(0)
        if self.complete_error is not None:
            raise self.complete_error
        return dict(self.complete_response)

    async def get_job_status(self, job_id):
        self.status_calls.append(job_id)
        await asyncio.sleep(0)
        if len(self.status_responses) > 1:
            response = self.status_responses.pop(0)
        else:
            response = self.status_responses[0]
        if isinstance(response, Exception):
            raise response
        return dict(response)

    async def upload_file(self, file_path, filename=None, content_type='application/octet-stream', progress_callback=None):
        self.require_credential()
        size = file_path.stat().st_size
        if progress_callback:
            progress_callback(size, size)
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        return dict(self.upload_response)


async def settle(rounds: int = 10) -> None:
    """Let scheduled callbacks and timer tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    """Fake clock starting at a fixed time."""
    return FakeClock()


@pytest.fixture
def fake_api():
    """Scripted upload API with a credential."""
    return FakeUploadApi()


@pytest.fixture
def progress_store(clock):
    """Progress store over in-memory storage."""
    return GlobalProgressStore(MemoryProgressStorage(), clock=clock)


@pytest.fixture
def sample_file(tmp_path):
    """Writes a 5000-byte file with a recognizable pattern."""
    path = tmp_path / "sample.bin"
    path.write_bytes(bytes(i % 251 for i in range(5000)))
    return path


@pytest.fixture
def drain():
    """Coroutine function that lets pending loop callbacks run."""
    return settle
