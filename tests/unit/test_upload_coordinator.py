"""Tests for UploadCoordinator."""
import asyncio

import aiohttp
import pytest

from vaultup.core.api.errors import VaultAPIError
from vaultup.core.exceptions import (
    PreconditionError,
    UploadCancelledError,
    UploadSessionError
)
from vaultup.core.progress import ProgressStatus
from vaultup.core.upload import (
    ChunkState,
    FinalizePolicy,
    SessionStatus,
    UploadConfig,
    UploadCoordinator
)


@pytest.fixture
def coordinator(fake_api, progress_store, clock):
    """Coordinator wired to the fake API."""
    return UploadCoordinator(fake_api, progress_store, clock=clock)


@pytest.fixture
def config(sample_file):
    """5 chunks of 1000 bytes, no periodic speed sampling."""
    return UploadConfig(file_path=sample_file, chunk_size=1000, speed_sample_interval=0)


class TestUploadCoordinator:
    """Test suite for UploadCoordinator."""
    
    @pytest.mark.asyncio
    async def test_happy_path(self, coordinator, config, fake_api):
        """Test all calls succeeding ends complete with every byte counted."""
        result = await coordinator.upload(config)
        session = coordinator.session
        
        assert session.status == SessionStatus.COMPLETE
        assert session.bytes_uploaded == session.file_size == 5000
        assert session.uploaded_chunks == 5
        assert result.job_id == "job-1"
        assert result.upload_id == "upload-1"
        assert result.status == "processing"
        assert fake_api.complete_calls == ["upload-1"]
    
    @pytest.mark.asyncio
    async def test_init_request(self, coordinator, config, fake_api):
        """Test init carries the planned layout."""
        await coordinator.upload(config)
        
        assert fake_api.init_calls == [("sample.bin", 5000, 1000, 5, config.file_type)]
    
    @pytest.mark.asyncio
    async def test_upload_finished_event(self, coordinator, config):
        """Test finalization raises the finished notification."""
        finished = []
        coordinator.on('upload_finished', finished.append)
        
        await coordinator.upload(config)
        
        assert finished == [{'job_id': 'job-1', 'upload_id': 'upload-1', 'filename': 'sample.bin'}]
    
    @pytest.mark.asyncio
    async def test_progress_projection(self, coordinator, config, progress_store):
        """Test the shared progress slot follows the session."""
        statuses = []
        progress_store.on('change', lambda p: statuses.append(p.status if p else None))
        
        await coordinator.upload(config)
        
        assert statuses[0] == ProgressStatus.STARTING
        assert ProgressStatus.UPLOADING in statuses
        assert ProgressStatus.FINALIZING in statuses
        record = progress_store.progress
        assert record.status == ProgressStatus.PROCESSING
        assert record.job_id == "job-1"
        assert record.filename == "sample.bin"
    
    @pytest.mark.asyncio
    async def test_default_chunk_size(self, coordinator, sample_file, fake_api):
        """Test small files get one 2 MiB chunk."""
        await coordinator.upload(UploadConfig(file_path=sample_file, speed_sample_interval=0))
        
        assert fake_api.init_calls[0][2:4] == (2 * 1024 * 1024, 1)
    
    @pytest.mark.asyncio
    async def test_missing_credential(self, coordinator, config, fake_api):
        """Test no network call is issued without a credential."""
        fake_api.token = None
        
        with pytest.raises(PreconditionError, match="Authentication required"):
            await coordinator.upload(config)
        
        assert fake_api.init_calls == []
    
    @pytest.mark.asyncio
    async def test_missing_file(self, coordinator, tmp_path, fake_api):
        """Test a missing file fails before any network call."""
        with pytest.raises(PreconditionError):
            await coordinator.upload(UploadConfig(file_path=tmp_path / "nope.bin"))
        
        assert fake_api.init_calls == []
    
    @pytest.mark.asyncio
    async def test_empty_file(self, coordinator, tmp_path):
        """Test an empty file is rejected."""
        empty = tmp_path / "empty.bin"
        empty.write_bytes(b"")
        
        with pytest.raises(PreconditionError, match="empty"):
            await coordinator.upload(UploadConfig(file_path=empty))
    
    @pytest.mark.asyncio
    async def test_init_failure(self, coordinator, config, fake_api):
        """Test init failure ends the session without chunk calls."""
        fake_api.init_error = VaultAPIError(500, "database unavailable")
        
        with pytest.raises(UploadSessionError) as exc_info:
            await coordinator.upload(config)
        
        assert exc_info.value.stage == "init"
        assert exc_info.value.error_code == 500
        assert coordinator.session.status == SessionStatus.ERROR
        assert coordinator.session.error_message == "database unavailable"
        assert fake_api.chunk_calls == []
    
    @pytest.mark.asyncio
    async def test_init_network_failure(self, coordinator, config, fake_api):
        """Test transport errors during init are session errors too."""
        fake_api.init_error = aiohttp.ClientConnectionError("refused")
        
        with pytest.raises(UploadSessionError) as exc_info:
            await coordinator.upload(config)
        
        assert exc_info.value.stage == "init"
        assert "refused" in coordinator.session.error_message
    
    @pytest.mark.asyncio
    async def test_init_without_upload_id(self, coordinator, config, fake_api):
        """Test a response without uploadId is rejected."""
        fake_api.init_response = {'totalChunks': 5}
        
        with pytest.raises(UploadSessionError, match="No upload ID"):
            await coordinator.upload(config)
    
    @pytest.mark.asyncio
    async def test_finalize_failure(self, coordinator, config, fake_api):
        """Test finalize failure leaves the session in error."""
        fake_api.complete_error = VaultAPIError(400, "Not all chunks have been uploaded")
        
        with pytest.raises(UploadSessionError) as exc_info:
            await coordinator.upload(config)
        
        assert exc_info.value.stage == "finalize"
        assert coordinator.session.status == SessionStatus.ERROR
        assert coordinator.session.error_message == "Not all chunks have been uploaded"
        assert fake_api.complete_calls == ["upload-1"]
    
    @pytest.mark.asyncio
    async def test_finalize_without_job_id(self, coordinator, config, fake_api):
        """Test a complete response without jobId fails finalization."""
        fake_api.complete_response = {'status': 'processing'}
        
        with pytest.raises(UploadSessionError) as exc_info:
            await coordinator.upload(config)
        
        assert exc_info.value.stage == "finalize"
    
    @pytest.mark.asyncio
    async def test_chunk_error_blocks_finalize(self, coordinator, config, fake_api):
        """Test the default policy refuses to finalize after a terminal chunk error."""
        fake_api.failures[2] = [aiohttp.ClientConnectionError("reset")] * 3
        
        with pytest.raises(UploadSessionError) as exc_info:
            await coordinator.upload(config)
        
        assert exc_info.value.stage == "chunks"
        assert fake_api.complete_calls == []
        assert coordinator.session.status == SessionStatus.ERROR
        assert coordinator.session.chunk(2).state == ChunkState.ERROR
        assert coordinator.session.uploaded_chunks == 4
    
    @pytest.mark.asyncio
    async def test_best_effort_finalizes_anyway(self, coordinator, sample_file, fake_api):
        """Test best-effort policy finalizes with failed chunks."""
        fake_api.failures[2] = [aiohttp.ClientConnectionError("reset")] * 3
        config = UploadConfig(
            file_path=sample_file,
            chunk_size=1000,
            speed_sample_interval=0,
            finalize_policy=FinalizePolicy.BEST_EFFORT
        )
        
        result = await coordinator.upload(config)
        
        assert result.job_id == "job-1"
        assert fake_api.complete_calls == ["upload-1"]
        assert result.session.failed_indices == (2,)
    
    @pytest.mark.asyncio
    async def test_transient_failures_recovered(self, coordinator, config, fake_api):
        """Test retried chunks still finish the upload."""
        fake_api.failures[0] = [asyncio.TimeoutError(), VaultAPIError(502, "bad gateway")]
        
        result = await coordinator.upload(config)
        
        assert result.session.chunk(0).retries == 2
        assert result.session.bytes_uploaded == 5000
    
    @pytest.mark.asyncio
    async def test_cancel_mid_upload(self, coordinator, config, fake_api, progress_store):
        """Test cancel aborts in-flight chunks and leaves a paused session."""
        fake_api.gate = asyncio.Event()
        statuses = []
        progress_store.on('change', lambda p: statuses.append(p.status if p else None))
        task = asyncio.ensure_future(coordinator.upload(config))
        
        while fake_api.active < 3:
            await asyncio.sleep(0)
        coordinator.cancel()
        
        with pytest.raises(UploadCancelledError):
            await task
        
        session = coordinator.session
        assert session.status == SessionStatus.PAUSED
        assert session.count(ChunkState.UPLOADING) == 0
        assert fake_api.active == 0
        assert len(fake_api.chunk_calls) == 3
        assert fake_api.complete_calls == []
        assert ProgressStatus.CANCELLED in statuses
    
    @pytest.mark.asyncio
    async def test_cancel_during_init(self, coordinator, config, fake_api):
        """Test cancel interrupts the init call."""
        original = fake_api.init_upload
        
        async def slow_init(*args):
            await asyncio.Event().wait()
            return await original(*args)
        
        fake_api.init_upload = slow_init
        task = asyncio.ensure_future(coordinator.upload(config))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        coordinator.cancel()
        
        with pytest.raises(UploadCancelledError):
            await task
        
        assert coordinator.session.status == SessionStatus.PAUSED
        assert fake_api.chunk_calls == []
    
    @pytest.mark.asyncio
    async def test_speed_sampling(self, fake_api, progress_store, clock, sample_file):
        """Test the periodic sampler records an average speed."""
        fake_api.yields = 5
        coordinator = UploadCoordinator(fake_api, progress_store, clock=clock)
        
        result = await coordinator.upload(
            UploadConfig(file_path=sample_file, chunk_size=1000, speed_sample_interval=1.0)
        )
        
        assert 1.0 in clock.sleeps
        assert result.session.average_speed > 0
    
    @pytest.mark.asyncio
    async def test_file_too_large(self, fake_api, progress_store, clock, sample_file):
        """Test the size ceiling is enforced before init."""
        coordinator = UploadCoordinator(fake_api, progress_store, clock=clock, max_file_size=1000)
        
        with pytest.raises(PreconditionError, match="exceeds"):
            await coordinator.upload(UploadConfig(file_path=sample_file))
        
        assert fake_api.init_calls == []
