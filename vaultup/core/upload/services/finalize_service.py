"""
Finalization service.

Asks the server to assemble the received chunks into one file.
"""
from typing import Any, Dict, Tuple

from ..protocols import UploadApiProtocol
from ...api.errors import VaultAPIError
from ...logging import get_logger

logger = get_logger('vaultup.upload.finalize')


class UploadFinalizer:
    """
    Calls the complete endpoint exactly once per session.
    
    Failures are not retried; the coordinator turns them into a
    session error.
    """
    
    def __init__(self, api: UploadApiProtocol):
        """
        Initialize finalizer.
        
        Args:
            api: Upload API client
        """
        self._api = api
    
    async def finalize(self, upload_id: str) -> Tuple[str, str, Dict[str, Any]]:
        """
        Finalize an upload.
        
        Args:
            upload_id: Server upload identifier
            
        Returns:
            Tuple of (job_id, status, raw response)
            
        Raises:
            VaultAPIError: If the server rejects the request or returns no job id
        """
        logger.info(f"Finalizing upload {upload_id}")
        response = await self._api.complete_upload(upload_id)
        
        job_id = response.get('jobId') if isinstance(response, dict) else None
        if not job_id:
            raise VaultAPIError(200, "No job ID returned from server")
        
        status = response.get('status') or 'processing'
        logger.info(f"Upload {upload_id} finalized, job {job_id} ({status})")
        return str(job_id), str(status), response
