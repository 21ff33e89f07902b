"""Protocol for the job status endpoint."""
from typing import Any, Dict, Protocol


class StatusApiProtocol(Protocol):
    """Anything that can fetch the status of a server job."""
    
    async def get_job_status(self, job_id: str) -> Dict[str, Any]:
        """Fetch {'status', 'progress'?, 'message'?, 'cid'?, ...} for a job."""
        ...
