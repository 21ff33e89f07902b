"""
Progress models.

UploadProgress is the UI-facing record held by GlobalProgressStore.
Both the chunked engine and the single-shot path project into it.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Set

from ..logging import get_logger

logger = get_logger('vaultup.progress')

DUPLICATE_MARKER = 'duplicate key value'

# Unknown server statuses already warned about
_unknown_statuses: Set[str] = set()


class ProgressStatus(str, Enum):
    """Statuses reported by the upload form and the job status endpoint."""
    STARTING = 'starting'
    PREPARING = 'preparing'
    UPLOADING = 'uploading'
    PROCESSING = 'processing'
    ASSEMBLING = 'assembling'
    SUCCESS = 'success'
    FINALIZING = 'finalizing'
    ADDING_ROOT = 'adding_root'
    COMPLETE = 'complete'
    ERROR = 'error'
    WARNING = 'warning'
    CANCELLED = 'cancelled'
    RETRY = 'retry'
    PENDING = 'pending'
    
    @classmethod
    def parse(cls, value: Any) -> 'ProgressStatus':
        """Parse a server status, mapping unknown values to PROCESSING."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            key = str(value)
            if key not in _unknown_statuses:
                _unknown_statuses.add(key)
                logger.warning(f"Unknown upload status {value!r}, treating as processing")
            return cls.PROCESSING
    
    @property
    def is_success(self) -> bool:
        return self in (ProgressStatus.COMPLETE, ProgressStatus.SUCCESS)
    
    @property
    def is_terminal(self) -> bool:
        """Polling stops at these statuses."""
        return self.is_success or self in (ProgressStatus.ERROR, ProgressStatus.CANCELLED)
    
    @property
    def can_stall(self) -> bool:
        """Statuses where a lack of updates means the job is stuck."""
        return self in (
            ProgressStatus.UPLOADING,
            ProgressStatus.PROCESSING,
            ProgressStatus.ASSEMBLING,
            ProgressStatus.ADDING_ROOT,
            ProgressStatus.RETRY,
            ProgressStatus.PENDING,
        )


# wire key -> attribute name
_WIRE_FIELDS = {
    'status': 'status',
    'progress': 'progress',
    'message': 'message',
    'error': 'error',
    'filename': 'filename',
    'jobId': 'job_id',
    'serviceProofSetId': 'proof_set_id',
    'proofSetId': 'proof_set_id',
    'cid': 'cid',
    'lastUpdated': 'last_updated',
    'isStalled': 'is_stalled',
}


@dataclass(frozen=True)
class UploadProgress:
    """
    Progress of the current upload as seen by observers.
    
    Attributes:
        status: Current status
        progress: Percentage (0-100) when known
        message: Latest human readable message
        error: Latest error message
        filename: Name of the uploaded file
        job_id: Server-side job identifier
        proof_set_id: Proof set the stored file was added to
        cid: Content identifier of the stored file
        last_updated: Time of the last observed change (seconds since epoch)
        is_stalled: True when no change arrived within the stall threshold
    """
    status: ProgressStatus
    progress: Optional[float] = None
    message: Optional[str] = None
    error: Optional[str] = None
    filename: Optional[str] = None
    job_id: Optional[str] = None
    proof_set_id: Optional[str] = None
    cid: Optional[str] = None
    last_updated: Optional[float] = None
    is_stalled: bool = False
    
    def __post_init__(self):
        if not isinstance(self.status, ProgressStatus):
            object.__setattr__(self, 'status', ProgressStatus.parse(self.status))
    
    def evolve(self, **changes) -> 'UploadProgress':
        return replace(self, **changes)
    
    @property
    def is_complete(self) -> bool:
        """Success reported with 100% progress."""
        return self.status.is_success and self.progress == 100
    
    @property
    def is_duplicate(self) -> bool:
        return bool(self.error and DUPLICATE_MARKER in self.error)
    
    def is_stalled_at(self, now: float, threshold: float) -> bool:
        """True when last_updated is older than the threshold."""
        return self.last_updated is not None and now - self.last_updated > threshold
    
    def differs_from(self, other: Optional['UploadProgress']) -> bool:
        """True when status, message or progress changed."""
        if other is None:
            return True
        return (
            self.status != other.status
            or self.message != other.message
            or self.progress != other.progress
        )
    
    def merge(self, data: Dict[str, Any]) -> 'UploadProgress':
        """Overlay a server payload; keys absent or null keep their value."""
        changes = {}
        for key, value in data.items():
            attr = _WIRE_FIELDS.get(key)
            if attr is None or value is None:
                continue
            changes[attr] = value
        if 'status' in changes:
            changes['status'] = ProgressStatus.parse(changes['status'])
        return replace(self, **changes)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire format, omitting empty fields."""
        result: Dict[str, Any] = {'status': self.status.value}
        for key, attr in _WIRE_FIELDS.items():
            if key in ('status', 'proofSetId'):
                continue
            value = getattr(self, attr)
            if value is not None:
                result[key] = value
        return result
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UploadProgress':
        """Create from the wire format."""
        return cls(status=ProgressStatus.parse(data.get('status', 'pending'))).merge(data)
