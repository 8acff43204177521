"""Pydantic models for scan jobs."""

from scanjobs.models.model_issue import (
    NormalizedIssue,
    ReconciledScan,
    ScanResultSummary,
    Severity,
)
from scanjobs.models.model_job import (
    TERMINAL_STATUSES,
    CustomerTier,
    ScanEvent,
    ScanJob,
    ScanJobStatus,
    ScanRequest,
    ScanType,
)
from scanjobs.models.model_poll import PollAttempt, PollOutcome, ProgressUpdate, ScanBatchResult
from scanjobs.models.model_remote import (
    CancelAck,
    JobProgress,
    JobSubmission,
    RemoteJobState,
    RemoteJobStatus,
    ScanOptions,
    Viewport,
)

__all__ = [
    # Job models
    "CustomerTier",
    "ScanEvent",
    "ScanJob",
    "ScanJobStatus",
    "ScanRequest",
    "ScanType",
    "TERMINAL_STATUSES",
    # Issue models
    "NormalizedIssue",
    "ReconciledScan",
    "ScanResultSummary",
    "Severity",
    # Poll loop records
    "PollAttempt",
    "PollOutcome",
    "ProgressUpdate",
    "ScanBatchResult",
    # Remote wire models
    "CancelAck",
    "JobProgress",
    "JobSubmission",
    "RemoteJobState",
    "RemoteJobStatus",
    "ScanOptions",
    "Viewport",
]
