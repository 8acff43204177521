"""Ephemeral records used inside the poll loop."""

from dataclasses import dataclass
from enum import Enum

from scanjobs.errors import ScanServiceError
from scanjobs.models.model_job import ScanJob
from scanjobs.models.model_remote import RemoteJobState


class PollOutcome(Enum):
    """Result of a single status fetch."""

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    FATAL_ERROR = "fatal_error"


@dataclass
class PollAttempt:
    """One status-fetch call. Discarded after each tick."""

    issued_at: float
    interval: float
    outcome: PollOutcome
    state: RemoteJobState | None = None
    error: ScanServiceError | None = None


@dataclass
class ProgressUpdate:
    """Local progress and message derived from a remote tick."""

    progress: int
    message: str


@dataclass
class ScanBatchResult:
    """Result of running several scans."""

    total: int
    completed: int
    failed: int
    canceled: int
    jobs: list[ScanJob]
    failures: dict[str, str]  # scan_id -> error
    duration_seconds: float
