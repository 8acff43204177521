"""Abstract base class for scan job stores.

The store is the only state shared between a poll task and its readers.
Each job has a single writer (its poll task); readers such as a dashboard
tolerate eventually-consistent reads.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import ValidationError

from scanjobs.errors import StorageError
from scanjobs.models.model_job import ScanEvent, ScanJob


class JobStore(ABC):
    """Record store exposing get / patch / insert for scan jobs."""

    @abstractmethod
    def get(self, scan_id: str) -> ScanJob | None:
        """Load a job.

        Args:
            scan_id: Local record id.

        Returns:
            The stored job, or None if unknown.
        """
        ...

    @abstractmethod
    def insert(self, job: ScanJob) -> ScanJob:
        """Store a new job.

        Raises:
            StorageError: If a job with the same scan_id already exists.
        """
        ...

    @abstractmethod
    def patch(self, scan_id: str, fields: dict[str, Any]) -> ScanJob:
        """Update fields of a stored job and return the new record.

        Raises:
            StorageError: If the job is unknown, already terminal, or the
                fields do not validate.
        """
        ...

    @abstractmethod
    def list_jobs(self) -> list[ScanJob]:
        """Return all stored jobs, oldest submission first."""
        ...

    @abstractmethod
    def insert_event(self, event: ScanEvent) -> None:
        """Append an analytics event."""
        ...

    @abstractmethod
    def events(self, scan_id: str) -> list[ScanEvent]:
        """Return the events recorded for a job, in insertion order."""
        ...

    @staticmethod
    def _merge(job: ScanJob, fields: dict[str, Any]) -> ScanJob:
        """Validate a patch against the current record."""
        if job.is_terminal:
            raise StorageError(f"Scan {job.scan_id} is {job.status.value}; refusing further writes")

        unknown = set(fields) - set(ScanJob.model_fields)
        if unknown:
            raise StorageError(f"Unknown fields for scan {job.scan_id}: {sorted(unknown)}")

        data = job.model_dump()
        data.pop("is_terminal", None)
        data.update(fields)
        try:
            return ScanJob.model_validate(data)
        except ValidationError as e:
            raise StorageError(f"Invalid update for scan {job.scan_id}: {e}") from e
