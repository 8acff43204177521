"""In-process job store."""

from typing import Any

from scanjobs.errors import StorageError
from scanjobs.models.model_job import ScanEvent, ScanJob
from scanjobs.storage.base import JobStore


class MemoryJobStore(JobStore):
    """Dictionary-backed store. Used by tests and embedding callers."""

    def __init__(self) -> None:
        self._jobs: dict[str, ScanJob] = {}
        self._events: dict[str, list[ScanEvent]] = {}
        self.patch_count = 0

    def get(self, scan_id: str) -> ScanJob | None:
        return self._jobs.get(scan_id)

    def insert(self, job: ScanJob) -> ScanJob:
        if job.scan_id in self._jobs:
            raise StorageError(f"Scan {job.scan_id} already exists")
        self._jobs[job.scan_id] = job
        return job

    def patch(self, scan_id: str, fields: dict[str, Any]) -> ScanJob:
        job = self._jobs.get(scan_id)
        if job is None:
            raise StorageError(f"Scan {scan_id} not found")
        updated = self._merge(job, fields)
        self._jobs[scan_id] = updated
        self.patch_count += 1
        return updated

    def list_jobs(self) -> list[ScanJob]:
        return sorted(self._jobs.values(), key=lambda j: j.submitted_at)

    def insert_event(self, event: ScanEvent) -> None:
        self._events.setdefault(event.scan_id, []).append(event)

    def events(self, scan_id: str) -> list[ScanEvent]:
        return list(self._events.get(scan_id, []))
