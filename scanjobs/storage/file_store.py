"""File-based job store.

Directory structure:
    {data_dir}/
    ├── jobs/{scan_id}.json       # Current job record
    └── events/{scan_id}.jsonl    # Append-only analytics trail
"""

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from scanjobs.consts import DEFAULT_DATA_DIR
from scanjobs.errors import StorageError
from scanjobs.models.model_job import ScanEvent, ScanJob
from scanjobs.storage.base import JobStore

logger = logging.getLogger(__name__)


class FileJobStore(JobStore):
    """Stores each job as a JSON document and its events as JSON lines."""

    def __init__(self, data_dir: Path | str = DEFAULT_DATA_DIR):
        """Initialize FileJobStore.

        Args:
            data_dir: Root directory for job and event files.
        """
        self.data_dir = Path(data_dir)
        self._jobs_dir = self.data_dir / "jobs"
        self._events_dir = self.data_dir / "events"

    def _job_path(self, scan_id: str) -> Path:
        return self._jobs_dir / f"{scan_id}.json"

    def _events_path(self, scan_id: str) -> Path:
        return self._events_dir / f"{scan_id}.jsonl"

    def _write(self, job: ScanJob) -> None:
        self._jobs_dir.mkdir(parents=True, exist_ok=True)
        path = self._job_path(job.scan_id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(job.model_dump_json(indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(f"Failed to write scan {job.scan_id}: {e}") from e

    def get(self, scan_id: str) -> ScanJob | None:
        path = self._job_path(scan_id)
        if not path.exists():
            return None
        try:
            return ScanJob.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise StorageError(f"Failed to read scan {scan_id}: {e}") from e

    def insert(self, job: ScanJob) -> ScanJob:
        if self._job_path(job.scan_id).exists():
            raise StorageError(f"Scan {job.scan_id} already exists")
        self._write(job)
        logger.debug(f"Inserted scan {job.scan_id} ({job.url})")
        return job

    def patch(self, scan_id: str, fields: dict[str, Any]) -> ScanJob:
        job = self.get(scan_id)
        if job is None:
            raise StorageError(f"Scan {scan_id} not found")
        updated = self._merge(job, fields)
        self._write(updated)
        return updated

    def list_jobs(self) -> list[ScanJob]:
        if not self._jobs_dir.exists():
            return []
        jobs = []
        for path in self._jobs_dir.glob("*.json"):
            try:
                jobs.append(ScanJob.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as e:
                logger.warning(f"Skipping unreadable job file {path}: {e}")
        return sorted(jobs, key=lambda j: j.submitted_at)

    def insert_event(self, event: ScanEvent) -> None:
        self._events_dir.mkdir(parents=True, exist_ok=True)
        try:
            with self._events_path(event.scan_id).open("a", encoding="utf-8") as f:
                f.write(event.model_dump_json() + "\n")
        except OSError as e:
            raise StorageError(f"Failed to append event for scan {event.scan_id}: {e}") from e

    def events(self, scan_id: str) -> list[ScanEvent]:
        path = self._events_path(scan_id)
        if not path.exists():
            return []
        return [
            ScanEvent.model_validate_json(line)
            for line in path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
