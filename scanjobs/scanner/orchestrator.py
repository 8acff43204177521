"""Caller-facing entry points: submit, poll, run, cancel and batch scans."""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from scanjobs.consts import (
    BATCH_CONCURRENCY,
    LONG_POLL_INTERVAL,
    LONG_POLL_MAX_WAIT,
    PROGRESS_QUEUED,
)
from scanjobs.errors import JobNotFound, ScanErrorKind, ScanServiceError
from scanjobs.models.common import _utc_now
from scanjobs.models.model_job import (
    CustomerTier,
    ScanEvent,
    ScanJob,
    ScanJobStatus,
    ScanRequest,
    ScanType,
)
from scanjobs.models.model_poll import ScanBatchResult
from scanjobs.models.model_remote import ScanOptions
from scanjobs.scanner.client import ScannerClient
from scanjobs.scanner.poller import JobPoller
from scanjobs.storage.base import JobStore

logger = logging.getLogger(__name__)


class ScanOrchestrator:
    """Tracks scans from submission to a terminal record in the store."""

    def __init__(
        self,
        client: ScannerClient,
        store: JobStore,
        poller: JobPoller | None = None,
        max_wait: float = LONG_POLL_MAX_WAIT,
        poll_interval: float = LONG_POLL_INTERVAL,
    ):
        """Initialize ScanOrchestrator.

        Args:
            client: ScannerClient instance
            store: JobStore holding tracked scans
            poller: JobPoller (default: one built from client and store)
            max_wait: Default polling budget in seconds
            poll_interval: Default first poll interval in seconds
        """
        self.client = client
        self.store = store
        self.poller = poller or JobPoller(client, store)
        self.max_wait = max_wait
        self.poll_interval = poll_interval

    def _record_event(self, event_type: str, job: ScanJob, **metadata: Any) -> None:
        self.store.insert_event(
            ScanEvent(
                event_type=event_type,
                scan_id=job.scan_id,
                metadata={"job_id": job.job_id, "url": job.url, **metadata},
            )
        )

    def _get_tracked(self, scan_id: str) -> ScanJob:
        job = self.store.get(scan_id)
        if job is None:
            raise JobNotFound(f"Scan {scan_id} is not tracked", scan_id)
        return job

    async def submit_scan(
        self,
        url: str,
        scan_type: ScanType | str = ScanType.SINGLE_PAGE,
        tier: CustomerTier | str | None = CustomerTier.STARTER,
        options: ScanOptions | dict[str, Any] | None = None,
    ) -> ScanJob:
        """Submit a scan and start tracking it.

        Nothing is persisted when submission fails; the error propagates.

        Returns:
            Tracked ScanJob in status SUBMITTED.
        """
        customer_tier = CustomerTier.parse(tier)
        submission = await self.client.submit(url, scan_type, customer_tier, options)

        job = ScanJob(
            job_id=submission.job_id,
            url=url,
            scan_type=ScanType(scan_type),
            tier=customer_tier,
            status=ScanJobStatus.SUBMITTED,
            progress=PROGRESS_QUEUED,
            message=f"Job queued ({submission.job_id}), waiting for processing...",
            estimated_completion_time=submission.estimated_completion_time,
        )
        self.store.insert(job)
        self._record_event("scan_submitted", job, tier=customer_tier.value)
        logger.info(f"Tracking scan {job.scan_id} for {url} as job {job.job_id}")
        return job

    async def poll_status(self, scan_id: str) -> ScanJob:
        """Run one status check for a tracked scan."""
        return await self.poller.tick(self._get_tracked(scan_id))

    async def wait_for(
        self,
        scan_id: str,
        max_wait: float | None = None,
        poll_interval: float | None = None,
    ) -> ScanJob:
        """Poll a tracked scan until it is terminal or the budget is spent."""
        return await self.poller.poll_until_terminal(
            self._get_tracked(scan_id),
            max_wait=max_wait if max_wait is not None else self.max_wait,
            poll_interval=poll_interval if poll_interval is not None else self.poll_interval,
        )

    def _record_submission_failure(
        self,
        url: str,
        scan_type: ScanType | str,
        tier: CustomerTier | str | None,
        error: ScanServiceError,
    ) -> ScanJob:
        try:
            resolved_type = ScanType(scan_type)
        except ValueError:
            resolved_type = ScanType.SINGLE_PAGE
        job = ScanJob(
            url=url,
            scan_type=resolved_type,
            tier=CustomerTier.parse(tier),
            status=ScanJobStatus.FAILED,
            message=f"Scan failed: {error.message}",
            error_message=error.message,
            failure_kind=error.kind,
            completed_at=_utc_now(),
        )
        self.store.insert(job)
        self._record_event("scan_failed", job, failure_kind=error.kind.value)
        return job

    async def run_scan(
        self,
        url: str,
        scan_type: ScanType | str = ScanType.SINGLE_PAGE,
        tier: CustomerTier | str | None = CustomerTier.STARTER,
        options: ScanOptions | dict[str, Any] | None = None,
        max_wait: float | None = None,
        poll_interval: float | None = None,
    ) -> ScanJob:
        """Submit a scan and poll it to a terminal state.

        Submission failures are recorded as a failed scan instead of raised.

        Args:
            url: Page to scan
            scan_type: single_page or multi_page
            tier: Customer tier (unknown values default to starter)
            options: Browser options for the scanner
            max_wait: Polling budget in seconds (default: orchestrator's)
            poll_interval: First poll interval in seconds (default: orchestrator's)

        Returns:
            Terminal ScanJob
        """
        try:
            job = await self.submit_scan(url, scan_type, tier, options)
        except ScanServiceError as e:
            logger.warning(f"Submission failed for {url} [{e.kind.value}]: {e.message}")
            return self._record_submission_failure(url, scan_type, tier, e)

        return await self.wait_for(job.scan_id, max_wait, poll_interval)

    async def cancel_scan(self, scan_id: str) -> ScanJob:
        """Cancel a tracked scan.

        The remote cancel is best effort; the local record always ends CANCELED
        unless it was already terminal, in which case it is returned unchanged.
        """
        job = self._get_tracked(scan_id)
        if job.is_terminal:
            logger.info(f"Scan {scan_id} is already {job.status.value}, nothing to cancel")
            return job

        if job.job_id:
            try:
                ack = await self.client.cancel(job.job_id)
                logger.info(f"Canceled job {job.job_id}: {ack.message}")
            except ScanServiceError as e:
                logger.warning(f"Remote cancel failed for job {job.job_id}: {e.message}")

        job = self._get_tracked(scan_id)
        if job.is_terminal:
            logger.info(f"Scan {scan_id} became {job.status.value} before the cancel landed")
            return job

        job = self.store.patch(
            scan_id,
            {
                "status": ScanJobStatus.CANCELED,
                "message": "Scan canceled by user",
                "failure_kind": ScanErrorKind.CANCELED,
                "completed_at": _utc_now(),
            },
        )
        self._record_event("scan_canceled", job, progress=job.progress)
        return job

    async def run_batch(
        self,
        requests: list[ScanRequest],
        concurrency: int = BATCH_CONCURRENCY,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> ScanBatchResult:
        """Run several scans, each with its own poll task.

        Uses asyncio.Semaphore to limit concurrent scans.
        Calls progress_callback(current, total) as scans finish.

        Args:
            requests: Scans to run
            concurrency: Maximum concurrent scans
            progress_callback: Optional callback for progress updates (current, total)

        Returns:
            ScanBatchResult with one terminal job per request
        """
        start_time = time.time()
        semaphore = asyncio.Semaphore(concurrency)
        finished = 0

        async def run_one(request: ScanRequest) -> ScanJob:
            nonlocal finished
            async with semaphore:
                job = await self.run_scan(
                    request.url, request.scan_type, request.tier, request.options
                )
            finished += 1
            if progress_callback:
                progress_callback(finished, len(requests))
            return job

        jobs = await asyncio.gather(*[run_one(r) for r in requests])

        failures = {
            job.scan_id: job.error_message or "Unknown error"
            for job in jobs
            if job.status == ScanJobStatus.FAILED
        }
        return ScanBatchResult(
            total=len(requests),
            completed=sum(1 for j in jobs if j.status == ScanJobStatus.COMPLETED),
            failed=sum(1 for j in jobs if j.status == ScanJobStatus.FAILED),
            canceled=sum(1 for j in jobs if j.status == ScanJobStatus.CANCELED),
            jobs=list(jobs),
            failures=failures,
            duration_seconds=time.time() - start_time,
        )
