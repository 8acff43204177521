"""Poll loop driving a remote scan job to a terminal state.

State machine per job:
    submitted -> polling                   on entry
    polling   -> polling                   queued / running / unrecognized remote status
    polling   -> completed                 remote completed and the result reconciles
    polling   -> failed                    remote failed / canceled / timeout, job not
                                           found, malformed result, or budget exhausted

Transient fetch errors never change state; the loop sleeps and retries until
the budget runs out. On budget exhaustion the remote job gets one best-effort
cancel before the local failure is written.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from scanjobs.consts import (
    LONG_POLL_INTERVAL,
    LONG_POLL_MAX_WAIT,
    POLL_BACKOFF_MULTIPLIER,
    POLL_FINAL_GRACE,
    POLL_MAX_INTERVAL,
    PROGRESS_COMPLETE,
    PROGRESS_PROCESSING,
)
from scanjobs.errors import (
    BudgetExhausted,
    JobNotFound,
    MalformedResult,
    ScanErrorKind,
    ScanServiceError,
)
from scanjobs.models.common import _utc_now
from scanjobs.models.model_job import ScanEvent, ScanJob, ScanJobStatus
from scanjobs.models.model_poll import PollAttempt, PollOutcome
from scanjobs.models.model_remote import RemoteJobState, RemoteJobStatus
from scanjobs.scanner.backoff import BackoffSchedule
from scanjobs.scanner.client import ScannerClient
from scanjobs.scanner.progress import translate_progress
from scanjobs.scanner.reconciler import ResultReconciler
from scanjobs.storage.base import JobStore

logger = logging.getLogger(__name__)

_REMOTE_FAILURE_KINDS = {
    RemoteJobStatus.FAILED: ScanErrorKind.REMOTE_FAILED,
    RemoteJobStatus.CANCELED: ScanErrorKind.CANCELED,
    RemoteJobStatus.TIMEOUT: ScanErrorKind.TIMEOUT,
}


class JobPoller:
    """Drives status fetches for one job at a time; safe to share across tasks."""

    def __init__(
        self,
        client: ScannerClient,
        store: JobStore,
        reconciler: ResultReconciler | None = None,
        backoff_multiplier: float = POLL_BACKOFF_MULTIPLIER,
        max_interval: float = POLL_MAX_INTERVAL,
        final_grace: float = POLL_FINAL_GRACE,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        on_progress: Callable[[ScanJob], None] | None = None,
    ):
        """Initialize JobPoller.

        Args:
            client: ScannerClient used for status and cancel calls.
            store: JobStore receiving every state change.
            reconciler: ResultReconciler for completed jobs.
            backoff_multiplier: Interval growth factor after each non-terminal tick.
            max_interval: Interval ceiling in seconds.
            final_grace: A transient error with less budget than this left ends the loop.
            clock: Monotonic clock in seconds (default: time.monotonic).
            sleep: Async sleep (default: asyncio.sleep).
            on_progress: Optional callback invoked with every persisted update.
        """
        self.client = client
        self.store = store
        self.reconciler = reconciler or ResultReconciler()
        self.backoff_multiplier = backoff_multiplier
        self.max_interval = max_interval
        self.final_grace = final_grace
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self.on_progress = on_progress

    def _write(self, job: ScanJob, event_type: str | None = None, **fields) -> ScanJob:
        """Persist a change to a job owned by this poll task."""
        updated = self.store.patch(job.scan_id, fields)
        if event_type:
            self.store.insert_event(
                ScanEvent(
                    event_type=event_type,
                    scan_id=job.scan_id,
                    metadata={
                        "job_id": updated.job_id,
                        "status": updated.status.value,
                        "progress": updated.progress,
                        "message": updated.message,
                    },
                )
            )
        if self.on_progress:
            self.on_progress(updated)
        return updated

    def fail(self, job: ScanJob, kind: ScanErrorKind, error_message: str) -> ScanJob:
        """Move a job to FAILED, keeping its last progress value."""
        logger.warning(f"Scan {job.scan_id} (job {job.job_id}) failed [{kind.value}]: {error_message}")
        return self._write(
            job,
            "scan_failed",
            status=ScanJobStatus.FAILED,
            message=f"Scan failed: {error_message}",
            error_message=error_message,
            failure_kind=kind,
            completed_at=_utc_now(),
        )

    def _complete(self, job: ScanJob, state: RemoteJobState) -> ScanJob:
        job = self._write(
            job,
            status=ScanJobStatus.POLLING,
            progress=max(job.progress, PROGRESS_PROCESSING),
            message="Scan completed, processing results...",
        )
        try:
            reconciled = self.reconciler.reconcile(state, fallback_url=job.url)
        except MalformedResult as e:
            return self.fail(job, e.kind, e.message)

        return self._write(
            job,
            "scan_completed",
            status=ScanJobStatus.COMPLETED,
            progress=PROGRESS_COMPLETE,
            message="Scan completed successfully",
            result=reconciled.summary,
            issues=reconciled.issues,
            completed_at=_utc_now(),
        )

    def _apply_state(self, job: ScanJob, state: RemoteJobState) -> ScanJob:
        """Apply one successful status fetch to a non-terminal job."""
        status = state.status

        if status in (RemoteJobStatus.QUEUED, RemoteJobStatus.RUNNING, RemoteJobStatus.UNKNOWN):
            if status == RemoteJobStatus.UNKNOWN:
                logger.warning(f"Job {job.job_id} reported unrecognized status '{state.raw_status}'")
            update = translate_progress(state, job.progress)
            if (
                job.status == ScanJobStatus.POLLING
                and update.progress == job.progress
                and update.message == job.message
            ):
                return job
            return self._write(
                job,
                "scan_progress_updated",
                status=ScanJobStatus.POLLING,
                progress=update.progress,
                message=update.message,
            )

        if status == RemoteJobStatus.COMPLETED:
            return self._complete(job, state)

        if status in _REMOTE_FAILURE_KINDS:
            return self.fail(job, _REMOTE_FAILURE_KINDS[status], state.failure_text)

        raise AssertionError(f"Unhandled remote status: {status!r}")

    async def _fetch(
        self, job: ScanJob, interval: float, deadline: float | None = None
    ) -> PollAttempt:
        issued_at = self._clock()
        timeout = self.client.status_timeout
        if deadline is not None:
            # A single fetch may not outlive the polling budget
            timeout = min(timeout, max(deadline - issued_at, 0.0))
        try:
            state = await self.client.fetch_status(job.job_id, timeout=timeout)
        except ScanServiceError as e:
            outcome = PollOutcome.TRANSIENT_ERROR if e.retryable else PollOutcome.FATAL_ERROR
            logger.info(f"Error polling job {job.job_id} ({outcome.value}): {e.message}")
            return PollAttempt(issued_at=issued_at, interval=interval, outcome=outcome, error=e)

        logger.debug(f"Job {job.job_id} status: {state.raw_status}, progress: {state.progress}%")
        return PollAttempt(
            issued_at=issued_at, interval=interval, outcome=PollOutcome.SUCCESS, state=state
        )

    async def _best_effort_cancel(self, job: ScanJob) -> None:
        try:
            ack = await self.client.cancel(job.job_id)
            logger.info(f"Canceled job {job.job_id}: {ack.message}")
        except JobNotFound:
            logger.info(f"Job {job.job_id} already finished, nothing to cancel")
        except ScanServiceError as e:
            logger.error(f"Failed to cancel job {job.job_id}: {e.message}")

    def _refresh(self, job: ScanJob) -> ScanJob:
        """Reload the stored record; a user cancel may have finished it meanwhile."""
        return self.store.get(job.scan_id) or job

    def _start(self, job: ScanJob) -> ScanJob:
        if not job.job_id:
            raise ValueError(f"Scan {job.scan_id} has no remote job id to poll")
        if job.status == ScanJobStatus.SUBMITTED:
            return self._write(job, status=ScanJobStatus.POLLING)
        return job

    async def tick(self, job: ScanJob) -> ScanJob:
        """Run a single status check.

        A terminal job is returned as-is without a remote call or a write, so
        repeated ticks never reconcile twice.
        """
        if job.is_terminal:
            return job
        job = self._start(job)

        attempt = await self._fetch(job, 0.0)
        job = self._refresh(job)
        if job.is_terminal:
            return job
        if attempt.outcome == PollOutcome.SUCCESS:
            return self._apply_state(job, attempt.state)
        if attempt.outcome == PollOutcome.FATAL_ERROR:
            return self.fail(job, attempt.error.kind, attempt.error.message)
        return job

    async def poll_until_terminal(
        self,
        job: ScanJob,
        max_wait: float = LONG_POLL_MAX_WAIT,
        poll_interval: float = LONG_POLL_INTERVAL,
    ) -> ScanJob:
        """Poll until the job is terminal or the budget is spent.

        Args:
            job: Job with a remote job id.
            max_wait: Wall-clock budget in seconds.
            poll_interval: First sleep between fetches in seconds.

        Returns:
            The job in a terminal state.
        """
        if job.is_terminal:
            return job
        job = self._start(job)

        schedule = BackoffSchedule(
            poll_interval,
            multiplier=self.backoff_multiplier,
            max_interval=self.max_interval,
        )
        deadline = self._clock() + max_wait
        last_error: ScanServiceError | None = None
        logger.info(f"Polling job {job.job_id} for up to {max_wait:.0f}s")

        while self._clock() < deadline:
            attempt = await self._fetch(job, schedule.current, deadline)
            job = self._refresh(job)
            if job.is_terminal:
                logger.info(f"Scan {job.scan_id} became {job.status.value} while polling, stopping")
                return job

            if attempt.outcome == PollOutcome.SUCCESS:
                last_error = None
                job = self._apply_state(job, attempt.state)
                if job.is_terminal:
                    return job
            elif attempt.outcome == PollOutcome.FATAL_ERROR:
                return self.fail(job, attempt.error.kind, attempt.error.message)
            else:
                last_error = attempt.error
                if deadline - self._clock() <= self.final_grace:
                    logger.warning(
                        f"Job {job.job_id}: transient error with less than "
                        f"{self.final_grace:.0f}s of budget left, giving up"
                    )
                    break

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            await self._sleep(min(schedule.current, remaining))
            schedule.advance()

        job = self._refresh(job)
        if job.is_terminal:
            return job
        await self._best_effort_cancel(job)
        job = self._refresh(job)
        if job.is_terminal:
            logger.info(f"Scan {job.scan_id} became {job.status.value} during the final cancel")
            return job
        if last_error is not None:
            message = f"Failed to get final status for job {job.job_id}: {last_error.message}"
        else:
            message = (
                f"Async scan polling timed out after {max_wait:.0f} seconds. "
                "The job may still be processing."
            )
        exhausted = BudgetExhausted(message)
        return self.fail(job, exhausted.kind, exhausted.message)
