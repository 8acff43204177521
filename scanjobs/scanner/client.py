"""HTTP client for the remote accessibility scanner's async job API.

Every call is a single timeout-bounded request. Nothing here retries;
retry and backoff belong to the poll loop.
"""

import logging
import os
from typing import Any
from urllib.parse import quote, urlparse

import httpx
from pydantic import ValidationError

from scanjobs.consts import (
    CANCEL_TIMEOUT,
    HEALTH_TIMEOUT,
    SCANNER_API_PREFIX,
    SCANNER_DEFAULT_URL,
    SCANNER_USER_AGENT,
    STATUS_TIMEOUT,
    SUBMIT_TIMEOUT,
)
from scanjobs.errors import (
    InvalidInput,
    JobNotFound,
    ScanTimeout,
    ServiceUnavailable,
    SubmissionRejected,
)
from scanjobs.models.model_job import CustomerTier, ScanType
from scanjobs.models.model_remote import (
    CancelAck,
    JobProgress,
    JobSubmission,
    RemoteJobState,
    ScanOptions,
)

logger = logging.getLogger(__name__)


def validate_scan_url(url: str) -> str:
    """Return the URL if it is an absolute http(s) URL, else raise InvalidInput."""
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidInput(f"Invalid URL format: {url!r}") from e
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidInput(f"Invalid URL format: {url!r}")
    return url


def _error_text(response: httpx.Response, default: str) -> str:
    """Build an error message from a failed response, preferring the service's own text."""
    text = response.text.strip()
    if not text:
        return default
    try:
        data = response.json()
    except ValueError:
        return f"{default}: {text}"
    if isinstance(data, dict) and data.get("error"):
        message = str(data["error"])
        if data.get("details"):
            message += f": {data['details']}"
        return message
    return f"{default}: {text}"


class ScannerClient:
    """Async client for submit, status, progress and cancel calls."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        submit_timeout: float = SUBMIT_TIMEOUT,
        status_timeout: float = STATUS_TIMEOUT,
        cancel_timeout: float = CANCEL_TIMEOUT,
        health_timeout: float = HEALTH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize ScannerClient.

        Args:
            base_url: Scanner service root. None = read from env (SCANNER_SERVICE_URL).
            api_key: Bearer token. None = read from env (SCANNER_API_KEY).
            submit_timeout: Deadline for job submission in seconds.
            status_timeout: Deadline for status and progress fetches in seconds.
            cancel_timeout: Deadline for cancel requests in seconds.
            health_timeout: Deadline for the health probe in seconds.
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        # Resolution: explicit param > env var > default
        resolved_url = base_url or os.getenv("SCANNER_SERVICE_URL", "").strip() or SCANNER_DEFAULT_URL
        self.base_url = resolved_url.rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("SCANNER_API_KEY", "")
        self.submit_timeout = submit_timeout
        self.status_timeout = status_timeout
        self.cancel_timeout = cancel_timeout
        self.health_timeout = health_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ScannerClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {
                "Accept": "application/json",
                "User-Agent": SCANNER_USER_AGENT,
            }
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    def _job_path(self, job_id: str, suffix: str = "") -> str:
        return f"{SCANNER_API_PREFIX}/jobs/{quote(job_id, safe='')}{suffix}"

    async def _send(
        self,
        method: str,
        path: str,
        timeout: float,
        action: str,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request, mapping transport failures onto the error taxonomy."""
        client = await self._get_client()
        try:
            return await client.request(method, path, json=json, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ScanTimeout(f"Timeout while trying to {action} after {timeout:.0f}s") from e
        except httpx.TransportError as e:
            raise ServiceUnavailable(f"Unable to reach scanner service to {action}: {e}") from e

    @staticmethod
    def _json_object(response: httpx.Response, action: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ServiceUnavailable(
                f"Scanner returned invalid JSON while trying to {action}",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise ServiceUnavailable(
                f"Scanner returned unexpected payload while trying to {action}: {data!r}",
                status_code=response.status_code,
            )
        return data

    async def health_check(self) -> dict[str, Any]:
        """Probe GET /health.

        Returns:
            Health payload (or {"status": <text>} for plain-text answers).

        Raises:
            ServiceUnavailable: On non-success status or transport failure.
        """
        try:
            response = await self._send("GET", "/health", self.health_timeout, "check health")
        except ScanTimeout as e:
            raise ServiceUnavailable(f"Scanner service is not accessible: {e}") from e

        logger.debug(f"Scanner health check status: {response.status_code}")
        if not response.is_success:
            raise ServiceUnavailable(
                f"Scanner service is not accessible. Service unhealthy: {response.status_code}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError:
            return {"status": response.text.strip()}
        return data if isinstance(data, dict) else {"status": data}

    async def submit(
        self,
        url: str,
        scan_type: ScanType | str = ScanType.SINGLE_PAGE,
        tier: CustomerTier | str | None = CustomerTier.STARTER,
        options: ScanOptions | dict[str, Any] | None = None,
    ) -> JobSubmission:
        """Submit a scan job.

        Args:
            url: Page to scan.
            scan_type: single_page or multi_page.
            tier: Customer tier; unknown values default to starter.
            options: Browser options (model or dict of ScanOptions fields).

        Returns:
            JobSubmission with the remote job id and echoed metadata.

        Raises:
            InvalidInput: Bad URL, scan type or options.
            ServiceUnavailable: Health probe or connection failure.
            SubmissionRejected: Non-success status or response without jobId.
            ScanTimeout: Submission exceeded its deadline.
        """
        validate_scan_url(url)
        try:
            scan_type = ScanType(scan_type)
        except ValueError as e:
            raise InvalidInput(f"Unsupported scan type: {scan_type!r}") from e
        try:
            scan_options = ScanOptions.model_validate(options or {})
        except ValidationError as e:
            raise InvalidInput(f"Invalid scan options: {e}") from e
        customer_tier = CustomerTier.parse(tier)

        await self.health_check()

        body = {
            "url": url,
            "tier": customer_tier.value,
            "scanType": scan_type.value,
            "options": scan_options.to_request(scan_type),
        }
        logger.info(f"Submitting {scan_type.value} scan for {url} (tier={customer_tier.value})")

        response = await self._send(
            "POST", f"{SCANNER_API_PREFIX}/scan/submit", self.submit_timeout, "submit scan", json=body
        )
        if not response.is_success:
            message = _error_text(
                response, f"Async scan submission failed ({response.status_code})"
            )
            logger.warning(f"Submission rejected for {url}: {message}")
            raise SubmissionRejected(message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise SubmissionRejected(
                f"Invalid async response format: {response.text[:200]}",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict) or not data.get("jobId"):
            raise SubmissionRejected(
                f"Invalid async response format: {data!r}", status_code=response.status_code
            )

        estimate = data.get("estimatedCompletionTime")
        submission = JobSubmission(
            job_id=str(data["jobId"]),
            status=data.get("status") or "queued",
            submitted_at=data.get("submittedAt"),
            estimated_completion_time=str(estimate) if estimate is not None else None,
            tier=data.get("tier") or customer_tier.value,
            message=data.get("message") or "Job submitted successfully",
        )
        logger.info(f"Submitted job {submission.job_id} for {url}")
        return submission

    async def fetch_status(self, job_id: str, timeout: float | None = None) -> RemoteJobState:
        """Fetch the current state of a job.

        Args:
            job_id: Remote job id.
            timeout: Deadline for this call in seconds (default: status_timeout).

        Raises:
            JobNotFound: 404, the job expired or never existed.
            ServiceUnavailable: Other non-success status or transport failure.
            ScanTimeout: Request exceeded its deadline.
        """
        response = await self._send(
            "GET",
            self._job_path(job_id),
            timeout if timeout is not None else self.status_timeout,
            f"get status for job {job_id}",
        )
        if response.status_code == 404:
            raise JobNotFound(
                f"Job {job_id} not found. It may have expired or never existed.", job_id
            )
        if not response.is_success:
            raise ServiceUnavailable(
                _error_text(response, f"Failed to get job status ({response.status_code})"),
                status_code=response.status_code,
            )
        data = self._json_object(response, f"get status for job {job_id}")
        return RemoteJobState.from_payload(job_id, data)

    async def fetch_progress(self, job_id: str) -> JobProgress:
        """Fetch detailed progress for a job. Same error mapping as fetch_status."""
        response = await self._send(
            "GET",
            self._job_path(job_id, "/progress"),
            self.status_timeout,
            f"get progress for job {job_id}",
        )
        if response.status_code == 404:
            raise JobNotFound(f"Job {job_id} not found or progress not available.", job_id)
        if not response.is_success:
            raise ServiceUnavailable(
                _error_text(response, f"Failed to get job progress ({response.status_code})"),
                status_code=response.status_code,
            )
        data = self._json_object(response, f"get progress for job {job_id}")
        return JobProgress.from_payload(job_id, data)

    async def cancel(self, job_id: str) -> CancelAck:
        """Cancel a pending or running job.

        Raises:
            JobNotFound: The job is unknown or already finished.
            ServiceUnavailable: Other non-success status or transport failure.
            ScanTimeout: Request exceeded its deadline.
        """
        response = await self._send(
            "DELETE", self._job_path(job_id), self.cancel_timeout, f"cancel job {job_id}"
        )
        if response.status_code == 404:
            raise JobNotFound(f"Job {job_id} not found or already completed", job_id)
        if not response.is_success:
            raise ServiceUnavailable(
                _error_text(response, f"Failed to cancel job ({response.status_code})"),
                status_code=response.status_code,
            )
        data = self._json_object(response, f"cancel job {job_id}")
        return CancelAck(
            job_id=str(data.get("jobId") or job_id),
            status=data.get("status") or "canceled",
            message=data.get("message") or "Job canceled successfully",
        )
