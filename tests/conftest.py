"""Pytest configuration and fixtures."""

from typing import Any

import httpx
import pytest

from scanjobs.models.model_job import ScanJob, ScanJobStatus
from scanjobs.scanner.client import ScannerClient
from scanjobs.storage.memory_store import MemoryJobStore

BASE_URL = "https://scanner.test"
JOB_ID = "job-123"


class FakeClock:
    """Monotonic clock advanced only by sleep() and explicit ticks."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeScanner:
    """Scripted scanner service served through httpx.MockTransport.

    Status responses are consumed in order; the last one repeats. Each entry
    is a JSON payload (200), an int status code, or an httpx exception class
    raised for that request.
    """

    def __init__(
        self,
        statuses: list[Any] | None = None,
        submit_payload: dict[str, Any] | None = None,
        submit_status: int = 201,
        health_status: int = 200,
        cancel_status: int = 200,
    ):
        self.statuses = list(statuses or [{"jobId": JOB_ID, "status": "queued", "progress": 0}])
        self.submit_payload = (
            submit_payload
            if submit_payload is not None
            else {
                "jobId": JOB_ID,
                "status": "queued",
                "submittedAt": "2026-01-01T00:00:00Z",
                "estimatedCompletionTime": "2026-01-01T00:01:00Z",
                "tier": "starter",
                "message": "Job submitted successfully",
            }
        )
        self.submit_status = submit_status
        self.health_status = health_status
        self.cancel_status = cancel_status
        self.requests: list[httpx.Request] = []
        self.submit_calls = 0
        self.status_calls = 0
        self.cancel_calls = 0

    def _next_status(self) -> Any:
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/health":
            return httpx.Response(self.health_status, json={"status": "healthy"})

        if path.endswith("/scan/submit"):
            self.submit_calls += 1
            return httpx.Response(self.submit_status, json=self.submit_payload)

        if request.method == "DELETE":
            self.cancel_calls += 1
            if self.cancel_status == 404:
                return httpx.Response(404, json={"error": "Job not found"})
            return httpx.Response(
                self.cancel_status,
                json={"jobId": path.rsplit("/", 1)[-1], "status": "canceled"},
            )

        if path.endswith("/progress"):
            return httpx.Response(
                200,
                json={"progress": 40, "currentStep": "Running axe", "detailedStatus": "running"},
            )

        if request.method == "GET" and "/jobs/" in path:
            self.status_calls += 1
            item = self._next_status()
            if isinstance(item, type) and issubclass(item, httpx.HTTPError):
                raise item("scripted failure", request=request)
            if isinstance(item, int):
                return httpx.Response(item, json={"error": f"HTTP {item}"})
            return httpx.Response(200, json=item)

        return httpx.Response(404)

    def client(self) -> ScannerClient:
        return ScannerClient(
            base_url=BASE_URL, api_key="test-key", transport=httpx.MockTransport(self.handler)
        )


def running(progress: int) -> dict[str, Any]:
    return {"jobId": JOB_ID, "status": "running", "progress": progress}


def completed(result: dict[str, Any] | None) -> dict[str, Any]:
    payload: dict[str, Any] = {"jobId": JOB_ID, "status": "completed", "progress": 100}
    if result is not None:
        payload["result"] = result
    return payload


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryJobStore:
    return MemoryJobStore()


@pytest.fixture
def tracked_job(store: MemoryJobStore) -> ScanJob:
    """A job accepted by the scanner and stored locally."""
    job = ScanJob(
        job_id=JOB_ID,
        url="https://example.com",
        status=ScanJobStatus.SUBMITTED,
        progress=20,
        message=f"Job queued ({JOB_ID}), waiting for processing...",
    )
    return store.insert(job)


@pytest.fixture
def sample_result() -> dict[str, Any]:
    """Completed scan payload with one critical and two other violations."""
    return {
        "url": "https://example.com/",
        "violationCount": 3,
        "violations": [
            {
                "code": "color-contrast",
                "impact": "critical",
                "message": "Elements must have sufficient color contrast",
                "selector": "p.note",
                "context": "<p class=\"note\">...</p>",
                "crossValidated": True,
                "detectedBy": ["axe", "pa11y"],
            },
            {
                "code": "image-alt",
                "type": "error",
                "message": "Images must have alternate text",
                "selector": "img.logo",
            },
            {
                "code": "color-contrast",
                "impact": "minor",
                "message": "Low contrast on footer link",
            },
        ],
        "enginesUsed": ["axe", "pa11y"],
        "scanDuration": 12400,
        "metadata": {"loadTime": 850},
    }
