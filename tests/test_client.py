"""Tests for ScannerClient."""

import json

import httpx
import pytest
from conftest import BASE_URL, JOB_ID, FakeScanner, running

from scanjobs.errors import (
    InvalidInput,
    JobNotFound,
    ScanTimeout,
    ServiceUnavailable,
    SubmissionRejected,
)
from scanjobs.models.model_remote import RemoteJobStatus
from scanjobs.scanner.client import ScannerClient, validate_scan_url


class TestValidateScanUrl:
    """Tests for URL validation."""

    @pytest.mark.parametrize("url", ["https://example.com", "http://localhost:8080/page?x=1"])
    def test_valid(self, url: str) -> None:
        assert validate_scan_url(url) == url

    @pytest.mark.parametrize("url", ["", "example.com", "ftp://example.com", "https://"])
    def test_invalid(self, url: str) -> None:
        with pytest.raises(InvalidInput):
            validate_scan_url(url)


class TestClientConfig:
    """Tests for configuration resolution."""

    def test_env_fallback(self, monkeypatch) -> None:
        monkeypatch.setenv("SCANNER_SERVICE_URL", "https://env-scanner.test/")
        monkeypatch.setenv("SCANNER_API_KEY", "env-key")
        client = ScannerClient()
        assert client.base_url == "https://env-scanner.test"
        assert client.api_key == "env-key"

    def test_explicit_params_win(self, monkeypatch) -> None:
        monkeypatch.setenv("SCANNER_SERVICE_URL", "https://env-scanner.test")
        client = ScannerClient(base_url="https://explicit.test", api_key="")
        assert client.base_url == "https://explicit.test"
        assert client.api_key == ""

    def test_default_url(self, monkeypatch) -> None:
        monkeypatch.delenv("SCANNER_SERVICE_URL", raising=False)
        assert ScannerClient().base_url.startswith("https://")


class TestSubmit:
    """Tests for ScannerClient.submit."""

    @pytest.mark.asyncio
    async def test_submit_success(self) -> None:
        scanner = FakeScanner()
        async with scanner.client() as client:
            submission = await client.submit("https://example.com", "multi_page", "professional")

        assert submission.job_id == JOB_ID
        assert submission.estimated_completion_time == "2026-01-01T00:01:00Z"

        health, submit = scanner.requests
        assert health.url.path == "/health"
        assert submit.method == "POST"
        assert submit.url.path == "/api/v2/async/scan/submit"
        assert submit.headers["Authorization"] == "Bearer test-key"
        body = json.loads(submit.content)
        assert body["url"] == "https://example.com"
        assert body["tier"] == "professional"
        assert body["scanType"] == "multi_page"
        assert body["options"]["maxPages"] == 5

    @pytest.mark.asyncio
    async def test_unknown_tier_submitted_as_starter(self) -> None:
        scanner = FakeScanner()
        async with scanner.client() as client:
            await client.submit("https://example.com", tier="platinum")
        assert json.loads(scanner.requests[-1].content)["tier"] == "starter"

    @pytest.mark.asyncio
    async def test_invalid_url_makes_no_request(self) -> None:
        scanner = FakeScanner()
        async with scanner.client() as client:
            with pytest.raises(InvalidInput):
                await client.submit("not-a-url")
        assert scanner.requests == []

    @pytest.mark.asyncio
    async def test_invalid_scan_type(self) -> None:
        scanner = FakeScanner()
        async with scanner.client() as client:
            with pytest.raises(InvalidInput, match="scan type"):
                await client.submit("https://example.com", scan_type="full_site")

    @pytest.mark.asyncio
    async def test_invalid_options(self) -> None:
        scanner = FakeScanner()
        async with scanner.client() as client:
            with pytest.raises(InvalidInput, match="options"):
                await client.submit("https://example.com", options={"timeout_ms": -1})

    @pytest.mark.asyncio
    async def test_unhealthy_service(self) -> None:
        scanner = FakeScanner(health_status=503)
        async with scanner.client() as client:
            with pytest.raises(ServiceUnavailable) as exc_info:
                await client.submit("https://example.com")
        assert exc_info.value.status_code == 503
        assert scanner.submit_calls == 0

    @pytest.mark.asyncio
    async def test_missing_job_id_rejected(self) -> None:
        scanner = FakeScanner(submit_payload={"status": "queued"})
        async with scanner.client() as client:
            with pytest.raises(SubmissionRejected, match="Invalid async response format"):
                await client.submit("https://example.com")

    @pytest.mark.asyncio
    async def test_rejected_status_uses_service_error(self) -> None:
        scanner = FakeScanner(
            submit_status=400, submit_payload={"error": "Invalid URL", "details": "private address"}
        )
        async with scanner.client() as client:
            with pytest.raises(SubmissionRejected) as exc_info:
                await client.submit("https://example.com")
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Invalid URL: private address"
        assert not exc_info.value.retryable


class TestFetchStatus:
    """Tests for status, progress and cancel calls."""

    @pytest.mark.asyncio
    async def test_fetch_status(self) -> None:
        scanner = FakeScanner(statuses=[running(40)])
        async with scanner.client() as client:
            state = await client.fetch_status(JOB_ID)
        assert state.status == RemoteJobStatus.RUNNING
        assert state.progress == 40
        assert scanner.requests[0].url == httpx.URL(f"{BASE_URL}/api/v2/async/jobs/{JOB_ID}")

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        scanner = FakeScanner(statuses=[404])
        async with scanner.client() as client:
            with pytest.raises(JobNotFound) as exc_info:
                await client.fetch_status(JOB_ID)
        assert exc_info.value.job_id == JOB_ID
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self) -> None:
        scanner = FakeScanner(statuses=[502])
        async with scanner.client() as client:
            with pytest.raises(ServiceUnavailable) as exc_info:
                await client.fetch_status(JOB_ID)
        assert exc_info.value.retryable
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        scanner = FakeScanner(statuses=[httpx.ReadTimeout])
        async with scanner.client() as client:
            with pytest.raises(ScanTimeout) as exc_info:
                await client.fetch_status(JOB_ID)
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        scanner = FakeScanner(statuses=[httpx.ConnectError])
        async with scanner.client() as client:
            with pytest.raises(ServiceUnavailable):
                await client.fetch_status(JOB_ID)

    @pytest.mark.asyncio
    async def test_fetch_progress(self) -> None:
        scanner = FakeScanner()
        async with scanner.client() as client:
            progress = await client.fetch_progress(JOB_ID)
        assert progress.progress == 40
        assert progress.current_step == "Running axe"
        assert progress.detailed_status == "running"

    @pytest.mark.asyncio
    async def test_cancel(self) -> None:
        scanner = FakeScanner()
        async with scanner.client() as client:
            ack = await client.cancel(JOB_ID)
        assert ack.job_id == JOB_ID
        assert ack.status == "canceled"
        assert scanner.cancel_calls == 1

    @pytest.mark.asyncio
    async def test_cancel_finished_job(self) -> None:
        scanner = FakeScanner(cancel_status=404)
        async with scanner.client() as client:
            with pytest.raises(JobNotFound):
                await client.cancel(JOB_ID)

    @pytest.mark.asyncio
    async def test_health_check(self) -> None:
        scanner = FakeScanner()
        async with scanner.client() as client:
            assert await client.health_check() == {"status": "healthy"}
