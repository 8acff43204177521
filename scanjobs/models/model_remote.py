"""Wire models for the remote scanner's async job API."""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from scanjobs.consts import (
    DEFAULT_MULTI_PAGE_MAX_PAGES,
    DEFAULT_PAGE_TIMEOUT_MS,
    DEFAULT_SCANNER_BOT_AGENT,
    DEFAULT_VIEWPORT,
    DEFAULT_WAIT_UNTIL,
)
from scanjobs.models.model_job import CustomerTier, ScanType


class Viewport(BaseModel):
    width: int = Field(default=DEFAULT_VIEWPORT[0], gt=0)
    height: int = Field(default=DEFAULT_VIEWPORT[1], gt=0)


class ScanOptions(BaseModel):
    """Browser options forwarded to the scanner with each submission."""

    timeout_ms: int = Field(default=DEFAULT_PAGE_TIMEOUT_MS, gt=0, description="Per-page timeout")
    max_pages: int | None = Field(
        default=None, ge=1, description="Page cap; None picks a default from the scan type"
    )
    user_agent: str = Field(default=DEFAULT_SCANNER_BOT_AGENT)
    viewport: Viewport = Field(default_factory=Viewport)
    wait_until: str = Field(default=DEFAULT_WAIT_UNTIL)
    retry_attempts: int = Field(default=1, ge=0)

    def to_request(self, scan_type: ScanType) -> dict[str, Any]:
        """Serialize to the service's camelCase option block."""
        if scan_type == ScanType.MULTI_PAGE:
            max_pages = self.max_pages or DEFAULT_MULTI_PAGE_MAX_PAGES
        else:
            max_pages = 1
        return {
            "timeout": self.timeout_ms,
            "maxPages": max_pages,
            "userAgent": self.user_agent,
            "viewport": {"width": self.viewport.width, "height": self.viewport.height},
            "waitUntil": self.wait_until,
            "retryAttempts": self.retry_attempts,
        }


class JobSubmission(BaseModel):
    """Accepted submission returned by POST /scan/submit."""

    job_id: str
    status: str = "queued"
    submitted_at: str | None = None
    estimated_completion_time: str | None = None
    tier: str = CustomerTier.STARTER.value
    message: str = "Job submitted successfully"


class RemoteJobStatus(str, Enum):
    """Remote job states. UNKNOWN covers strings this client does not know yet."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "RemoteJobStatus":
        try:
            return cls((raw or "").lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (
            RemoteJobStatus.COMPLETED,
            RemoteJobStatus.FAILED,
            RemoteJobStatus.CANCELED,
            RemoteJobStatus.TIMEOUT,
        )


def _clamp_progress(value: Any) -> int:
    try:
        progress = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, progress))


def _as_text(value: Any) -> str | None:
    """Flatten a remote message or error field, which may arrive as an object."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("message"), str):
        code = value.get("code")
        return f"{value['message']} ({code})" if code else value["message"]
    return json.dumps(value, default=str)


class RemoteJobState(BaseModel):
    """Snapshot returned by GET /jobs/{id}."""

    job_id: str
    status: RemoteJobStatus
    raw_status: str = Field(description="Status string exactly as the service sent it")
    progress: int = Field(default=0, ge=0, le=100)
    message: str | None = None
    error: str | None = None
    result: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, job_id: str, data: dict[str, Any]) -> "RemoteJobState":
        raw_status = str(data.get("status") or "unknown")
        result = data.get("result")
        return cls(
            job_id=str(data.get("jobId") or job_id),
            status=RemoteJobStatus.parse(raw_status),
            raw_status=raw_status,
            progress=_clamp_progress(data.get("progress")),
            message=_as_text(data.get("message")),
            error=_as_text(data.get("error")),
            result=result if isinstance(result, dict) else None,
        )

    @property
    def failure_text(self) -> str:
        """Remote explanation for a failed, canceled or timed-out job."""
        return self.message or self.error or "Unknown error"


class JobProgress(BaseModel):
    """Detailed progress from GET /jobs/{id}/progress."""

    job_id: str
    progress: int = Field(default=0, ge=0, le=100)
    current_step: str = "Initializing scan..."
    estimated_time: str | None = None
    last_updated: str
    detailed_status: str = "unknown"

    @classmethod
    def from_payload(cls, job_id: str, data: dict[str, Any]) -> "JobProgress":
        return cls(
            job_id=job_id,
            progress=_clamp_progress(data.get("progress")),
            current_step=_as_text(data.get("currentStep")) or "Initializing scan...",
            estimated_time=_as_text(data.get("estimatedTime")),
            last_updated=data.get("lastUpdated") or datetime.now(UTC).isoformat(),
            detailed_status=data.get("detailedStatus") or data.get("status") or "unknown",
        )


class CancelAck(BaseModel):
    """Acknowledgement returned by DELETE /jobs/{id}."""

    job_id: str
    status: str = "canceled"
    message: str = "Job canceled successfully"
