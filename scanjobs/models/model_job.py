import logging
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, field_validator

from scanjobs.errors import ScanErrorKind
from scanjobs.models.common import _utc_now
from scanjobs.models.model_issue import NormalizedIssue, ScanResultSummary

logger = logging.getLogger(__name__)


class ScanType(str, Enum):
    """Scan breadth requested by the caller."""

    SINGLE_PAGE = "single_page"
    MULTI_PAGE = "multi_page"


class CustomerTier(str, Enum):
    """Subscription tier forwarded to the scanner for queue priority."""

    STARTER = "starter"
    ESSENTIAL = "essential"
    PROFESSIONAL = "professional"

    @classmethod
    def parse(cls, value: "str | CustomerTier | None") -> "CustomerTier":
        """Parse a tier, defaulting unknown values to STARTER with a warning."""
        if isinstance(value, CustomerTier):
            return value
        if not value:
            return cls.STARTER
        try:
            return cls(value.lower())
        except ValueError:
            logger.warning(f"Unknown customer tier '{value}', defaulting to starter")
            return cls.STARTER


class ScanJobStatus(str, Enum):
    """Local lifecycle of a tracked scan."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_STATUSES = frozenset(
    {ScanJobStatus.COMPLETED, ScanJobStatus.FAILED, ScanJobStatus.CANCELED}
)


class ScanJob(BaseModel):
    """One in-flight or finished scan as persisted for the dashboard."""

    # Identification
    scan_id: str = Field(default_factory=lambda: uuid4().hex, description="Local record id")
    job_id: str | None = Field(default=None, description="Opaque remote job id")

    # Request
    url: str = Field(description="Target URL")
    scan_type: ScanType = Field(default=ScanType.SINGLE_PAGE)
    tier: CustomerTier = Field(default=CustomerTier.STARTER)

    # Progress
    status: ScanJobStatus = Field(default=ScanJobStatus.SUBMITTED)
    progress: int = Field(default=0, ge=0, le=100)
    message: str = Field(default="")

    # Timestamps
    submitted_at: datetime = Field(default_factory=_utc_now)
    completed_at: datetime | None = Field(default=None)
    estimated_completion_time: str | None = Field(
        default=None, description="Remote estimate, echoed verbatim"
    )

    # Failure
    error_message: str | None = Field(default=None)
    failure_kind: ScanErrorKind | None = Field(default=None)

    # Results
    result: ScanResultSummary | None = Field(default=None)
    issues: list[NormalizedIssue] = Field(default_factory=list)

    @computed_field
    @property
    def is_terminal(self) -> bool:
        """No further transitions happen from a terminal status."""
        return self.status in TERMINAL_STATUSES


class ScanRequest(BaseModel):
    """Parameters for one scan in a batch."""

    url: str
    scan_type: ScanType = ScanType.SINGLE_PAGE
    tier: CustomerTier = CustomerTier.STARTER
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("tier", mode="before")
    @classmethod
    def parse_tier(cls, value: Any) -> CustomerTier:
        return CustomerTier.parse(value)


class ScanEvent(BaseModel):
    """Append-only analytics record for a tracked scan."""

    event_type: str = Field(description="scan_progress_updated, scan_completed, ...")
    scan_id: str
    timestamp: datetime = Field(default_factory=_utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)
