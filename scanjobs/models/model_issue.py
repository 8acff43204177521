"""Normalized accessibility issues and reconciled scan summaries."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Severity(str, Enum):
    """Dashboard severity scale."""

    CRITICAL = "critical"
    SERIOUS = "serious"
    MODERATE = "moderate"
    MINOR = "minor"


class NormalizedIssue(BaseModel):
    """One accessibility violation in the dashboard's schema."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="Rule code reported by the engine (e.g. 'image-alt')")
    severity: Severity = Field(description="Normalized severity")
    message: str = Field(default="", description="Human-readable description")
    selector: str = Field(default="unknown", description="CSS selector of the offending node")
    context: str = Field(default="", description="Surrounding markup snippet")
    cross_validated: bool = Field(
        default=False, description="Flagged by more than one detection engine"
    )
    detected_by: list[str] = Field(
        default_factory=lambda: ["axe"], description="Engines that reported this issue"
    )
    remediation: str = Field(default="", description="Short remediation tip")

    @computed_field
    @property
    def confidence(self) -> str:
        """High when several engines agree, medium otherwise."""
        return "high" if self.cross_validated else "medium"


class ScanResultSummary(BaseModel):
    """Summary statistics computed from a completed remote scan."""

    page_url: str
    page_title: str = ""
    total_issues: int = Field(ge=0)
    critical_issues: int = Field(ge=0)
    accessibility_score: int = Field(ge=0, le=100)
    wcag_level: str = Field(description="Conformance verdict shown on the dashboard")
    common_issues: list[str] = Field(
        default_factory=list, description="Most frequent rule codes, most common first"
    )
    engines_used: list[str] = Field(default_factory=lambda: ["axe"])
    cross_validated_issues: int = Field(default=0, ge=0)
    duration_seconds: int = Field(default=0, ge=0, description="Remote scan duration")
    load_time_ms: float = Field(default=0.0, ge=0.0)


class ReconciledScan(BaseModel):
    """Reconciler output: the summary plus every normalized issue."""

    summary: ScanResultSummary
    issues: list[NormalizedIssue] = Field(default_factory=list)
