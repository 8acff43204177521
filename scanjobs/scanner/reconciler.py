"""Converts a completed remote scan into normalized dashboard issues."""

import logging
from collections import Counter
from typing import Any
from urllib.parse import urlparse

from scanjobs.consts import (
    COMMON_ISSUES_LIMIT,
    DEFAULT_REMEDIATION_TIP,
    REMEDIATION_TIPS,
    SCORE_CRITICAL_PENALTY,
    SCORE_OTHER_PENALTY,
)
from scanjobs.errors import MalformedResult
from scanjobs.models.model_issue import (
    NormalizedIssue,
    ReconciledScan,
    ScanResultSummary,
    Severity,
)
from scanjobs.models.model_remote import RemoteJobState

logger = logging.getLogger(__name__)

# Engine impact levels (axe) and message types (pa11y) share one lookup
_SEVERITY_MAP = {
    "critical": Severity.CRITICAL,
    "serious": Severity.SERIOUS,
    "error": Severity.SERIOUS,
    "moderate": Severity.MODERATE,
    "warning": Severity.MODERATE,
    "minor": Severity.MINOR,
    "notice": Severity.MINOR,
}


def map_severity(impact: str | None) -> Severity:
    """Map an engine impact/type onto the dashboard severity scale.

    Unknown values fall back to MODERATE and are logged so contract drift on
    the scanner side stays visible.
    """
    if not impact:
        logger.debug("Violation without impact, defaulting to moderate")
        return Severity.MODERATE
    severity = _SEVERITY_MAP.get(impact.lower())
    if severity is None:
        logger.warning(f"Unknown violation impact '{impact}', defaulting to moderate")
        return Severity.MODERATE
    return severity


def accessibility_score(total_issues: int, critical_issues: int) -> int:
    """Linear penalty score: -10 per critical issue, -2 per other issue, floor 0."""
    other = total_issues - critical_issues
    score = 100 - critical_issues * SCORE_CRITICAL_PENALTY - other * SCORE_OTHER_PENALTY
    return max(0, min(100, score))


def remediation_tip(code: str) -> str:
    return REMEDIATION_TIPS.get(code, DEFAULT_REMEDIATION_TIP)


def extract_hostname(url: str) -> str:
    return urlparse(url).hostname or url


def common_issue_codes(issues: list[NormalizedIssue], limit: int = COMMON_ISSUES_LIMIT) -> list[str]:
    """Most frequent rule codes, ties kept in first-seen order."""
    counts = Counter(issue.code for issue in issues)
    return [code for code, _ in counts.most_common(limit)]


def _normalize_violation(violation: dict[str, Any]) -> NormalizedIssue:
    code = violation.get("code") or "unknown"
    detected_by = violation.get("detectedBy")
    return NormalizedIssue(
        code=code,
        severity=map_severity(violation.get("impact") or violation.get("type")),
        message=violation.get("message") or "",
        selector=violation.get("selector") or "unknown",
        context=violation.get("context") or "",
        cross_validated=violation.get("crossValidated") is True,
        detected_by=list(detected_by) if isinstance(detected_by, list) and detected_by else ["axe"],
        remediation=remediation_tip(code),
    )


class ResultReconciler:
    """Builds NormalizedIssue records and summary statistics from a terminal payload."""

    def reconcile(self, state: RemoteJobState, fallback_url: str | None = None) -> ReconciledScan:
        """Normalize a completed job's result.

        Args:
            state: Remote state with status COMPLETED.
            fallback_url: Tracked target URL, used when the result omits its own.

        Returns:
            ReconciledScan with summary and issues.

        Raises:
            MalformedResult: If the result, its violation count or its URL is missing.
        """
        result = state.result
        if result is None:
            raise MalformedResult(f"Job {state.job_id} completed but no scan result available")

        violation_count = result.get("violationCount")
        if isinstance(violation_count, bool) or not isinstance(violation_count, int):
            raise MalformedResult(
                f"Job {state.job_id} result has no valid violationCount: {violation_count!r}"
            )
        if violation_count < 0:
            raise MalformedResult(f"Job {state.job_id} result has negative violationCount")

        page_url = result.get("url") or fallback_url
        if not page_url:
            raise MalformedResult(f"Job {state.job_id} result has no URL")

        raw_violations = result.get("violations") or []
        if not isinstance(raw_violations, list):
            raise MalformedResult(f"Job {state.job_id} violations is not a list")

        issues = [_normalize_violation(v) for v in raw_violations if isinstance(v, dict)]
        if len(issues) != len(raw_violations):
            logger.warning(
                f"Job {state.job_id}: skipped {len(raw_violations) - len(issues)} non-object violations"
            )

        critical = sum(1 for issue in issues if issue.severity == Severity.CRITICAL)
        # The listed violations may be truncated, but never exceed the total
        total = max(violation_count, len(issues))
        score = accessibility_score(total, critical)

        engines_used = result.get("enginesUsed") or ["axe"]
        metadata = result.get("metadata") or {}
        scan_duration_ms = result.get("scanDuration") or 0

        summary = ScanResultSummary(
            page_url=page_url,
            page_title=extract_hostname(page_url),
            total_issues=total,
            critical_issues=critical,
            accessibility_score=score,
            wcag_level="Meets Level AA" if total == 0 else "Does not meet Level A",
            common_issues=common_issue_codes(issues),
            engines_used=list(engines_used),
            cross_validated_issues=sum(1 for issue in issues if issue.cross_validated),
            duration_seconds=round(scan_duration_ms / 1000),
            load_time_ms=float(metadata.get("loadTime") or 0),
        )
        logger.info(
            f"Reconciled job {state.job_id}: {total} issues ({critical} critical), score {score}"
        )
        return ReconciledScan(summary=summary, issues=issues)
