"""Tests for ResultReconciler and its helpers."""

import logging
from typing import Any

import pytest

from scanjobs.errors import MalformedResult
from scanjobs.models.model_issue import Severity
from scanjobs.models.model_remote import RemoteJobState
from scanjobs.scanner.reconciler import (
    ResultReconciler,
    accessibility_score,
    common_issue_codes,
    map_severity,
    remediation_tip,
)


def _completed_state(result: Any) -> RemoteJobState:
    return RemoteJobState.from_payload("job-1", {"status": "completed", "result": result})


class TestMapSeverity:
    """Tests for severity normalization."""

    @pytest.mark.parametrize(
        "impact,severity",
        [
            ("critical", Severity.CRITICAL),
            ("serious", Severity.SERIOUS),
            ("error", Severity.SERIOUS),
            ("moderate", Severity.MODERATE),
            ("warning", Severity.MODERATE),
            ("minor", Severity.MINOR),
            ("notice", Severity.MINOR),
            ("CRITICAL", Severity.CRITICAL),
        ],
    )
    def test_known_values(self, impact: str, severity: Severity) -> None:
        assert map_severity(impact) == severity

    def test_unknown_defaults_to_moderate_with_warning(self, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            assert map_severity("catastrophic") == Severity.MODERATE
        assert "catastrophic" in caplog.text

    def test_missing_defaults_to_moderate(self) -> None:
        assert map_severity(None) == Severity.MODERATE


class TestAccessibilityScore:
    """Tests for the linear penalty score."""

    def test_clean_page(self) -> None:
        assert accessibility_score(0, 0) == 100

    def test_one_critical_two_other(self) -> None:
        assert accessibility_score(3, 1) == 86

    def test_floors_at_zero(self) -> None:
        assert accessibility_score(200, 20) == 0


class TestHelpers:
    """Tests for remediation tips and common codes."""

    def test_remediation_tip(self) -> None:
        assert "alt text" in remediation_tip("image-alt")
        assert remediation_tip("made-up-rule") == "Review accessibility guidelines for this issue."

    def test_common_issue_codes(self, sample_result: dict) -> None:
        reconciled = ResultReconciler().reconcile(_completed_state(sample_result))
        assert common_issue_codes(reconciled.issues) == ["color-contrast", "image-alt"]
        assert common_issue_codes(reconciled.issues, limit=1) == ["color-contrast"]


class TestResultReconciler:
    """Tests for ResultReconciler.reconcile."""

    def test_reconcile_sample(self, sample_result: dict) -> None:
        reconciled = ResultReconciler().reconcile(_completed_state(sample_result))
        summary = reconciled.summary

        assert summary.page_url == "https://example.com/"
        assert summary.page_title == "example.com"
        assert summary.total_issues == 3
        assert summary.critical_issues == 1
        assert summary.accessibility_score == 86
        assert summary.wcag_level == "Does not meet Level A"
        assert summary.engines_used == ["axe", "pa11y"]
        assert summary.cross_validated_issues == 1
        assert summary.duration_seconds == 12
        assert summary.load_time_ms == 850.0

        first, second, third = reconciled.issues
        assert first.severity == Severity.CRITICAL
        assert first.cross_validated is True
        assert first.detected_by == ["axe", "pa11y"]
        assert first.confidence == "high"
        assert second.severity == Severity.SERIOUS
        assert second.cross_validated is False
        assert second.detected_by == ["axe"]
        assert third.selector == "unknown"
        assert third.severity == Severity.MINOR

    def test_zero_violations(self) -> None:
        reconciled = ResultReconciler().reconcile(
            _completed_state({"url": "https://example.com", "violationCount": 0})
        )
        assert reconciled.issues == []
        assert reconciled.summary.accessibility_score == 100
        assert reconciled.summary.wcag_level == "Meets Level AA"

    def test_url_falls_back_to_tracked_url(self) -> None:
        reconciled = ResultReconciler().reconcile(
            _completed_state({"violationCount": 0}), fallback_url="https://tracked.example.org/page"
        )
        assert reconciled.summary.page_url == "https://tracked.example.org/page"
        assert reconciled.summary.page_title == "tracked.example.org"

    def test_truncated_violation_list_uses_reported_count(self) -> None:
        reconciled = ResultReconciler().reconcile(
            _completed_state(
                {
                    "url": "https://example.com",
                    "violationCount": 10,
                    "violations": [{"code": "link-name", "impact": "serious"}],
                }
            )
        )
        assert reconciled.summary.total_issues == 10
        assert reconciled.summary.accessibility_score == 80

    def test_cross_validated_requires_literal_true(self) -> None:
        reconciled = ResultReconciler().reconcile(
            _completed_state(
                {
                    "url": "https://example.com",
                    "violationCount": 1,
                    "violations": [{"code": "link-name", "impact": "serious", "crossValidated": "yes"}],
                }
            )
        )
        assert reconciled.issues[0].cross_validated is False

    @pytest.mark.parametrize(
        "result",
        [
            None,
            {"url": "https://example.com"},
            {"url": "https://example.com", "violationCount": "3"},
            {"url": "https://example.com", "violationCount": True},
            {"url": "https://example.com", "violationCount": -1},
            {"url": "https://example.com", "violationCount": 1, "violations": "oops"},
        ],
    )
    def test_malformed_results(self, result: Any) -> None:
        with pytest.raises(MalformedResult):
            ResultReconciler().reconcile(_completed_state(result))

    def test_missing_url_without_fallback(self) -> None:
        with pytest.raises(MalformedResult, match="no URL"):
            ResultReconciler().reconcile(_completed_state({"violationCount": 0}))
