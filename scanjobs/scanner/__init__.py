"""Scanner module for submitting, polling and reconciling remote scan jobs."""

from scanjobs.scanner.backoff import BackoffSchedule
from scanjobs.scanner.client import ScannerClient
from scanjobs.scanner.orchestrator import ScanOrchestrator
from scanjobs.scanner.poller import JobPoller
from scanjobs.scanner.reconciler import ResultReconciler

__all__ = [
    "BackoffSchedule",
    "JobPoller",
    "ResultReconciler",
    "ScanOrchestrator",
    "ScannerClient",
]
