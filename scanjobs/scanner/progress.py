"""Maps remote job progress onto the dashboard's progress scale."""

import math

from scanjobs.consts import (
    PROGRESS_REMOTE_CAP,
    PROGRESS_REMOTE_FLOOR,
    PROGRESS_REMOTE_SPAN,
)
from scanjobs.models.model_poll import ProgressUpdate
from scanjobs.models.model_remote import RemoteJobState, RemoteJobStatus


def map_remote_progress(remote_progress: int) -> int:
    """Map remote 0-100 progress onto the local 20-83 band.

    Remote progress is capped at 90 before scaling so the top of the local
    scale stays free for reconciliation.
    """
    clamped = max(0, min(100, remote_progress))
    capped = min(clamped, PROGRESS_REMOTE_CAP)
    return math.floor(PROGRESS_REMOTE_FLOOR + capped * PROGRESS_REMOTE_SPAN)


def progress_message(status: RemoteJobStatus, remote_progress: int, raw_status: str = "") -> str:
    """Pick the user-facing message for a remote status and progress."""
    if status == RemoteJobStatus.QUEUED:
        return "Job queued, waiting for available worker..."
    if status == RemoteJobStatus.RUNNING:
        if not remote_progress:
            return "Starting accessibility analysis..."
        if remote_progress < 30:
            return "Loading and analyzing page structure..."
        if remote_progress < 60:
            return "Running WCAG compliance checks..."
        if remote_progress < 90:
            return "Processing accessibility violations..."
        return "Finalizing scan results..."
    return f"Job status: {raw_status or status.value}"


def translate_progress(state: RemoteJobState, previous: int) -> ProgressUpdate:
    """Translate a remote tick, never going below previously reported progress."""
    computed = map_remote_progress(state.progress)
    return ProgressUpdate(
        progress=max(previous, computed),
        message=progress_message(state.status, state.progress, state.raw_status),
    )
