"""Submit, poll and reconcile accessibility scan jobs."""

__version__ = "0.1.0"
