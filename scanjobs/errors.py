"""Error taxonomy for scan submission, polling and reconciliation."""

from enum import Enum


class ScanErrorKind(str, Enum):
    """Classification of scan failures, recorded on failed jobs."""

    # Caller mistakes - surfaced immediately
    INVALID_INPUT = "invalid_input"
    SUBMISSION_REJECTED = "submission_rejected"

    # Transient - retried by the poll loop within budget
    SERVICE_UNAVAILABLE = "service_unavailable"
    TIMEOUT = "timeout"

    # Fatal for the job
    NOT_FOUND = "not_found"
    MALFORMED_RESULT = "malformed_result"
    BUDGET_EXHAUSTED = "budget_exhausted"
    REMOTE_FAILED = "remote_failed"
    CANCELED = "canceled"


class ScanServiceError(Exception):
    """Base class for errors raised while talking to the scanner service."""

    kind: ScanErrorKind = ScanErrorKind.SERVICE_UNAVAILABLE
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ScanServiceError):
    kind = ScanErrorKind.INVALID_INPUT


class ServiceUnavailable(ScanServiceError):
    """Health probe, connection or server-side failure."""

    kind = ScanErrorKind.SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SubmissionRejected(ScanServiceError):
    """The scanner refused the submission or answered with an unusable body."""

    kind = ScanErrorKind.SUBMISSION_REJECTED

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ScanTimeout(ScanServiceError):
    kind = ScanErrorKind.TIMEOUT
    retryable = True


class JobNotFound(ScanServiceError):
    """Remote job is unknown or expired."""

    kind = ScanErrorKind.NOT_FOUND

    def __init__(self, message: str, job_id: str):
        super().__init__(message)
        self.job_id = job_id


class MalformedResult(ScanServiceError):
    kind = ScanErrorKind.MALFORMED_RESULT


class BudgetExhausted(ScanServiceError):
    kind = ScanErrorKind.BUDGET_EXHAUSTED


class StorageError(Exception):
    """The job store could not read or write a record."""
