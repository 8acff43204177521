from pathlib import Path

DEFAULT_DATA_DIR = (Path.cwd() / "data").absolute().resolve()

# Remote scanner service
SCANNER_DEFAULT_URL = "https://accessibility-service-pa11y.fly.dev"
SCANNER_API_PREFIX = "/api/v2/async"
SCANNER_USER_AGENT = "AccessAudit-ScanJobs/1.0"

# Per-call deadlines (seconds)
SUBMIT_TIMEOUT = 30.0
STATUS_TIMEOUT = 15.0
CANCEL_TIMEOUT = 10.0
HEALTH_TIMEOUT = 10.0

# Default scan options sent with every submission
DEFAULT_PAGE_TIMEOUT_MS = 90_000  # 90 seconds per page
DEFAULT_MULTI_PAGE_MAX_PAGES = 5
DEFAULT_SCANNER_BOT_AGENT = "AccessAudit Pro Scanner Bot 1.0"
DEFAULT_VIEWPORT = (1920, 1080)
DEFAULT_WAIT_UNTIL = "networkidle0"

# Poll loop budgets
LONG_POLL_MAX_WAIT = 180.0  # 3 minutes
LONG_POLL_INTERVAL = 3.0
SHORT_POLL_MAX_WAIT = 120.0  # 2 minutes
SHORT_POLL_INTERVAL = 2.0
POLL_BACKOFF_MULTIPLIER = 1.5
POLL_MAX_INTERVAL = 10.0
POLL_FINAL_GRACE = 5.0  # Transient errors this close to the deadline end the loop
BATCH_CONCURRENCY = 3

# Local progress scale
PROGRESS_QUEUED = 20  # Local progress once the remote job is accepted
PROGRESS_REMOTE_FLOOR = 20
PROGRESS_REMOTE_SPAN = 0.7
PROGRESS_REMOTE_CAP = 90  # Remote progress above this is not mapped further
PROGRESS_PROCESSING = 90  # Reserved band for reconciliation work
PROGRESS_COMPLETE = 100

# Accessibility score penalties
SCORE_CRITICAL_PENALTY = 10
SCORE_OTHER_PENALTY = 2
COMMON_ISSUES_LIMIT = 5

# Remediation tips for well-known rule codes
REMEDIATION_TIPS = {
    "color-contrast": "Ensure text has sufficient color contrast with its background.",
    "image-alt": "Add descriptive alt text to images that convey meaning.",
    "heading-order": "Use heading tags (h1-h6) in logical order without skipping levels.",
    "link-name": "Ensure links have descriptive text that explains where they lead.",
    "form-field-multiple-labels": "Each form field should have exactly one label.",
}
DEFAULT_REMEDIATION_TIP = "Review accessibility guidelines for this issue."
