"""Application constants."""

USER_AGENT = "feedback-pipeline/1.0 (+page feedback cron job)"
STAGES = (
    "clean",
    "sync",
    "complete",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "event",
    "status",
    "record_id",
    "url",
    "attempt",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)

PARTITION_NAMES = ("main", "health", "cra", "travel", "ircc")
DEFAULT_FEED_TIMEOUT_SECONDS = 60.0
DEFAULT_APPEND_ATTEMPTS = 3
DEFAULT_APPEND_INITIAL_DELAY_MS = 1000
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
SHEETS_API_ROOT = "https://sheets.googleapis.com/v4/spreadsheets"
