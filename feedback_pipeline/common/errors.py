"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that should halt in strict mode."""

    error_code = "STAGE_ERROR"


class FeedLoadError(PipelineError):
    """Raised when a tier feed is unreachable or unreadable."""

    error_code = "FEED_LOAD_ERROR"


class AppendError(PipelineError):
    """Raised when a spreadsheet append fails."""

    error_code = "APPEND_ERROR"


class RetryableAppendError(AppendError):
    error_code = "APPEND_RETRYABLE"


class RetryInterruptedError(AppendError):
    """Raised when cancellation arrives while waiting to retry an append."""

    error_code = "RETRY_INTERRUPTED"
