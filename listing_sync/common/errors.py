"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for importer failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised when a batch cannot continue, e.g. no access token."""

    error_code = "STAGE_ERROR"


class RunInProgressError(StageError):
    """Raised when another batch holds the run lock."""

    error_code = "RUN_IN_PROGRESS"


class StoreError(PipelineError):
    """Raised when the content store rejects a write."""

    error_code = "STORE_ERROR"
