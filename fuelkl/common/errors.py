"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for fuelkl failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class MissingCredentialError(ConfigError):
    """Raised before any I/O when the price source credential is absent."""

    error_code = "MISSING_CREDENTIAL"


class StageError(PipelineError):
    """Raised for failures of a single unit of work."""

    error_code = "STAGE_ERROR"


class CacheInstallError(PipelineError):
    """Raised when the offline cache manifest cannot be seeded."""

    error_code = "CACHE_INSTALL_ERROR"


class WorkerStateError(PipelineError):
    """Raised for an illegal offline worker lifecycle transition."""

    error_code = "WORKER_STATE_ERROR"
