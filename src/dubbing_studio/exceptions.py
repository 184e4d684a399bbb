"""Exception types for Dubbing Studio."""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "DubbingError",
    "InvalidTransitionError",
    "NoAudioGenerated",
    "NoUsableOutput",
    "PipelineBusyError",
    "PipelineTimeout",
    "PollingTimeout",
    "ProviderError",
    "StorageError",
    "ValidationError",
]


class DubbingError(RuntimeError):
    """Base class for every error raised by the dubbing pipeline."""


class ConfigurationError(DubbingError):
    """Raised when credentials, endpoints, or config sections are missing."""


class ValidationError(DubbingError):
    """Raised when a request is missing required input or targets a bad project."""


class PipelineBusyError(ValidationError):
    """Raised when a project already has an active pipeline run."""


class InvalidTransitionError(ValidationError):
    """Raised when a status write does not follow the lifecycle graph."""


class ProviderError(DubbingError):
    """Raised when an external capability rejects a request or reports an error."""


class PollingTimeout(DubbingError):
    """Raised when an external job does not finish within the polling bound."""


class PipelineTimeout(DubbingError):
    """Raised when a run exceeds its configured wall-clock budget."""


class NoUsableOutput(DubbingError):
    """Raised when every sub-operation of a stage failed or had nothing to work on."""


class NoAudioGenerated(NoUsableOutput):
    """Raised when synthesis produced zero audio clips."""


class StorageError(DubbingError):
    """Raised when the deliverable store cannot persist an artifact."""
