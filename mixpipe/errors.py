"""Exception types raised across the pipeline."""

from __future__ import annotations


class MixpipeError(Exception):
    """Base class for every error raised by mixpipe itself."""


class ConfigurationError(MixpipeError, ValueError):
    """Configuration is malformed or not usable for a batch run."""


class PipelineInvariantError(MixpipeError, RuntimeError):
    """A stage broke its output contract (e.g. summarizer cardinality)."""


class CollaboratorFailure(MixpipeError):
    """Raised by a stage for failures in its own work.

    The pipeline never wraps stage errors in this type; stages raise subclasses
    of it directly and they reach the caller unchanged.
    """


class IngestError(CollaboratorFailure):
    """Input data could not be read or does not match the configured columns."""
