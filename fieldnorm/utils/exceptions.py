"""
Custom exceptions for the field data normalizer.

These provide specific error types that can be caught and handled appropriately
by different parts of the pipeline.
"""


class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""
    pass


class DecodeError(PipelineError):
    """Raised when an input stream cannot be structurally decoded."""
    pass


class MalformedInputError(DecodeError):
    """Raised when an input stream does not match the expected schema or framing."""
    pass


class NoGeometryFoundError(DecodeError):
    """Raised when an archive contains no recognizable geometry file."""
    pass


class TransformUnavailableError(PipelineError):
    """Raised when no coordinate transform can be computed or applied."""
    pass


class OutputError(PipelineError):
    """Raised when the output envelope or one of its writers is misused."""
    pass


class ConfigurationError(PipelineError):
    """Raised when configuration is invalid or missing."""
    pass
