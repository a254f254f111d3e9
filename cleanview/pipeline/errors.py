"""
Failure kinds for a removal attempt.

AuthRequired is the only kind the controller recovers from (by re-prompting
for a key). Every other kind ends the attempt and its message is shown to
the user as-is.
"""


class CleanViewError(Exception):
    """Base class for every failure raised by the pipeline."""


class ExtractionFailed(CleanViewError):
    """The reference frame could not be captured from the source video."""


class AuthRequired(CleanViewError):
    """The service rejected the selected key (missing, invalid, or unbilled)."""

    def __init__(self, message: str = "AUTH_REQUIRED"):
        super().__init__(message)


class GenerationFailed(CleanViewError):
    """Any upstream or network failure other than an authorization rejection."""


class NoResult(GenerationFailed):
    """The job finished but carried no video URI."""

    def __init__(self, message: str = "Video generation failed: No URI returned."):
        super().__init__(message)


class GenerationTimeout(CleanViewError):
    """The job was still running after the configured number of polls."""


class GenerationCancelled(CleanViewError):
    """The attempt was abandoned by a reset or a new upload."""
