"""
Defines custom exception types for clipshrink.

These exceptions allow for specific and expressive error handling throughout the
post-processing pipeline. Every one of them is fatal to the pipeline run that
raised it: the orchestrator never retries transparently, it propagates the error
to the caller, who is expected to map each kind to its own user-facing message.

All custom exceptions inherit from the base `ClipShrinkException`.
"""
from pathlib import Path
from typing import Optional


class ClipShrinkException(Exception):
    """Base class for all custom exceptions in clipshrink."""

    pass


# --- Media Inspection ---
class ProbeError(ClipShrinkException):
    """
    Raised when ffprobe fails or its output cannot be used.

    This covers a non-zero exit, output that is not valid JSON, a missing or
    unparseable duration, and media without a video stream, including audio-only
    files.
    """

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path

    def __reduce__(self):
        return (self.__class__, (self.args[0], self.path))


# --- Bitrate Derivation ---
class BitrateComputationError(ClipShrinkException):
    """
    Raised when no sensible video bitrate can be derived.

    Either the duration is zero, or the audio track alone already consumes the
    byte budget and the resulting video bitrate would be non-positive or
    implausibly small.
    """

    pass


# --- Encoding ---
class EncodeError(ClipShrinkException):
    """Raised when either invocation of the two-pass FFmpeg encode fails."""

    def __init__(self, message: str, stage: str = "", returncode: Optional[int] = None):
        super().__init__(message)
        self.stage = stage
        self.returncode = returncode

    def __reduce__(self):
        return (self.__class__, (self.args[0], self.stage, self.returncode))


# --- Pipeline Control ---
class RetryBudgetExhausted(ClipShrinkException):
    """
    Raised when a pass identity has already run the maximum number of times.

    This is the termination guarantee for passes that re-queue themselves.
    """

    def __init__(self, identity, attempts: int):
        super().__init__(
            f"Pass '{identity.value}' already ran {attempts} time(s); giving up."
        )
        self.identity = identity
        self.attempts = attempts

    def __reduce__(self):
        return (self.__class__, (self.identity, self.attempts))


class UnknownPassIdentity(ClipShrinkException):
    """
    Raised when the work queue names a pass that was never registered.

    This is a programming error in the caller, not a runtime condition of the media.
    """

    def __init__(self, identity):
        super().__init__(f"No pass registered for identity '{identity}'.")
        self.identity = identity

    def __reduce__(self):
        return (self.__class__, (self.identity,))


class DuplicatePassIdentity(ClipShrinkException):
    """Raised when two pass implementations are registered under one identity."""

    pass


class PipelineCancelled(ClipShrinkException):
    """
    Raised when the deadline of a pipeline run expires.

    Any external process still running at that point has been terminated, and
    no partial artifact is returned.
    """

    pass
