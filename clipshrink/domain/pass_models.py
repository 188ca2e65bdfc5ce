"""
Defines the data models passed between the orchestrator and its passes.

The orchestrator owns a `PipelineState` for the duration of one run and hands it
to each pass read-only. A pass answers with a `PassResult`: the new artifact and
the identities it wants appended to the work queue.
"""
import time
from enum import Enum
from typing import List, Optional, Sequence

from .exceptions import PipelineCancelled
from .media import Artifact


class PassKind(Enum):
    """
    Stable identities of the pass implementations.

    Each concrete pass class declares exactly one of these as its `identity`.
    The value doubles as the name used on the command line and in run logs.
    """

    SHRINK = "shrink"


class EncodeTarget:
    """Bitrates for one encode attempt, derived fresh from the current measurements."""

    def __init__(self, video_bitrate: int, audio_bitrate: int):
        self.video_bitrate = video_bitrate
        self.audio_bitrate = audio_bitrate

    def __repr__(self):
        return f"EncodeTarget(video_bitrate={self.video_bitrate}, audio_bitrate={self.audio_bitrate})"

    def __eq__(self, other):
        if not isinstance(other, EncodeTarget):
            return NotImplemented
        return (self.video_bitrate, self.audio_bitrate) == (other.video_bitrate, other.audio_bitrate)


class PipelineState:
    """
    The current artifact of one pipeline run plus what has happened so far.

    Attributes:
        artifact (Artifact): The artifact the next pass will consume.
        history (List[PassKind]): Identities executed so far, in order. Skipped
                                  passes are not recorded; repeats are.
        deadline (Optional[float]): `time.monotonic()` value after which the run
                                    is cancelled, or None for no deadline.
    """

    def __init__(
        self,
        artifact: Artifact,
        history: Optional[List[PassKind]] = None,
        deadline: Optional[float] = None,
    ):
        self.artifact = artifact
        self.history: List[PassKind] = list(history) if history else []
        self.deadline = deadline

    def runs_of(self, identity: PassKind) -> int:
        """How many times `identity` already appears in the history."""
        return sum(1 for executed in self.history if executed == identity)

    def remaining_time(self) -> Optional[float]:
        """
        Seconds left before the deadline, or None if the run has no deadline.

        Raises:
            PipelineCancelled: If the deadline has already passed.
        """
        if self.deadline is None:
            return None
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise PipelineCancelled("Pipeline deadline expired")
        return remaining

    def advance(self, identity: PassKind, artifact: Artifact) -> "PipelineState":
        """Returns the state after `identity` executed and produced `artifact`."""
        return PipelineState(artifact, self.history + [identity], self.deadline)


class PassResult:
    """What a pass hands back to the orchestrator after it executed."""

    def __init__(self, artifact: Artifact, additional_passes: Sequence[PassKind] = ()):
        self.artifact = artifact
        self.additional_passes: List[PassKind] = list(additional_passes)

    def __repr__(self):
        return f"PassResult(artifact={self.artifact!r}, additional_passes={self.additional_passes})"
