"""
This module defines the pass contract and the concrete passes.

A pass is one named transformation of the pipeline's current artifact. The
orchestrator asks it whether it `applies`, and if so calls `execute`, which
returns the new artifact together with any pass identities to queue next,
possibly its own. Passes never touch the work queue themselves.
"""
from typing import Optional

from loguru import logger

from ..config.common import MAX_PASS_RETRIES
from ..config.video import REENCODABLE_KINDS
from ..domain.exceptions import RetryBudgetExhausted
from ..domain.pass_models import EncodeTarget, PassKind, PassResult, PipelineState
from ..utils.format_utils import formatted_size
from .bitrate_service import (
    clamp_audio_bitrate,
    compute_video_bitrate,
    target_size_for_attempt,
)
from .encoder_service import TwoPassEncoder
from .probe_service import MediaProbe


class PostProcessPass:
    """
    Base class of every pass.

    Subclasses set `identity` and implement `applies` and `run`. The retry
    budget is enforced here, from the pipeline's history, before `run` is
    called, so it holds even for passes that keep no state of their own.
    """

    identity: PassKind
    max_runs: Optional[int] = MAX_PASS_RETRIES

    def applies(self, state: PipelineState) -> bool:
        raise NotImplementedError("Subclasses must implement applies().")

    def run(self, state: PipelineState, attempt: int) -> PassResult:
        raise NotImplementedError("Subclasses must implement run().")

    def ensure_retry_budget(self, state: PipelineState) -> int:
        """
        Returns how often this pass already ran in this pipeline.

        Raises:
            RetryBudgetExhausted: If that count has reached `max_runs`.
        """
        attempts = state.runs_of(self.identity)
        if self.max_runs is not None and attempts >= self.max_runs:
            raise RetryBudgetExhausted(self.identity, attempts)
        return attempts

    def execute(self, state: PipelineState) -> PassResult:
        attempt = self.ensure_retry_budget(state)
        return self.run(state, attempt)

    def __repr__(self):
        return f"{self.__class__.__name__}(identity={self.identity.value!r})"


class ShrinkPass(PostProcessPass):
    """
    Re-encodes video that is larger than `max_size` until it fits.

    Each run probes the current artifact, derives an `EncodeTarget` for a byte
    budget that shrinks with every retry, and runs a two-pass encode. When the
    result is still too large the pass queues itself again; the retry budget
    bounds how often that can happen.
    """

    identity = PassKind.SHRINK

    def __init__(
        self,
        max_size: int,
        probe: Optional[MediaProbe] = None,
        encoder: Optional[TwoPassEncoder] = None,
    ):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self.probe = probe or MediaProbe()
        self.encoder = encoder or TwoPassEncoder()

    def applies(self, state: PipelineState) -> bool:
        artifact = state.artifact
        if artifact.size <= self.max_size:
            logger.debug(
                f"{artifact.display_name} is {formatted_size(artifact.size)}, "
                f"within {formatted_size(self.max_size)}; nothing to shrink."
            )
            return False
        if artifact.kind not in REENCODABLE_KINDS:
            logger.debug(f"{artifact.display_name} has kind '{artifact.kind}', which is not re-encodable.")
            return False
        return True

    def plan(self, state: PipelineState, attempt: int) -> EncodeTarget:
        """Probes the current artifact and derives this attempt's bitrates."""
        target_size = target_size_for_attempt(self.max_size, attempt)
        logger.debug(f"Attempt {attempt}: target size {target_size} bytes (max {self.max_size})")

        measured = self.probe.probe(state.artifact, timeout=state.remaining_time())
        if measured.audio_streams:
            audio_bitrate = clamp_audio_bitrate(measured.audio_bitrate)
        else:
            audio_bitrate = 0
        video_bitrate = compute_video_bitrate(target_size, measured.duration_seconds, audio_bitrate)
        return EncodeTarget(video_bitrate, audio_bitrate)

    def run(self, state: PipelineState, attempt: int) -> PassResult:
        target = self.plan(state, attempt)
        logger.info(f"Using audio bitrate {target.audio_bitrate}, video bitrate {target.video_bitrate}")

        encoded = self.encoder.encode(
            state.artifact,
            target.video_bitrate,
            target.audio_bitrate,
            timeout=state.remaining_time(),
        )
        if encoded.size > self.max_size:
            logger.warning(
                f"{encoded.display_name} is still {formatted_size(encoded.size)} "
                f"(> {formatted_size(self.max_size)}); queueing another shrink."
            )
            return PassResult(encoded, [self.identity])
        return PassResult(encoded)
