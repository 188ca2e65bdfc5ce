"""
Bitrate arithmetic for the size-shrinking pass.

Everything here is pure: no I/O, no state. The pass combines these functions to
turn a maximum size and fresh measurements into an `EncodeTarget`.
"""
from ..config.video import (
    AUDIO_BITRATE_CAP,
    MIN_VIDEO_BITRATE,
    RETRY_SHRINK_STEP,
    TARGET_SIZE_RATIO,
)
from ..domain.exceptions import BitrateComputationError


def target_size_for_attempt(max_size: int, attempt: int) -> int:
    """
    The byte budget for the given 0-based attempt.

    The nominal target shrinks geometrically with each retry so an encoder that
    systematically overshoots still converges:
    ``max_size * 0.9 * (1 - 0.1 * attempt)``, truncated to int after the
    floating-point arithmetic.
    """
    shrunk = max_size * TARGET_SIZE_RATIO
    shrunk = shrunk * (1.0 - RETRY_SHRINK_STEP * attempt)
    return int(shrunk)


def clamp_audio_bitrate(measured_bps, cap: int = AUDIO_BITRATE_CAP) -> int:
    """
    The audio bitrate to encode with.

    A measured value is clamped to `cap`. An audio stream that reports no
    bitrate is encoded at `cap`.
    """
    if measured_bps is None:
        return cap
    return min(int(measured_bps), cap)


def compute_video_bitrate(target_size_bytes: int, duration_seconds: int, audio_bitrate_bps: int) -> int:
    """
    Video bitrate (bps) that lets `duration_seconds` of media fit `target_size_bytes`.

    ``(target_size_bytes * 8) // duration_seconds - audio_bitrate_bps``

    Raises:
        BitrateComputationError: If the duration is not positive, or the audio
                                 alone leaves less than MIN_VIDEO_BITRATE for video.
    """
    if duration_seconds <= 0:
        raise BitrateComputationError(
            f"Cannot derive a bitrate for a duration of {duration_seconds}s"
        )
    total_bps = (target_size_bytes * 8) // duration_seconds
    video_bps = total_bps - audio_bitrate_bps
    if video_bps < MIN_VIDEO_BITRATE:
        raise BitrateComputationError(
            f"Byte budget {target_size_bytes} over {duration_seconds}s leaves {video_bps} bps "
            f"for video after {audio_bitrate_bps} bps of audio"
        )
    return video_bps
