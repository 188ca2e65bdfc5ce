import re
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .exceptions import ProbeError

STREAM_KIND_AUDIO = "audio"
STREAM_KIND_VIDEO = "video"
STREAM_KIND_OTHER = "other"


def parse_duration(duration_str) -> Optional[float]:
    """
    Parses a duration string into total seconds.

    This function is designed to handle two common duration formats provided by ffprobe:
    1. A simple string representing a floating-point number of seconds (e.g., "3600.5").
    2. A timecode string in the format 'HH:MM:SS.sss' (e.g., "01:00:00.500").
       Hours are optional in the timecode format.

    Args:
        duration_str: The string containing the duration to parse.

    Returns:
        The total duration in seconds as a float, or None if parsing fails.
    """
    if duration_str is None:
        return None
    try:
        seconds = float(duration_str)
    except (TypeError, ValueError):
        pattern = r"(?:(\d{1,2}):)?(\d{1,2}):(\d{1,2}(?:\.\d+)?)"
        match = re.fullmatch(pattern, str(duration_str).strip())
        if not match:
            logger.warning(f"Could not parse duration string: {duration_str}")
            return None
        hours_str, minutes_str, seconds_str = match.groups()
        hours = int(hours_str) if hours_str else 0
        return float(hours * 3600 + int(minutes_str) * 60 + float(seconds_str))
    if seconds != seconds or seconds < 0:  # NaN or negative
        logger.warning(f"Rejecting invalid duration value: {duration_str}")
        return None
    return seconds


def parse_bitrate(bit_rate_str) -> Optional[int]:
    """Parses ffprobe's string-encoded ``bit_rate``; None when absent or not an integer."""
    if bit_rate_str is None:
        return None
    try:
        value = int(str(bit_rate_str).strip())
    except ValueError:
        logger.debug(f"Ignoring non-integer bit_rate value: {bit_rate_str!r}")
        return None
    return value if value >= 0 else None


class Artifact:
    """
    A handle to one media file flowing through the pipeline.

    An artifact is never modified in place. Every pass that changes the media
    produces a new file and a new `Artifact`, and the previous handle is simply
    superseded. Size and kind are captured when the handle is created.

    Attributes:
        path (Path): Absolute path of the file on disk.
        size (int): The size of the file in bytes.
        kind (str): Lowercase extension without the dot (e.g. 'mp4'), '' if none.
        display_name (str): Human-facing name, usually the name given by the source.
    """

    def __init__(self, path: Path, display_name: Optional[str] = None):
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Artifact file not found: {path}")
        self.path: Path = path.resolve()
        self.size: int = self.path.stat().st_size
        self.kind: str = self.path.suffix.lower().lstrip(".")
        self.display_name: str = display_name or self.path.name

    def __repr__(self):
        return f"Artifact(path={str(self.path)!r}, size={self.size}, kind={self.kind!r})"

    def __eq__(self, other):
        if not isinstance(other, Artifact):
            return NotImplemented
        return self.path == other.path and self.size == other.size

    def __hash__(self):
        return hash((self.path, self.size))


class StreamInfo:
    """One stream entry of a probe result."""

    def __init__(self, kind: str, bitrate: Optional[int] = None, codec_name: str = ""):
        self.kind = kind
        self.bitrate = bitrate
        self.codec_name = codec_name

    def __repr__(self):
        return f"StreamInfo(kind={self.kind!r}, bitrate={self.bitrate}, codec_name={self.codec_name!r})"


class ProbeResult:
    """
    The measurements the shrinking pass needs from ffprobe.

    Built from ffprobe's JSON document with `from_probe_dict`, which is where all
    validation of the external tool's output happens.

    Attributes:
        duration_seconds (int): Container duration, truncated to whole seconds.
        streams (List[StreamInfo]): Every stream, in ffprobe order.
    """

    def __init__(self, duration_seconds: int, streams: List[StreamInfo]):
        self.duration_seconds = duration_seconds
        self.streams = streams

    @property
    def audio_streams(self) -> List[StreamInfo]:
        return [s for s in self.streams if s.kind == STREAM_KIND_AUDIO]

    @property
    def video_streams(self) -> List[StreamInfo]:
        return [s for s in self.streams if s.kind == STREAM_KIND_VIDEO]

    @property
    def audio_bitrate(self) -> Optional[int]:
        """Bitrate of the last audio stream that reports one, mirroring how the streams are scanned."""
        bitrate = None
        for stream in self.audio_streams:
            if stream.bitrate is not None:
                bitrate = stream.bitrate
        return bitrate

    @classmethod
    def from_probe_dict(cls, probe: dict, path: Optional[Path] = None) -> "ProbeResult":
        """
        Validates and converts an ffprobe JSON document.

        Raises:
            ProbeError: If the document is not a mapping, the container duration
                        is missing or unparseable, the stream list is malformed,
                        or there is no video stream. Audio-only media cannot
                        be re-encoded to a video bitrate target.
        """
        if not isinstance(probe, dict):
            raise ProbeError(f"Unexpected ffprobe output type {type(probe).__name__}", path)

        format_section = probe.get("format")
        if not isinstance(format_section, dict) or "duration" not in format_section:
            raise ProbeError("ffprobe output has no container duration", path)
        duration = parse_duration(format_section.get("duration"))
        if duration is None:
            raise ProbeError(
                f"Unparseable container duration {format_section.get('duration')!r}", path
            )

        raw_streams = probe.get("streams")
        if not isinstance(raw_streams, list):
            raise ProbeError("ffprobe output has no stream list", path)

        streams: List[StreamInfo] = []
        for raw in raw_streams:
            if not isinstance(raw, dict):
                raise ProbeError(f"Malformed stream entry: {raw!r}", path)
            codec_type = raw.get("codec_type")
            if codec_type in (STREAM_KIND_AUDIO, STREAM_KIND_VIDEO):
                kind = codec_type
            else:
                kind = STREAM_KIND_OTHER
            streams.append(
                StreamInfo(kind, parse_bitrate(raw.get("bit_rate")), raw.get("codec_name", ""))
            )

        result = cls(int(duration), streams)
        if not result.video_streams:
            kinds = sorted({stream.kind for stream in result.streams}) or ["none"]
            raise ProbeError(f"No video stream found (stream kinds: {', '.join(kinds)})", path)
        return result
