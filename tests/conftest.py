"""Shared test fixtures for clipshrink."""

from pathlib import Path
from typing import List, Optional

import pytest

from clipshrink.domain.media import Artifact, ProbeResult, StreamInfo


def make_media_file(directory: Path, name: str, size: int) -> Path:
    """Creates a sparse file of exactly `size` bytes."""
    path = directory / name
    with path.open("wb") as f:
        f.truncate(size)
    return path


class FakeProbe:
    """Stands in for MediaProbe; returns a fixed result and records what it was asked."""

    def __init__(self, result: Optional[ProbeResult] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[Artifact] = []

    def probe(self, artifact, timeout=None):
        self.calls.append(artifact)
        if self.error is not None:
            raise self.error
        return self.result


class FakeEncoder:
    """Stands in for TwoPassEncoder; each encode writes a file of the next configured size."""

    def __init__(self, output_dir: Path, sizes: List[int]):
        self.output_dir = output_dir
        self.sizes = list(sizes)
        self.calls = []

    def encode(self, artifact, video_bitrate, audio_bitrate, timeout=None):
        self.calls.append((artifact, video_bitrate, audio_bitrate))
        size = self.sizes[min(len(self.calls), len(self.sizes)) - 1]
        path = make_media_file(self.output_dir, f"encoded_{len(self.calls)}.mp4", size)
        return Artifact(path)


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "media"
    directory.mkdir()
    return directory


@pytest.fixture
def make_artifact(media_dir: Path):
    """Factory creating an Artifact backed by a sparse file in `media_dir`."""

    def _make(name: str = "clip.mp4", size: int = 20_000_000) -> Artifact:
        return Artifact(make_media_file(media_dir, name, size))

    return _make


@pytest.fixture
def sixty_second_probe() -> ProbeResult:
    """A 60 s clip with one video stream and a 160 kbit/s audio stream."""
    return ProbeResult(
        60,
        [
            StreamInfo("video", 2_500_000, "h264"),
            StreamInfo("audio", 160_000, "aac"),
        ],
    )
