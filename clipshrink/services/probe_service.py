"""
This module defines MediaProbe, the service that measures an artifact with ffprobe.
"""
import json
from pathlib import Path
from pprint import pformat
from typing import List, Optional

from loguru import logger

from ..domain.exceptions import ProbeError
from ..domain.media import Artifact, ProbeResult
from ..utils.executables import Executables
from ..utils.ffmpeg_utils import run_cmd

# Container summary plus the full stream list, as a single JSON document on stdout.
PROBE_ARGS = ["-v", "error", "-show_format", "-show_streams", "-of", "json"]


class MediaProbe:
    """
    Runs ffprobe against an artifact and returns a validated `ProbeResult`.

    ffprobe is started through `run_cmd` like every other external command, so
    a run's deadline bounds it the same way it bounds an encode. Validation of
    the JSON document lives in `ProbeResult.from_probe_dict`.
    """

    def __init__(self, ffprobe_cmd: Optional[str] = None, error_log_dir: Optional[Path] = None):
        self.ffprobe_cmd = ffprobe_cmd
        self.error_log_dir = error_log_dir

    def build_probe_cmd(self, source: Path) -> List[str]:
        return [self.ffprobe_cmd or Executables.ffprobe(), *PROBE_ARGS, str(source)]

    def probe(self, artifact: Artifact, timeout: Optional[float] = None) -> ProbeResult:
        """
        Measures `artifact`.

        Args:
            artifact: The artifact to inspect.
            timeout: Seconds ffprobe may take, or None to wait indefinitely.

        Raises:
            ProbeError: If ffprobe cannot be started, exits non-zero, prints
                        something that is not JSON, or the JSON lacks the
                        required fields.
            PipelineCancelled: If `timeout` expired; ffprobe is killed.
        """
        res = run_cmd(
            self.build_probe_cmd(artifact.path),
            src_file_for_log=artifact.path,
            error_log_dir_for_run_cmd=self.error_log_dir,
            show_cmd=True,
            timeout=timeout,
        )
        if res is None:
            raise ProbeError(f"ffprobe could not be started for {artifact.display_name}", artifact.path)
        if res.returncode != 0:
            stderr = (res.stderr or "").strip()
            logger.error(f"ffprobe failed for {artifact.path} (return code {res.returncode}): {stderr}")
            raise ProbeError(
                f"ffprobe failed for {artifact.display_name} (return code {res.returncode}): {stderr}",
                artifact.path,
            )

        try:
            probe_data = json.loads(res.stdout)
        except ValueError as e:
            raise ProbeError(f"ffprobe output for {artifact.display_name} is not valid JSON: {e}", artifact.path) from e

        logger.trace(f"Probe data for {artifact.display_name}:\n{pformat(probe_data)}")
        result = ProbeResult.from_probe_dict(probe_data, artifact.path)
        logger.debug(
            f"Probed {artifact.display_name}: duration={result.duration_seconds}s, "
            f"audio={len(result.audio_streams)}, video={len(result.video_streams)}, "
            f"audio_bitrate={result.audio_bitrate}"
        )
        return result
