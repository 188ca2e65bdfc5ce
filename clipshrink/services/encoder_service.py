"""
This module defines TwoPassEncoder, the service that re-encodes an artifact at
given bitrates with two sequential FFmpeg invocations.
"""
import os
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..config.common import INTERMEDIATE_PREFIX
from ..config.video import (
    AUDIO_ENCODER,
    ENCODE_PRESET,
    OUTPUT_CONTAINER_SUFFIX,
    VIDEO_ENCODER,
)
from ..domain.exceptions import ClipShrinkException, EncodeError
from ..domain.media import Artifact
from ..utils.executables import Executables
from ..utils.ffmpeg_utils import run_cmd
from ..utils.format_utils import formatted_size

STAGE_ANALYSIS = "pass1"
STAGE_FINAL = "pass2"


class TwoPassEncoder:
    """
    Re-encodes media to a bitrate target using FFmpeg's two-pass mode.

    The first invocation is video-only with its output discarded; it only
    writes the statistics file. The second invocation reads those statistics
    and writes the real output with both video and audio. Two passes let the
    encoder plan bit allocation across the whole file, which lands much closer
    to the requested size than a single fast constant-bitrate pass.

    Each encode writes its statistics into its own temporary directory, so any
    number of encodes may run side by side.
    """

    def __init__(
        self,
        work_dir: Optional[Path] = None,
        ffmpeg_cmd: Optional[str] = None,
        video_codec: str = VIDEO_ENCODER,
        audio_codec: str = AUDIO_ENCODER,
        preset: str = ENCODE_PRESET,
        error_log_dir: Optional[Path] = None,
    ):
        self.work_dir = work_dir
        self.ffmpeg_cmd = ffmpeg_cmd
        self.video_codec = video_codec
        self.audio_codec = audio_codec
        self.preset = preset
        self.error_log_dir = error_log_dir

    def _base_cmd(self, source: Path, video_bitrate: int, pass_number: int, passlog_prefix: Path) -> List[str]:
        return [
            self.ffmpeg_cmd or Executables.ffmpeg(),
            "-y",
            "-nostdin",
            "-i", str(source),
            "-preset", self.preset,
            "-c:v", self.video_codec,
            "-b:v", str(video_bitrate),
            "-pass", str(pass_number),
            "-passlogfile", str(passlog_prefix),
        ]

    def build_analysis_cmd(self, source: Path, video_bitrate: int, passlog_prefix: Path) -> List[str]:
        """Pass 1: video only, output thrown away."""
        cmd_list = self._base_cmd(source, video_bitrate, 1, passlog_prefix)
        cmd_list.extend(["-an", "-f", "null", os.devnull])
        return cmd_list

    def build_final_cmd(
        self, source: Path, video_bitrate: int, audio_bitrate: int, passlog_prefix: Path, output: Path
    ) -> List[str]:
        """Pass 2: video and audio at the target bitrates, written to `output`."""
        cmd_list = self._base_cmd(source, video_bitrate, 2, passlog_prefix)
        if audio_bitrate > 0:
            cmd_list.extend(["-c:a", self.audio_codec, "-b:a", str(audio_bitrate)])
        else:
            cmd_list.append("-an")
        cmd_list.append(str(output))
        return cmd_list

    def _new_output_path(self) -> Path:
        if self.work_dir:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(
            prefix=INTERMEDIATE_PREFIX, suffix=OUTPUT_CONTAINER_SUFFIX, dir=self.work_dir
        )
        os.close(fd)
        return Path(name)

    def _run_stage(self, stage: str, cmd_list: List[str], source: Artifact, deadline: Optional[float]):
        timeout = None
        if deadline is not None:
            # A non-positive timeout makes subprocess.run raise TimeoutExpired immediately.
            timeout = max(deadline - time.monotonic(), 0.001)
        res = run_cmd(
            cmd_list,
            src_file_for_log=source.path,
            error_log_dir_for_run_cmd=self.error_log_dir,
            show_cmd=True,
            timeout=timeout,
        )
        if res is None:
            raise EncodeError(f"FFmpeg {stage} could not be started for {source.display_name}", stage=stage)
        if res.returncode != 0:
            raise EncodeError(
                f"FFmpeg {stage} failed for {source.display_name} (return code {res.returncode})",
                stage=stage,
                returncode=res.returncode,
            )

    def encode(
        self,
        artifact: Artifact,
        video_bitrate: int,
        audio_bitrate: int,
        timeout: Optional[float] = None,
    ) -> Artifact:
        """
        Runs both passes and returns the newly written artifact.

        The input artifact is only read. On any failure the partially written
        output file is removed before the error propagates.

        Args:
            artifact: The artifact to re-encode.
            video_bitrate: Target video bitrate in bits per second.
            audio_bitrate: Target audio bitrate in bits per second; 0 drops audio.
            timeout: Seconds both passes together may take, or None.

        Raises:
            EncodeError: If either invocation cannot start or exits non-zero, or
                         the output file is missing afterwards.
            PipelineCancelled: If `timeout` expired; the running FFmpeg is killed.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        output_path = self._new_output_path()
        logger.info(
            f"Encoding {artifact.display_name} ({formatted_size(artifact.size)}) "
            f"at video={video_bitrate} bps, audio={audio_bitrate} bps"
        )

        try:
            with tempfile.TemporaryDirectory(prefix=INTERMEDIATE_PREFIX, dir=self.work_dir) as passlog_dir:
                passlog_prefix = Path(passlog_dir) / "ffmpeg2pass"
                self._run_stage(
                    STAGE_ANALYSIS,
                    self.build_analysis_cmd(artifact.path, video_bitrate, passlog_prefix),
                    artifact,
                    deadline,
                )
                self._run_stage(
                    STAGE_FINAL,
                    self.build_final_cmd(artifact.path, video_bitrate, audio_bitrate, passlog_prefix, output_path),
                    artifact,
                    deadline,
                )
            if not output_path.is_file() or output_path.stat().st_size == 0:
                raise EncodeError(
                    f"FFmpeg reported success, but the output {output_path.name} is missing or empty.",
                    stage=STAGE_FINAL,
                )
        except ClipShrinkException:
            output_path.unlink(missing_ok=True)
            raise

        encoded = Artifact(output_path, display_name=Path(artifact.display_name).stem + OUTPUT_CONTAINER_SUFFIX)
        logger.info(f"Encoded {encoded.display_name}: {formatted_size(encoded.size)}")
        return encoded
