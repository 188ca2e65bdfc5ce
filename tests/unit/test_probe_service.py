"""Tests for MediaProbe, against stand-in ffprobe executables."""

import json
import os
import stat
import subprocess
import time
from unittest.mock import patch

import pytest

from clipshrink.domain.exceptions import PipelineCancelled, ProbeError
from clipshrink.services.probe_service import MediaProbe

RUN_CMD_TARGET = "clipshrink.services.probe_service.run_cmd"

GOOD_DOC = {
    "format": {"duration": "60.021000", "bit_rate": "2666666"},
    "streams": [
        {"codec_type": "video", "bit_rate": "2500000"},
        {"codec_type": "audio", "bit_rate": "160000"},
    ],
}

posix_only = pytest.mark.skipif(os.name == "nt", reason="stand-in ffprobe is a shell script")


def write_script(directory, body):
    """Writes an executable sh script named ffprobe and returns its path."""
    script = directory / "ffprobe"
    script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


@pytest.fixture
def bin_dir(tmp_path):
    directory = tmp_path / "bin"
    directory.mkdir()
    return directory


@posix_only
class TestMediaProbeWithScripts:
    """MediaProbe.probe running a real child process."""

    def test_parses_json_from_stdout(self, make_artifact, bin_dir):
        cmd = write_script(bin_dir, f"cat <<'EOF'\n{json.dumps(GOOD_DOC)}\nEOF")
        result = MediaProbe(ffprobe_cmd=cmd).probe(make_artifact())
        assert result.duration_seconds == 60
        assert result.audio_bitrate == 160_000

    def test_requests_json_format_and_streams(self, make_artifact, bin_dir):
        args_file = bin_dir / "argv.txt"
        body = f'printf "%s\\n" "$@" > "{args_file}"\ncat <<\'EOF\'\n{json.dumps(GOOD_DOC)}\nEOF'
        artifact = make_artifact()
        MediaProbe(ffprobe_cmd=write_script(bin_dir, body)).probe(artifact)

        argv = args_file.read_text(encoding="utf-8").splitlines()
        assert argv[-1] == str(artifact.path)
        assert "-show_format" in argv
        assert "-show_streams" in argv
        assert argv[argv.index("-of") + 1] == "json"
        assert "-timeout" not in argv

    def test_slow_ffprobe_is_killed_at_deadline(self, make_artifact, bin_dir):
        cmd = write_script(bin_dir, f"exec sleep 5\ncat <<'EOF'\n{json.dumps(GOOD_DOC)}\nEOF")
        started = time.monotonic()
        with pytest.raises(PipelineCancelled):
            MediaProbe(ffprobe_cmd=cmd).probe(make_artifact(), timeout=0.5)
        assert time.monotonic() - started < 4

    def test_nonzero_exit_is_probe_error(self, make_artifact, bin_dir):
        cmd = write_script(bin_dir, "echo 'moov atom not found' >&2\nexit 1")
        with pytest.raises(ProbeError, match="moov atom not found"):
            MediaProbe(ffprobe_cmd=cmd).probe(make_artifact())

    def test_nonzero_exit_is_recorded_in_error_log(self, make_artifact, bin_dir, tmp_path):
        cmd = write_script(bin_dir, "echo 'Invalid data found' >&2\nexit 1")
        log_dir = tmp_path / "logs"
        with pytest.raises(ProbeError):
            MediaProbe(ffprobe_cmd=cmd, error_log_dir=log_dir).probe(make_artifact())
        assert "Invalid data found" in (log_dir / "error.txt").read_text(encoding="utf-8")

    def test_invalid_json_is_probe_error(self, make_artifact, bin_dir):
        cmd = write_script(bin_dir, "echo 'this is not json'")
        with pytest.raises(ProbeError, match="not valid JSON"):
            MediaProbe(ffprobe_cmd=cmd).probe(make_artifact())

    def test_no_media_streams_is_probe_error(self, make_artifact, bin_dir):
        doc = {"format": {"duration": "5"}, "streams": [{"codec_type": "data"}]}
        cmd = write_script(bin_dir, f"cat <<'EOF'\n{json.dumps(doc)}\nEOF")
        with pytest.raises(ProbeError) as excinfo:
            MediaProbe(ffprobe_cmd=cmd).probe(make_artifact())
        assert excinfo.value.path is not None


class TestMediaProbeRunCmd:
    """MediaProbe.probe with run_cmd patched out."""

    def test_passes_remaining_time_to_run_cmd(self, make_artifact):
        completed = subprocess.CompletedProcess([], 0, json.dumps(GOOD_DOC), "")
        with patch(RUN_CMD_TARGET, return_value=completed) as run_mock:
            MediaProbe(ffprobe_cmd="ffprobe").probe(make_artifact(), timeout=12.5)
        assert run_mock.call_args.kwargs["timeout"] == 12.5

    def test_missing_executable_is_probe_error(self, make_artifact):
        with patch(RUN_CMD_TARGET, return_value=None):
            with pytest.raises(ProbeError, match="could not be started"):
                MediaProbe(ffprobe_cmd="ffprobe").probe(make_artifact())

    def test_cancellation_propagates(self, make_artifact):
        with patch(RUN_CMD_TARGET, side_effect=PipelineCancelled("deadline")):
            with pytest.raises(PipelineCancelled):
                MediaProbe(ffprobe_cmd="ffprobe").probe(make_artifact(), timeout=1)
