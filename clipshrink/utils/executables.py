"""
This module provides the Executables class to locate and verify the external
tools the pipeline shells out to: FFmpeg and ffprobe.
"""
import subprocess
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from ..config import common


class Executables:
    """
    Resolves the FFmpeg and ffprobe executables.

    It reads the `ffmpeg_dir` path from the user's `config.user.yaml` file and
    falls back to the system's PATH if no directory is configured or the
    executable is missing there.
    """

    @staticmethod
    def _resolve(tool_name: str, module_path: Optional[Path] = None) -> str:
        """
        Determines the command or absolute path to use for `tool_name`.

        It handles platform-specific executable names (adding '.exe' on Windows).
        """
        exe_name = f"{tool_name}.exe" if sys.platform == "win32" else tool_name
        module_path = module_path if module_path is not None else common.MODULE_PATH

        if module_path and module_path.is_dir():
            configured_path = module_path / exe_name
            if configured_path.is_file():
                logger.trace(f"Using {tool_name} from configured path: '{configured_path}'")
                return str(configured_path)
            logger.warning(
                f"`ffmpeg_dir` is configured, but '{exe_name}' was not found there. Falling back to system PATH."
            )
        return tool_name

    @staticmethod
    def ffmpeg() -> str:
        return Executables._resolve("ffmpeg")

    @staticmethod
    def ffprobe() -> str:
        return Executables._resolve("ffprobe")

    @staticmethod
    def verify() -> bool:
        """
        Verifies that FFmpeg and ffprobe are installed and can be executed.

        Runs `<tool> -version` for each and logs the first line of the output on
        success, or a detailed error message if a tool is missing or fails.
        This is a startup check; it reports problems instead of raising.

        Returns:
            True if both tools answered successfully.
        """
        all_ok = True
        for tool_cmd in (Executables.ffmpeg(), Executables.ffprobe()):
            try:
                result = subprocess.run(
                    [tool_cmd, "-version"],
                    check=True,
                    capture_output=True,
                    text=True,
                    encoding="utf-8",
                )
                version_output_lines = result.stdout.splitlines()
                first_line = version_output_lines[0] if version_output_lines else "(no output)"
                logger.debug(f"{tool_cmd} version check successful: {first_line}")
            except subprocess.CalledProcessError as e:
                logger.error(f"{tool_cmd} version command failed (return code {e.returncode}):\n{e.stderr}")
                all_ok = False
            except FileNotFoundError:
                logger.error(
                    f"'{tool_cmd}' not found. Please ensure FFmpeg is installed and accessible.\n"
                    "You can either add it to your system's PATH or specify its location in the 'config.user.yaml' file."
                )
                all_ok = False
        return all_ok
