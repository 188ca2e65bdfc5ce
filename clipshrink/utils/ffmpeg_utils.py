"""
This module provides the subprocess wrapper used for every FFmpeg invocation.
"""

import os
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from ..domain.exceptions import PipelineCancelled
from ..services.logging_service import ErrorLog


def format_cmd(cmd_list: List[str]) -> str:
    """Joins a command list into a display string quoted for the current platform."""
    if os.name == "nt":
        return subprocess.list2cmdline(cmd_list)
    return shlex.join(cmd_list)


def run_cmd(
    cmd_parts: List[Union[str, Path, int]],
    src_file_for_log: Path = Path(),
    error_log_dir_for_run_cmd: Optional[Path] = None,
    show_cmd: bool = False,
    timeout: Optional[float] = None,
) -> Optional[subprocess.CompletedProcess]:
    """
    Executes an external command safely and captures its output.

    This is a wrapper around Python's `subprocess.run` that adds logging,
    error handling and deadline support. The command is always an argument
    list and never goes through a shell.

    Args:
        cmd_parts: The command to execute as a list of arguments. Non-string
                   parts such as paths and bitrates are converted with `str`.
        src_file_for_log: The source file being processed, used for logging context
                          in case of an error.
        error_log_dir_for_run_cmd: The directory where an error log should be written
                                   if the command fails to run.
        show_cmd: If True, the command will be logged at the DEBUG level before execution.
        timeout: Seconds the command may run. When it expires the child process is
                 killed and `PipelineCancelled` is raised.

    Returns:
        A `subprocess.CompletedProcess` object once the command has run, whatever
        its return code. Returns `None` if the command could not be started
        (e.g., `FileNotFoundError`).

    Raises:
        PipelineCancelled: If `timeout` expired before the command finished.
    """
    cmd_list = [str(part) for part in cmd_parts]

    if not cmd_list:
        logger.error("run_cmd received an empty command list.")
        return None

    display_cmd_str = format_cmd(cmd_list)
    if show_cmd:
        logger.debug(f"Executing: {display_cmd_str}")

    try:
        # subprocess.run kills the child before re-raising TimeoutExpired.
        result = subprocess.run(
            cmd_list,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            shell=False,
            stdin=subprocess.DEVNULL,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout:.1f}s and was killed: {display_cmd_str}")
        raise PipelineCancelled(f"Command timed out for {src_file_for_log.name}") from e
    except FileNotFoundError:
        logger.error(
            f"Error: Command not found ('{cmd_list[0]}'). Ensure it's in your system's PATH or configured correctly."
        )
        if error_log_dir_for_run_cmd and src_file_for_log.name:
            ErrorLog(error_log_dir_for_run_cmd).write(
                f"Command execution error for: {src_file_for_log.name}",
                f"Command: {display_cmd_str}",
                "Error: Command not found (FileNotFoundError).",
            )
        return None

    if result.stdout and len(result.stdout) > 500:
        logger.trace(f"Command stdout (truncated): {result.stdout[:500]}...")
    elif result.stdout:
        logger.trace(f"Command stdout: {result.stdout}")

    # FFmpeg writes progress to stderr, so only a non-zero exit makes it interesting.
    if result.stderr and result.returncode != 0:
        logger.debug(f"Command stderr (error, rc={result.returncode}): {result.stderr}")
        if error_log_dir_for_run_cmd and src_file_for_log.name:
            ErrorLog(error_log_dir_for_run_cmd).write(
                f"Command failed for: {src_file_for_log.name} (rc={result.returncode})",
                f"Command: {display_cmd_str}",
                result.stderr[-2000:],
            )
    elif result.stderr:
        logger.trace(f"Command stderr (non-error, rc={result.returncode}): {result.stderr}")

    return result
