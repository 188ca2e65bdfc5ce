"""
This module provides classes for writing log files about pipeline runs.

It separates logging concerns into specific classes for failures (ErrorLog) and
run records (RunLog). Run records are written in a machine-readable YAML format,
one uniquely named file per run so parallel pipelines never write to the same
file, and can afterwards be combined into a single report. Error logs are plain
text for easy reading.

This is separate from the real-time console logging done through loguru.
"""

import random
import string
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Union

import yaml
from loguru import logger

from ..config.common import ERROR_LOG_FILE_NAME, RUN_LOG_RANDOM_LENGTH

COMBINED_RUN_LOG_FILE_NAME = "combined_runs.yaml"


class Log:
    """
    A base class for all file log handlers.

    Its main purpose is to resolve the log directory and make sure it exists.
    """

    # A decorative separator line used in text-based logs for better readability.
    linesep_marker: str = "=" * 50

    def __init__(self, log_base_path: Path):
        """
        Args:
            log_base_path: The base path for logging. If it's an existing file
                           path, its parent is used as the log directory;
                           otherwise it is treated as the directory itself.
        """
        self.log_file_path: Path
        if log_base_path.is_file():
            self.log_dir: Path = log_base_path.parent.resolve()
        else:
            self.log_dir: Path = log_base_path.resolve()
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def write(self, log_content: Union[dict, list, str]):
        raise NotImplementedError("Subclasses must implement the write() method.")

    @staticmethod
    def generate_random_string(length: int = RUN_LOG_RANDOM_LENGTH) -> str:
        """Generates a random string of uppercase letters and digits for unique filenames."""
        return "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


class ErrorLog(Log):
    """
    Appends human-readable error messages to a plain text file.

    Each error is appended to the log file, making it a chronological record of
    the external commands that failed and what they printed.
    """

    def __init__(self, error_log_dir: Path, filename: str = ERROR_LOG_FILE_NAME):
        super().__init__(error_log_dir)
        self.log_file_path = self.log_dir / filename

    def write(self, *error_messages: str):
        """
        Writes one or more error messages to the log file, followed by a separator line.
        """
        if not error_messages:
            return

        content_to_write = "\n".join(error_messages) + "\n" + self.linesep_marker + "\n"

        try:
            with self.log_file_path.open("a", encoding="utf-8") as f:
                f.write(content_to_write)
        except OSError as e:
            # Fall back to the console so the message is not lost.
            logger.error(f"Failed to write to error log {self.log_file_path}: {e}")
            for msg in error_messages:
                logger.error(f"  - {msg}")


class RunLog(Log):
    """
    Writes one structured YAML record per finished pipeline run.

    Each instance owns a uniquely named `run_YYYYMMDD_<random>.yaml` file, so
    concurrent runs (even in separate processes) never collide. The
    `combine` class method merges all of them into one sorted report.
    """

    def __init__(self, run_log_dir: Path):
        super().__init__(run_log_dir)
        date_str = datetime.now().strftime("%Y%m%d")
        self.log_file_path = self.log_dir / f"run_{date_str}_{self.generate_random_string()}.yaml"

    def write(self, run_entry: dict):
        """
        Stores `run_entry` as this run's record.

        The entry is stamped with `ended_datetime` unless it already carries one.
        """
        if not isinstance(run_entry, dict):
            logger.error("RunLog.write expects a dictionary as a log entry.")
            return
        run_entry.setdefault("ended_datetime", datetime.now().isoformat())
        try:
            with self.log_file_path.open("w", encoding="utf-8") as f:
                yaml.dump(
                    [run_entry],
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    allow_unicode=True,
                    indent=4,
                    width=220,
                )
        except OSError as e:
            logger.error(f"Failed to write run log {self.log_file_path}: {e}")

    @classmethod
    def combine(cls, run_log_dir: Path) -> Path | None:
        """
        Merges every per-run YAML file in `run_log_dir` into one report.

        Existing entries of the combined report are kept, all entries are sorted
        by `ended_datetime` and re-indexed, and the merged per-run files are
        deleted.

        Returns:
            The path of the combined report, or None if there was nothing to combine.
        """
        if not run_log_dir.is_dir():
            logger.error(f"Cannot combine run logs: '{run_log_dir}' is not a directory.")
            return None

        entries: List[Dict] = []
        merged_files: List[Path] = []
        for run_file in sorted(run_log_dir.glob("run_????????_*.yaml")):
            try:
                with run_file.open("r", encoding="utf-8") as f:
                    content = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Error reading run log {run_file}: {e}")
                continue
            if isinstance(content, list):
                entries.extend(e for e in content if isinstance(e, dict))
            merged_files.append(run_file)

        if not entries:
            logger.debug("No new run log entries found to combine.")
            return None

        combined_path = run_log_dir / COMBINED_RUN_LOG_FILE_NAME
        if combined_path.is_file():
            try:
                with combined_path.open("r", encoding="utf-8") as f:
                    existing = yaml.safe_load(f)
                if isinstance(existing, list):
                    entries.extend(e for e in existing if isinstance(e, dict))
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Error reading existing combined log {combined_path}: {e}")

        entries.sort(key=lambda entry: str(entry.get("ended_datetime", "")))
        for index, entry in enumerate(entries, start=1):
            entry["index"] = index

        with combined_path.open("w", encoding="utf-8") as f:
            yaml.dump(
                entries,
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
                indent=4,
                width=220,
            )
        for run_file in merged_files:
            run_file.unlink(missing_ok=True)

        logger.info(f"Combined {len(merged_files)} run log(s) into {combined_path} ({len(entries)} entries).")
        return combined_path
