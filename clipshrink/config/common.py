"""
Common configuration settings used throughout the application.

This module contains globally shared configuration settings and constants that are
used across the whole of clipshrink. It centralizes parameters for logging, the
post-processing retry budget, size presets and the working directory for
intermediate artifacts. It also handles the loading of user-specific
configuration from an external YAML file, allowing for easy customization
without modifying the source code.
"""
import os
from pathlib import Path

import yaml
from loguru import logger

# --- User-Defined Configuration ---
# This block loads user-specific settings from a 'config.user.yaml' file located
# at the project root, or from the file named by the CLIPSHRINK_CONFIG
# environment variable. This allows users to point at the FFmpeg executables and
# set a default maximum size without hardcoding anything.

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
USER_CONFIG_ENV_VAR = "CLIPSHRINK_CONFIG"
USER_CONFIG_PATH = Path(os.environ.get(USER_CONFIG_ENV_VAR, PROJECT_ROOT / "config.user.yaml"))

# The directory containing the FFmpeg and ffprobe executables. This is loaded from
# 'config.user.yaml'. If not provided or None, the application assumes the
# executables are available in the system's PATH.
MODULE_PATH: Path | None = None

# The directory in which intermediate artifacts are created. None means the
# system temporary directory.
WORK_DIR: Path | None = None

# The default maximum artifact size in bytes when the command line does not give one.
USER_MAX_SIZE: int | None = None


def load_user_config(config_path: Path) -> dict:
    """
    Reads the user YAML configuration file.

    Returns:
        The parsed mapping, or an empty dict if the file is missing, empty or
        cannot be parsed. A broken user file never prevents startup.
    """
    if not config_path.is_file():
        logger.debug(f"User config '{config_path}' not found. Relying on defaults and system PATH.")
        return {}
    try:
        with config_path.open("r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load or parse '{config_path}': {e}")
        return {}
    if not isinstance(loaded, dict):
        logger.warning(f"Ignoring '{config_path}': expected a mapping at the top level.")
        return {}
    return loaded


_user_config = load_user_config(USER_CONFIG_PATH)
_paths_config = _user_config.get("paths") or {}
_shrink_config = _user_config.get("shrink") or {}

if _paths_config.get("ffmpeg_dir"):
    MODULE_PATH = Path(_paths_config["ffmpeg_dir"])
if _paths_config.get("work_dir"):
    WORK_DIR = Path(_paths_config["work_dir"])
if _shrink_config.get("max_size"):
    try:
        USER_MAX_SIZE = int(_shrink_config["max_size"])
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-integer shrink.max_size in '{USER_CONFIG_PATH}'.")


# --- Logging Configuration ---

# The format string for the Loguru logger. It defines the structure and appearance
# of log messages, including timestamp, level, module name, and the message itself.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{process} - <level>{message}</level>"
)

# The length of the random string appended to run log files.
# This prevents filename collisions when several pipelines finish at the same time.
RUN_LOG_RANDOM_LENGTH = 10

# The filename of the plain-text error log written next to the run logs.
ERROR_LOG_FILE_NAME = "error.txt"


# --- Post-Processing Rules ---

# The maximum number of times one pass identity may appear in a pipeline's
# execution history. A further attempt fails with RetryBudgetExhausted.
MAX_PASS_RETRIES = 3

# Named maximum sizes in bytes, matching common upload limits.
SIZE_PRESETS = {
    "discord": 9_500_000,
    "discord-nitro": 49_000_000,
}

DEFAULT_MAX_SIZE = USER_MAX_SIZE or SIZE_PRESETS["discord"]

# Prefix for every intermediate file created by an encode.
INTERMEDIATE_PREFIX = "clipshrink_"


# --- Run Outcome Constants ---
RUN_STATUS_COMPLETED = "completed"
RUN_STATUS_FAILED = "failed"
RUN_STATUS_CANCELLED = "cancelled"
