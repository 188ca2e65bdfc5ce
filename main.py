"""
Main entry point for clipshrink.

This script configures logging, parses the command-line arguments, verifies the
external tools and runs one shrinking pipeline per input file.
"""

import sys

from loguru import logger

from clipshrink.cli import EXIT_TOOLS_MISSING, exit_code_for, get_args
from clipshrink.config.common import LOGGER_FORMAT
from clipshrink.pipeline.batch import BatchRunner
from clipshrink.utils.executables import Executables
from clipshrink.utils.format_utils import formatted_size


# Configure the logger for initial setup.
# The level is overridden once the command-line arguments are known.
logger.remove()
logger.add(sys.stderr, level="INFO", format=LOGGER_FORMAT)


def main(argv=None) -> int:
    """
    Runs clipshrink and returns the process exit code.

    1. Parses command-line arguments.
    2. Configures the global logger based on the arguments.
    3. Checks that FFmpeg and ffprobe can be executed.
    4. Runs the batch and reports each outcome.
    """
    args = get_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=args.log_level, format=LOGGER_FORMAT)
    logger.debug(f"Parsed arguments: {args}")

    if not Executables.verify():
        logger.error("FFmpeg tools are not usable; aborting.")
        return EXIT_TOOLS_MISSING

    outcomes = BatchRunner(args.inputs, args).run()
    for outcome in outcomes:
        if outcome.get("final"):
            logger.info(
                f"{outcome['input']}: {outcome['status']} -> {outcome['final']} "
                f"({formatted_size(outcome['final_size'] or 0)})"
            )
        else:
            logger.error(f"{outcome['input']}: {outcome['status']} ({outcome.get('error_kind')}: {outcome.get('error')})")

    logger.success("clipshrink finished.")
    return exit_code_for(outcomes)


if __name__ == "__main__":
    sys.exit(main())
