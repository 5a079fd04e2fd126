import logging
import sys
from pathlib import Path
from typing import Optional

from gitmod.git.runner import TOOL_LOGGER


logger = logging.getLogger("gitmod")

_console_handler: Optional[logging.StreamHandler] = None


def configure_logging(debug: bool):
    """
    Configures the logging system based on the debug flag.
    """
    global _console_handler

    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stdout)
        _console_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(_console_handler)
    else:
        # click swaps sys.stdout between invocations (e.g. CliRunner)
        _console_handler.setStream(sys.stdout)

    logger.setLevel(logging.DEBUG if debug else logging.INFO)


def configure_tool_output(verbose: bool, log_path: Optional[Path] = None):
    """
    Point the git output sink at the terminal (verbose), a log file, or nowhere.

    Args:
        verbose: Echo git output to stderr instead of logging it to a file
        log_path: Log file receiving git output when not verbose
    """
    tool_logger = logging.getLogger(TOOL_LOGGER)
    tool_logger.propagate = False
    tool_logger.setLevel(logging.INFO)
    for handler in list(tool_logger.handlers):
        tool_logger.removeHandler(handler)
        handler.close()

    if verbose:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
    elif log_path is not None:
        handler = logging.FileHandler(log_path, delay=True)
        handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
    else:
        handler = logging.NullHandler()
    tool_logger.addHandler(handler)
    return tool_logger
