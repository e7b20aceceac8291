"""
Logging configuration for the cluster state poller.

Provides one logging setup shared by the server and the one-shot CLI.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "[%(asctime)s] [CLUSTER-STATE] %(levelname)s - %(message)s"


def setup_logging(
    level=logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    stream=None,
) -> logging.Logger:
    """
    Configure logging for the poller.

    Args:
        level: Logging level name or number
        log_file: Optional file path for log output
        format_string: Custom format string (default provided)
        stream: Console stream (stdout unless given)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    format_string = format_string or DEFAULT_FORMAT

    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(stream or sys.stdout)],
        force=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S"))
        logging.getLogger().addHandler(file_handler)

    # paramiko logs every channel open at INFO
    logging.getLogger("paramiko").setLevel(logging.WARNING)

    logger = logging.getLogger("cluster_state")
    logger.debug("Logging initialized (level=%s)", logging.getLevelName(level))
    return logger
