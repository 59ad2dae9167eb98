"""Logging configuration for check_jitter."""

import logging
import os
import sys

LOG_LEVEL_ENV = "CHECK_JITTER_LOG_LEVEL"

BASE_FORMAT = "%(asctime)s.%(msecs)03d [%(name)s] [%(levelname)s]"


def configure_logging(verbosity: int = 0) -> None:
    """Configure application-wide logging.

    Logs go to stderr; stdout is reserved for the plugin status line.
    The base level comes from the CHECK_JITTER_LOG_LEVEL environment variable
    (default: ERROR). Command line verbosity can only raise the detail:

        -v, none   keep the base level
        -vv        INFO
        -vvv       DEBUG, with file:line of each record

    Environment Variables:
        CHECK_JITTER_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                                Default is ERROR.

    Examples:
        $ check_jitter -H 192.0.2.1 -w 10 -vv
        $ CHECK_JITTER_LOG_LEVEL=DEBUG check_jitter -H 192.0.2.1 -w 10
    """
    log_level_str = os.environ.get(LOG_LEVEL_ENV, "ERROR").upper()

    log_level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    log_level = log_level_map.get(log_level_str, logging.ERROR)

    include_file_info = False
    if verbosity >= 3:
        log_level = logging.DEBUG
        include_file_info = True
    elif verbosity == 2:
        log_level = min(log_level, logging.INFO)

    if include_file_info:
        log_format = BASE_FORMAT + " [%(filename)s:%(lineno)d] %(message)s"
    else:
        log_format = BASE_FORMAT + " %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.info("Logging configured: level=%s", logging.getLevelName(log_level))
