"""Threshold evaluation of an aggregated jitter value."""

import logging

from check_jitter.models import Status
from check_jitter.thresholds import RangeThreshold

logger = logging.getLogger(__name__)


def evaluate(
    value: float,
    warning: RangeThreshold | None = None,
    critical: RangeThreshold | None = None,
) -> Status:
    """Classify value against optional warning and critical ranges.

    Critical is checked first and wins whenever it fires; warning is only
    consulted otherwise. The ranges are not checked against each other.
    """
    logger.info("Evaluating jitter: %r", value)

    if critical is not None:
        logger.info("Checking critical threshold: %s", critical)
        if critical.matches(value):
            logger.info("Jitter is critical: %r", value)
            return Status.CRITICAL
        logger.info("Jitter is not critical: %r", value)
    else:
        logger.info("No critical threshold provided")

    if warning is not None:
        logger.info("Checking warning threshold: %s", warning)
        if warning.matches(value):
            logger.info("Jitter is warning: %r", value)
            return Status.WARNING
        logger.info("Jitter is not warning: %r", value)
    else:
        logger.info("No warning threshold provided")

    return Status.OK
