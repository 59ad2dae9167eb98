"""Jitter computation: deltas between adjacent replies and their aggregation."""

import logging
import statistics

from check_jitter.errors import EmptyDeltasError
from check_jitter.models import AggregationMethod, ProbeOutcome, ProbeSuccess

logger = logging.getLogger(__name__)


def compute_deltas(samples: list[ProbeOutcome]) -> list[float]:
    """Compute absolute RTT differences between adjacent successful probes.

    Only pairs that are adjacent in the original sequence count. A failed
    probe breaks continuity on both sides and is never bridged over: with a
    failure at position i, neither (i-1, i) nor (i, i+1) yields a delta.

    Args:
        samples: Probe outcomes in transmission order.

    Returns:
        Deltas in milliseconds, in sequence order.

    Raises:
        EmptyDeltasError: If no adjacent pair of successful probes exists.
    """
    deltas = [
        abs(b.rtt_ms - a.rtt_ms)
        for a, b in zip(samples, samples[1:])
        if isinstance(a, ProbeSuccess) and isinstance(b, ProbeSuccess)
    ]
    logger.debug("Deltas: %s", deltas)

    if not deltas:
        raise EmptyDeltasError()
    return deltas


def aggregate(deltas: list[float], method: AggregationMethod) -> float:
    """Reduce the deltas to a single jitter value.

    median is the standard median: the mean of the two middle values for an
    even number of deltas.

    Raises:
        EmptyDeltasError: If deltas is empty.
    """
    if not deltas:
        raise EmptyDeltasError()

    if method == AggregationMethod.AVERAGE:
        value = statistics.mean(deltas)
    elif method == AggregationMethod.MEDIAN:
        value = statistics.median(deltas)
    elif method == AggregationMethod.MAX:
        value = max(deltas)
    elif method == AggregationMethod.MIN:
        value = min(deltas)
    else:
        raise ValueError(f"Unsupported aggregation method: {method}")

    logger.debug("%s of %d deltas: %r", method.label, len(deltas), value)
    return float(value)


def round_jitter(value: float, precision: int) -> float:
    """Round a jitter value for display."""
    return round(value, precision)
