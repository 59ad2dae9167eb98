"""Inter-probe delay scheduling."""

import logging
import random

logger = logging.getLogger(__name__)


class Scheduler:
    """Decides how long to wait between two probes.

    - both bounds 0: send immediately
    - equal bounds: fixed interval
    - otherwise: uniform random delay in [min, max]

    min <= max is validated by CheckConfig before sampling starts.
    """

    def __init__(self, rng: random.Random | None = None):
        """Initialize with an optional random source (seed it for tests)."""
        # Isolated random instance so seeding does not affect the global state
        self._random = rng or random.Random()

    def next_delay(self, min_interval_ms: float, max_interval_ms: float) -> float:
        """Return the delay before the next probe in milliseconds."""
        if min_interval_ms == 0 and max_interval_ms == 0:
            return 0.0

        if min_interval_ms == max_interval_ms:
            return float(min_interval_ms)

        delay = self._random.uniform(min_interval_ms, max_interval_ms)
        # uniform() may round past the upper bound
        delay = min(max(delay, float(min_interval_ms)), float(max_interval_ms))
        logger.debug(
            "Random delay %.3fms drawn from [%s, %s]", delay, min_interval_ms, max_interval_ms
        )
        return delay
