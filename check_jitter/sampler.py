"""Drives the prober across all configured samples."""

import logging
import time
from typing import Callable

from check_jitter.errors import InvalidSampleCountError
from check_jitter.models import ProbeOutcome, ProbeSuccess
from check_jitter.prober import Prober
from check_jitter.scheduler import Scheduler

logger = logging.getLogger(__name__)

MIN_SAMPLES = 3


class Sampler:
    """Runs a fixed number of sequential probes against one target.

    Probes are sent one at a time; the sampler sleeps for the scheduler's
    delay between probes (never after the last one). A failed probe never
    aborts the run: every configured sample is attempted.
    """

    def __init__(
        self,
        prober: Prober,
        scheduler: Scheduler | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize sampler.

        Args:
            prober: Prober bound to the target and per-probe timeout.
            scheduler: Delay policy between probes.
            sleep: Sleep function taking seconds (replaced in tests).
        """
        self.prober = prober
        self.scheduler = scheduler or Scheduler()
        self._sleep = sleep

    def run(
        self, sample_count: int, min_interval_ms: float = 0, max_interval_ms: float = 0
    ) -> list[ProbeOutcome]:
        """Collect sample_count probe outcomes in transmission order.

        Raises:
            InvalidSampleCountError: If sample_count is below 3.
        """
        if sample_count < MIN_SAMPLES:
            raise InvalidSampleCountError(sample_count)

        outcomes: list[ProbeOutcome] = []
        for i in range(sample_count):
            outcome = self.prober.probe(i)
            outcomes.append(outcome)
            logger.debug("Ping round %d: %s", i + 1, outcome)

            if i < sample_count - 1:
                delay_ms = self.scheduler.next_delay(min_interval_ms, max_interval_ms)
                if delay_ms > 0:
                    logger.debug("Sleeping for %.3fms...", delay_ms)
                    self._sleep(delay_ms / 1000.0)

        successes = sum(1 for outcome in outcomes if isinstance(outcome, ProbeSuccess))
        logger.info(
            "Sampling finished: %d probes, %d replies, %d failures",
            sample_count,
            successes,
            sample_count - successes,
        )
        return outcomes
