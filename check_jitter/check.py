"""Check configuration and the end-to-end jitter check."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from check_jitter.errors import ConfigurationError, InvalidIntervalError, InvalidSampleCountError
from check_jitter.evaluator import evaluate
from check_jitter.jitter import aggregate, compute_deltas
from check_jitter.models import AggregationMethod, JitterResult, ProbeOutcome, Status
from check_jitter.prober import IcmpProber, SocketType, default_resolver, resolve_host, validate_host
from check_jitter.sampler import MIN_SAMPLES, Sampler
from check_jitter.scheduler import Scheduler
from check_jitter.thresholds import Thresholds

logger = logging.getLogger(__name__)


@dataclass
class CheckConfig:
    """Settings for one jitter check. Times are in milliseconds."""

    host: str
    samples: int = 10
    timeout_ms: int = 1000
    min_interval_ms: int = 0
    max_interval_ms: int = 0
    aggregation: AggregationMethod = AggregationMethod.AVERAGE
    warning: str | None = None
    critical: str | None = None
    precision: int = 3
    socket_type: SocketType = SocketType.RAW

    def validate(self) -> Thresholds:
        """Validate settings before any probe is sent.

        Returns:
            The parsed warning/critical thresholds.

        Raises:
            ConfigurationError: On any invalid setting (subclass names the problem).
        """
        if self.samples < MIN_SAMPLES:
            raise InvalidSampleCountError(self.samples)
        if self.timeout_ms <= 0:
            raise ConfigurationError(f"Timeout must be positive, got {self.timeout_ms}ms")
        if self.min_interval_ms < 0 or self.max_interval_ms < 0:
            raise InvalidIntervalError(self.min_interval_ms, self.max_interval_ms)
        if self.min_interval_ms > self.max_interval_ms:
            raise InvalidIntervalError(self.min_interval_ms, self.max_interval_ms)
        if self.precision < 0:
            raise ConfigurationError(f"Precision must not be negative, got {self.precision}")

        validate_host(self.host)
        return Thresholds.parse(self.warning, self.critical)

    def worst_case_runtime_ms(self) -> int:
        """Upper bound on the check duration: samples * (timeout + max interval)."""
        return self.samples * (self.timeout_ms + self.max_interval_ms)


@dataclass
class CheckResult:
    """Outcome of a completed check, handed to the reporter."""

    status: Status
    jitter: JitterResult
    thresholds: Thresholds
    samples: list[ProbeOutcome] = field(default_factory=list)
    deltas: list[float] = field(default_factory=list)


def run_check(
    config: CheckConfig,
    prober_factory: Callable[[str, int, SocketType], IcmpProber] = IcmpProber,
    resolver: Callable[[str], list[str]] = default_resolver,
    scheduler: Scheduler | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> CheckResult:
    """Run one jitter check.

    Configuration is validated and the host resolved before the socket is
    opened; the socket is closed again on every exit path.

    Args:
        config: Check settings.
        prober_factory: Builds the prober from (address, timeout_ms, socket_type).
        resolver: Hostname resolver returning addresses in preference order.
        scheduler: Delay policy between probes.
        sleep: Sleep function taking seconds.

    Raises:
        CheckJitterError: On configuration, transport or measurement errors.
    """
    thresholds = config.validate()

    logger.info("%-34s%s", "Will check jitter for host:", config.host)
    logger.info("%-34s%s", "Aggregation method:", config.aggregation.value)
    logger.info("%-34s%s", "Socket type:", config.socket_type)
    logger.info("%-34s%d", "Sample size:", config.samples)
    logger.info("%-34s%dms", "Timeout per ping:", config.timeout_ms)
    logger.info("%-34s%dms", "Minimum wait time between pings:", config.min_interval_ms)
    logger.info("%-34s%dms", "Maximum wait time between pings:", config.max_interval_ms)
    logger.info("%-34s%d", "Decimal precision:", config.precision)
    logger.info("%-34s%s", "Warning threshold:", thresholds.warning)
    logger.info("%-34s%s", "Critical threshold:", thresholds.critical)
    logger.info("%-34s%dms", "Worst case runtime:", config.worst_case_runtime_ms())

    address = resolve_host(config.host, resolver)
    logger.info("%-34s%s", "Resolved address:", address)

    with prober_factory(address, config.timeout_ms, config.socket_type) as prober:
        sampler = Sampler(prober, scheduler, sleep=sleep)
        samples = sampler.run(config.samples, config.min_interval_ms, config.max_interval_ms)

    deltas = compute_deltas(samples)
    value = aggregate(deltas, config.aggregation)
    status = evaluate(value, thresholds.warning, thresholds.critical)

    return CheckResult(
        status=status,
        jitter=JitterResult(value=value, method=config.aggregation),
        thresholds=thresholds,
        samples=samples,
        deltas=deltas,
    )
