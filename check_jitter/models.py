"""Data models for check_jitter measurements."""

from dataclasses import dataclass
from enum import Enum, IntEnum


class FailureReason(str, Enum):
    """Why a single probe produced no round-trip time."""

    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    OTHER = "other"


@dataclass(frozen=True)
class ProbeSuccess:
    """A probe that received its echo reply."""

    sequence_index: int
    rtt_ms: float

    def __post_init__(self):
        """Reject negative round-trip times."""
        if self.rtt_ms < 0:
            raise ValueError(f"rtt_ms must be non-negative, got {self.rtt_ms}")


@dataclass(frozen=True)
class ProbeFailure:
    """A probe that timed out or was rejected."""

    sequence_index: int
    reason: FailureReason = FailureReason.TIMEOUT


ProbeOutcome = ProbeSuccess | ProbeFailure


class AggregationMethod(str, Enum):
    """Reduction applied to the jitter deltas."""

    AVERAGE = "average"
    MEDIAN = "median"
    MAX = "max"
    MIN = "min"

    @classmethod
    def parse(cls, value: str) -> "AggregationMethod":
        """Parse a method name or one of its aliases (case-insensitive).

        Raises:
            ValueError: If the name is not a known method or alias.
        """
        method = _AGGREGATION_ALIASES.get(value.strip().lower())
        if method is None:
            raise ValueError(f"'{value}' is not a valid aggregation method")
        return method

    @property
    def label(self) -> str:
        """Human readable label, e.g. ``Average Jitter``."""
        return f"{self.value.capitalize()} Jitter"


_AGGREGATION_ALIASES = {
    "average": AggregationMethod.AVERAGE,
    "avg": AggregationMethod.AVERAGE,
    "mean": AggregationMethod.AVERAGE,
    "median": AggregationMethod.MEDIAN,
    "med": AggregationMethod.MEDIAN,
    "max": AggregationMethod.MAX,
    "maximum": AggregationMethod.MAX,
    "min": AggregationMethod.MIN,
    "minimum": AggregationMethod.MIN,
}


class Status(IntEnum):
    """Check status. The integer value is the plugin exit code."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


@dataclass(frozen=True)
class JitterResult:
    """An aggregated jitter value in milliseconds, at full precision."""

    value: float
    method: AggregationMethod
