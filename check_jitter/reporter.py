"""Plugin output: status line with performance data, and UNKNOWN messages."""

from check_jitter.errors import (
    CheckJitterError,
    InvalidHostError,
    InvalidIntervalError,
    NoThresholdsError,
    RangeParseError,
)
from check_jitter.jitter import round_jitter
from check_jitter.models import AggregationMethod, Status
from check_jitter.thresholds import Thresholds

UOM = "ms"


def format_value(value: float, precision: int) -> str:
    """Render a rounded value without trailing zeros (``1.5``, ``2``)."""
    rounded = round_jitter(value, precision)
    if float(rounded).is_integer():
        return str(int(rounded))
    fixed = f"{rounded:.{precision}f}".rstrip("0").rstrip(".")
    shortest = repr(rounded)
    if "e" not in shortest and len(shortest) < len(fixed):
        return shortest
    return fixed


def display_string(
    status: Status,
    method: AggregationMethod,
    value: float,
    thresholds: Thresholds,
    precision: int = 3,
) -> str:
    """Build the status line, e.g.

    ``OK - Average Jitter: 0.1ms|'Average Jitter'=0.1ms;0:0.5;0:1;0``
    """
    label = method.label
    shown = format_value(value, precision)
    warning = str(thresholds.warning) if thresholds.warning is not None else ""
    critical = str(thresholds.critical) if thresholds.critical is not None else ""
    return (
        f"{status.name} - {label}: {shown}{UOM}"
        f"|'{label}'={shown}{UOM};{warning};{critical};0"
    )


def unknown_string(error: CheckJitterError) -> str:
    """Build the UNKNOWN line for a fatal error."""
    if isinstance(error, (InvalidHostError, InvalidIntervalError, NoThresholdsError, RangeParseError)):
        return f"UNKNOWN - {error}"
    return f"UNKNOWN - An error occurred: '{error}'"


def command_line_error_string(message: str) -> str:
    """Build the UNKNOWN line for an argument parsing error."""
    trimmed = message.strip()
    if trimmed.startswith("error: "):
        trimmed = trimmed[len("error: "):]
    return f"UNKNOWN - Command line parsing produced an error: {trimmed}"
