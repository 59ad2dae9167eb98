"""Monitoring-plugin range thresholds.

Range syntax (alert when the value is...):

    10       < 0 or > 10       (outside {0 .. 10})
    10:      < 10              (outside {10 .. inf})
    ~:10     > 10              (outside {-inf .. 10})
    10:20    < 10 or > 20      (outside {10 .. 20})
    @10:20   >= 10 and <= 20   (inside {10 .. 20})
"""

import logging
import math
import re
from dataclasses import dataclass
from decimal import Decimal

from check_jitter.errors import InvertedRangeError, MalformedRangeError

logger = logging.getLogger(__name__)

_NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def _parse_bound(expression: str, text: str, default: float) -> float:
    if text == "":
        return default
    if not _NUMBER_PATTERN.fullmatch(text):
        raise MalformedRangeError(expression, f"'{text}' is not a number")
    return float(text)


def _format_bound(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    # Perfdata only allows [-0-9.], never exponents.
    return format(Decimal(repr(value)), "f")


@dataclass(frozen=True)
class RangeThreshold:
    """A parsed range. ``lower``/``upper`` may be infinite."""

    lower: float
    upper: float
    invert: bool = False

    @classmethod
    def parse(cls, expression: str) -> "RangeThreshold":
        """Parse a range expression.

        Args:
            expression: Range in monitoring-plugin syntax, e.g. ``"10"``,
                ``"~:10"`` or ``"@10:20"``.

        Returns:
            The parsed RangeThreshold.

        Raises:
            MalformedRangeError: If the expression is not valid range syntax.
            InvertedRangeError: If the start of the range is above its end.
        """
        if expression is None:
            raise MalformedRangeError("", "empty range")

        body = expression
        invert = body.startswith("@")
        if invert:
            body = body[1:]

        if body == "":
            raise MalformedRangeError(expression, "empty range")

        if ":" in body:
            start, end = body.split(":", 1)
            if ":" in end:
                raise MalformedRangeError(expression, "more than one ':' separator")
            if start == "~":
                lower = -math.inf
            else:
                lower = _parse_bound(expression, start, 0.0)
            upper = _parse_bound(expression, end, math.inf)
        else:
            lower = 0.0
            upper = _parse_bound(expression, body, math.inf)

        if lower > upper:
            raise InvertedRangeError(
                expression,
                f"start of range ({_format_bound(lower)}) is greater than end ({_format_bound(upper)})",
            )

        threshold = cls(lower=lower, upper=upper, invert=invert)
        logger.debug("Parsed range %r as %s", expression, threshold)
        return threshold

    def contains(self, value: float) -> bool:
        """Return True if value lies within [lower, upper] (inclusive)."""
        return self.lower <= value <= self.upper

    def matches(self, value: float) -> bool:
        """Return True if the value should raise an alert.

        A normal range alerts outside its bounds; an inverted (``@``) range
        alerts inside them.
        """
        return self.contains(value) == self.invert

    def __str__(self) -> str:
        if self.lower == -math.inf:
            start = "~"
        else:
            start = _format_bound(self.lower)

        end = "" if self.upper == math.inf else _format_bound(self.upper)
        prefix = "@" if self.invert else ""
        return f"{prefix}{start}:{end}"


@dataclass(frozen=True)
class Thresholds:
    """Optional warning and critical ranges for one check."""

    warning: RangeThreshold | None = None
    critical: RangeThreshold | None = None

    @classmethod
    def parse(cls, warning: str | None = None, critical: str | None = None) -> "Thresholds":
        """Parse optional warning/critical expressions; None stays None."""
        return cls(
            warning=RangeThreshold.parse(warning) if warning is not None else None,
            critical=RangeThreshold.parse(critical) if critical is not None else None,
        )
