"""Exception hierarchy for check_jitter.

Every fatal condition of a check is a ``CheckJitterError``. The CLI turns any
of them into an UNKNOWN status so that an inconclusive check is never reported
as OK. Individual probe timeouts are not exceptions; they are recorded as
``ProbeFailure`` values by the sampler.
"""


class CheckJitterError(Exception):
    """Base class for all fatal check errors."""


class ConfigurationError(CheckJitterError):
    """Invalid configuration, detected before any probe is sent."""


class InvalidSampleCountError(ConfigurationError):
    def __init__(self, samples: int):
        self.samples = samples
        super().__init__(f"At least 3 samples are required to calculate jitter, got {samples}.")


class InvalidIntervalError(ConfigurationError):
    def __init__(self, min_interval_ms: float, max_interval_ms: float):
        self.min_interval_ms = min_interval_ms
        self.max_interval_ms = max_interval_ms
        super().__init__(
            f"Invalid min/max interval: min: {min_interval_ms}, max: {max_interval_ms}"
        )


class InvalidHostError(ConfigurationError):
    def __init__(self, host: str):
        self.host = host
        super().__init__(f"Invalid address or hostname: {host}")


class ResolutionError(ConfigurationError):
    """DNS lookup failed or returned no usable address."""

    def __init__(self, host: str, detail: str | None = None):
        self.host = host
        self.detail = detail
        if detail:
            message = f"DNS resolution error for '{host}': {detail}"
        else:
            message = f"DNS Lookup failed for: {host}"
        super().__init__(message)


class NoThresholdsError(ConfigurationError):
    def __init__(self):
        super().__init__("No thresholds provided. Provide at least one threshold.")


class RangeParseError(ConfigurationError):
    """A threshold range expression could not be parsed."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Unable to parse range '{expression}' with error: {reason}")


class MalformedRangeError(RangeParseError):
    """The range expression does not follow the range syntax."""


class InvertedRangeError(RangeParseError):
    """The range start is greater than its end."""


class TransportError(CheckJitterError):
    """The ICMP socket could not be created or used."""


class PermissionDeniedError(TransportError):
    def __init__(self, socket_type: str):
        self.socket_type = socket_type
        super().__init__(
            f"Ping failed because of insufficient permissions to open a {socket_type} "
            "socket. Run as root, grant CAP_NET_RAW, or use the datagram socket option."
        )


class MeasurementError(CheckJitterError):
    """Sampling finished but produced no usable measurement."""


class EmptyDeltasError(MeasurementError):
    def __init__(self):
        super().__init__("The delta count is 0. Cannot calculate jitter.")
