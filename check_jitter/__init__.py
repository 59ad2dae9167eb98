"""check_jitter: a monitoring plugin that measures network jitter."""

__version__ = "1.0.0"
