"""Entry point for the check_jitter monitoring plugin."""

import argparse
import logging
import os
import sys
from typing import Callable

from check_jitter import __version__
from check_jitter.check import CheckConfig, run_check
from check_jitter.errors import CheckJitterError, NoThresholdsError
from check_jitter.fake_prober import SimulatedProber
from check_jitter.logging_config import configure_logging
from check_jitter.models import AggregationMethod, Status
from check_jitter.prober import IcmpProber, SocketType, default_resolver
from check_jitter.reporter import command_line_error_string, display_string, unknown_string

logger = logging.getLogger(__name__)

ABOUT_TEXT = """
check_jitter - A monitoring plugin that measures network jitter.

AGGREGATION METHOD

The plugin can aggregate the deltas from multiple samples in the following ways:
- average: the average of all deltas (arithmetic mean) [default]
- median: the median of all deltas
- max: the maximum of all deltas
- min: the minimum of all deltas

Deltas are only taken between consecutive pings that both received a reply.
A lost ping breaks the sequence on both sides. If no two consecutive pings
succeed, the check reports UNKNOWN.

HOSTNAME

If the hostname resolves to multiple IP addresses, the plugin will use the first
address returned by the DNS resolver and skip the rest.

While using a hostname is supported, consider using IP addresses instead. It's
better to set up multiple tests to cover each IP individually rather than relying
on hostname resolution.

SAMPLES

The number of pings to send to the target host. Must be greater than 2.

SAMPLE INTERVALS

When -m and -M are both set to 0, the plugin will send pings immediately after
receiving a response.

When -m and -M are set to the same value, the plugin will send pings at a fixed
interval.

When -m and -M are set to different values, the plugin will send pings at random
intervals between the two values.

-m must be less than or equal to -M.

RUNTIME

In the worst case a check takes samples * (timeout + max interval)
milliseconds. Keep this below the check timeout of your monitoring system.
"""

THRESHOLD_TEXT = """
THRESHOLD SYNTAX

Thresholds are defined using monitoring plugin range syntax.

Example ranges:
+------------------+-------------------------------------------------+
| Range definition | Generate an alert if x...                       |
+------------------+-------------------------------------------------+
| 10               | < 0 or > 10, (outside the range of {0 .. 10})   |
+------------------+-------------------------------------------------+
| 10:              | < 10, (outside {10 .. inf})                     |
+------------------+-------------------------------------------------+
| ~:10             | > 10, (outside the range of {-inf .. 10})       |
+------------------+-------------------------------------------------+
| 10:20            | < 10 or > 20, (outside the range of {10 .. 20}) |
+------------------+-------------------------------------------------+
| @10:20           | >= 10 and <= 20, (inside {10 .. 20})            |
+------------------+-------------------------------------------------+
"""

MAX_VERBOSITY = 3

PROBER_ENV = "CHECK_JITTER_PROBER"


class CommandLineError(Exception):
    """Raised instead of exiting when argument parsing fails."""


class PluginArgumentParser(argparse.ArgumentParser):
    """ArgumentParser following the monitoring-plugins exit convention.

    --help and --version exit with UNKNOWN (3); parse errors raise
    CommandLineError so they can be reported as an UNKNOWN status line.
    """

    def error(self, message):
        raise CommandLineError(message)

    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        sys.exit(Status.UNKNOWN)


def _aggregation_method(value: str) -> AggregationMethod:
    try:
        return AggregationMethod.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def select_prober_factory() -> Callable:
    """Pick the prober: ICMP by default, simulated when requested.

    Environment Variables:
        CHECK_JITTER_PROBER: Set to "simulated" to run without sending any
                             packets (dry run with generated RTTs).
    """
    if os.environ.get(PROBER_ENV, "").lower() == "simulated":
        logger.info("Simulated prober explicitly requested via environment variable")
        return lambda address, timeout_ms, socket_type: SimulatedProber()
    return IcmpProber


def build_parser() -> PluginArgumentParser:
    """Build the command line parser."""
    parser = PluginArgumentParser(
        prog="check_jitter",
        description=ABOUT_TEXT,
        epilog=THRESHOLD_TEXT,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-a",
        "--aggregation-method",
        type=_aggregation_method,
        default=AggregationMethod.AVERAGE,
        help="Aggregation method to use for multiple samples (default: average)",
    )
    parser.add_argument("-c", "--critical", help="Critical limit for network jitter in milliseconds")
    parser.add_argument(
        "-D",
        "--dgram-socket",
        action="store_true",
        help="Use a datagram socket instead of a raw socket (expert option)",
    )
    parser.add_argument("-H", "--host", required=True, help="Hostname or IP address to ping")
    parser.add_argument(
        "-m",
        "--min-interval",
        type=int,
        default=0,
        help="Minimum interval between ping samples in milliseconds (default: 0)",
    )
    parser.add_argument(
        "-M",
        "--max-interval",
        type=int,
        default=0,
        help="Maximum interval between ping samples in milliseconds (default: 0)",
    )
    parser.add_argument(
        "-p",
        "--precision",
        type=int,
        default=3,
        help="Precision of the output decimal places (default: 3)",
    )
    parser.add_argument(
        "-s",
        "--samples",
        type=int,
        default=10,
        help="Sample size: the number of pings to send (default: 10)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=int,
        default=1000,
        help="Timeout in milliseconds per individual ping check (default: 1000)",
    )
    parser.add_argument("-w", "--warning", help="Warning limit for network jitter in milliseconds")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose output. Use multiple times to increase verbosity (e.g. -vvv)",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(
    argv: list[str] | None = None,
    prober_factory: Callable | None = None,
    resolver: Callable[[str], list[str]] = default_resolver,
) -> int:
    """Run the plugin, print one status line and return the exit code."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        if args.verbose > MAX_VERBOSITY:
            raise CommandLineError(
                f"argument -v/--verbose: may be given at most {MAX_VERBOSITY} times"
            )
    except CommandLineError as e:
        print(command_line_error_string(str(e)))
        return Status.UNKNOWN

    configure_logging(args.verbose)

    if prober_factory is None:
        prober_factory = select_prober_factory()

    if args.warning is None and args.critical is None:
        print(unknown_string(NoThresholdsError()))
        return Status.UNKNOWN

    config = CheckConfig(
        host=args.host,
        samples=args.samples,
        timeout_ms=args.timeout,
        min_interval_ms=args.min_interval,
        max_interval_ms=args.max_interval,
        aggregation=args.aggregation_method,
        warning=args.warning,
        critical=args.critical,
        precision=args.precision,
        socket_type=SocketType.DATAGRAM if args.dgram_socket else SocketType.RAW,
    )

    try:
        result = run_check(config, prober_factory=prober_factory, resolver=resolver)
    except CheckJitterError as e:
        logger.error("Check failed: %s", e)
        print(unknown_string(e))
        return Status.UNKNOWN
    except Exception as e:
        logger.exception("Unexpected error during check: %s", e)
        print(f"UNKNOWN - An error occurred: '{e}'")
        return Status.UNKNOWN

    print(
        display_string(
            result.status,
            result.jitter.method,
            result.jitter.value,
            result.thresholds,
            config.precision,
        )
    )
    return result.status


if __name__ == "__main__":
    sys.exit(main())
