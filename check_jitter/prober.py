"""ICMP echo prober for check_jitter.

Sends one ICMP echo request per call over a socket that is opened once for
the whole check and measures the round-trip time of the matching reply.
"""

import errno
import ipaddress
import logging
import os
import re
import select
import socket
import struct
import time
from enum import Enum
from typing import Callable, Protocol

from check_jitter.errors import (
    InvalidHostError,
    PermissionDeniedError,
    ResolutionError,
    TransportError,
)
from check_jitter.models import FailureReason, ProbeFailure, ProbeOutcome, ProbeSuccess

logger = logging.getLogger(__name__)

ICMP_ECHO_REPLY = 0
ICMP_DEST_UNREACHABLE = 3
ICMP_ECHO_REQUEST = 8
ICMPV6_DEST_UNREACHABLE = 1
ICMPV6_ECHO_REQUEST = 128
ICMPV6_ECHO_REPLY = 129

REPLY_ECHO = "echo_reply"
REPLY_UNREACHABLE = "unreachable"

ICMP_HEADER = struct.Struct("!BBHHH")
PAYLOAD = b"check_jitter" + bytes(range(20))

_UNREACHABLE_ERRNOS = {errno.EHOSTUNREACH, errno.ENETUNREACH, errno.ECONNREFUSED}

_HOSTNAME_LABEL = re.compile(r"(?!-)[A-Za-z0-9-]{1,63}(?<!-)")


class SocketType(str, Enum):
    """ICMP transport: raw (privileged) or datagram (unprivileged ping socket)."""

    RAW = "raw"
    DATAGRAM = "datagram"

    def __str__(self) -> str:
        return self.value.capitalize()


class Prober(Protocol):
    """Protocol defining the interface for probers."""

    def probe(self, sequence_index: int) -> ProbeOutcome:
        """Send one echo request and wait for its reply or the timeout."""
        ...


def checksum(data: bytes) -> int:
    """Compute the Internet checksum (RFC 1071) of data."""
    if len(data) % 2:
        data += b"\x00"

    total = 0
    for i in range(0, len(data), 2):
        total += (data[i] << 8) + data[i + 1]

    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return (~total) & 0xFFFF


def build_echo_request(identifier: int, sequence: int, ipv6: bool = False) -> bytes:
    """Build one ICMP (or ICMPv6) echo request packet.

    The ICMPv6 checksum covers a pseudo-header the kernel fills in, so it is
    left at zero for IPv6 and computed here only for IPv4.
    """
    icmp_type = ICMPV6_ECHO_REQUEST if ipv6 else ICMP_ECHO_REQUEST
    header = ICMP_HEADER.pack(icmp_type, 0, 0, identifier, sequence)
    if ipv6:
        return header + PAYLOAD
    csum = checksum(header + PAYLOAD)
    return ICMP_HEADER.pack(icmp_type, 0, csum, identifier, sequence) + PAYLOAD


def strip_ipv4_header(packet: bytes) -> bytes:
    """Drop the IPv4 header a raw socket prepends to received packets."""
    if not packet or packet[0] >> 4 != 4:
        return packet
    header_length = (packet[0] & 0x0F) * 4
    return packet[header_length:]


def classify_reply(
    packet: bytes,
    identifier: int | None,
    sequence: int,
    ipv6: bool = False,
) -> str | None:
    """Classify one received ICMP message against the echo we sent.

    Args:
        packet: ICMP message (IP header already stripped).
        identifier: Expected echo identifier, or None to skip the check
            (datagram sockets have the identifier rewritten by the kernel).
        sequence: Expected echo sequence number.
        ipv6: Whether the message is ICMPv6.

    Returns:
        REPLY_ECHO for our echo reply, REPLY_UNREACHABLE for a destination
        unreachable error quoting our echo, None for anything unrelated.
    """
    if len(packet) < ICMP_HEADER.size:
        return None

    icmp_type, _code, _csum, reply_id, reply_seq = ICMP_HEADER.unpack_from(packet)
    echo_reply = ICMPV6_ECHO_REPLY if ipv6 else ICMP_ECHO_REPLY
    unreachable = ICMPV6_DEST_UNREACHABLE if ipv6 else ICMP_DEST_UNREACHABLE

    if icmp_type == echo_reply:
        if reply_seq == sequence and (identifier is None or reply_id == identifier):
            return REPLY_ECHO
        return None

    if icmp_type == unreachable:
        # The error quotes the offending IP header plus the first 8 bytes of our echo.
        quoted = packet[ICMP_HEADER.size:]
        if ipv6:
            quoted = quoted[40:]
        else:
            quoted = strip_ipv4_header(quoted)
        if len(quoted) < ICMP_HEADER.size:
            return None
        _t, _c, _s, quoted_id, quoted_seq = ICMP_HEADER.unpack_from(quoted)
        if quoted_seq == sequence and (identifier is None or quoted_id == identifier):
            return REPLY_UNREACHABLE

    return None


def validate_host(host: str) -> str:
    """Validate that host is an IP literal or a syntactically valid hostname.

    Raises:
        InvalidHostError: If host is neither.
    """
    if not host or not host.strip():
        raise InvalidHostError(host)

    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        pass

    name = host[:-1] if host.endswith(".") else host
    if len(name) > 253 or not all(_HOSTNAME_LABEL.fullmatch(label) for label in name.split(".")):
        raise InvalidHostError(host)
    return host


def default_resolver(host: str) -> list[str]:
    """Resolve host through the system resolver, preserving order."""
    try:
        infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_IP)
    except (socket.gaierror, UnicodeError) as e:
        raise ResolutionError(host, str(e)) from e

    addresses: list[str] = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        address = sockaddr[0]
        if address not in addresses:
            addresses.append(address)
    return addresses


def resolve_host(host: str, resolver: Callable[[str], list[str]] = default_resolver) -> str:
    """Resolve host to a single IP address.

    IP literals are returned unchanged without a lookup. For names, the first
    address returned by the resolver is used and the rest are skipped.

    Raises:
        ResolutionError: If the lookup fails or returns nothing.
    """
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        pass

    addresses = resolver(host)
    if not addresses:
        raise ResolutionError(host)

    if len(addresses) > 1:
        logger.debug("Host %s resolved to %s, using %s", host, addresses, addresses[0])
    else:
        logger.debug("Host %s resolved to %s", host, addresses[0])
    return addresses[0]


class IcmpProber:
    """Prober that sends ICMP echo requests over a raw or datagram socket.

    Use as a context manager: the socket is opened on enter and closed on
    exit, including when the check aborts with an error.

        with IcmpProber("192.0.2.1", timeout_ms=1000) as prober:
            outcome = prober.probe(0)
    """

    def __init__(
        self,
        address: str,
        timeout_ms: int = 1000,
        socket_type: SocketType = SocketType.RAW,
    ):
        """Initialize the prober.

        Args:
            address: Resolved IPv4 or IPv6 address.
            timeout_ms: Maximum time to wait for each reply in milliseconds.
            socket_type: Raw (needs privilege) or datagram socket.
        """
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

        self.address = address
        self.timeout_ms = timeout_ms
        self.timeout_seconds = timeout_ms / 1000.0
        self.socket_type = socket_type
        self.ipv6 = ipaddress.ip_address(address).version == 6
        self.identifier = os.getpid() & 0xFFFF
        self._sock: socket.socket | None = None

        logger.debug(
            "IcmpProber initialized: address=%s, timeout_ms=%d, socket=%s",
            address,
            timeout_ms,
            socket_type,
        )

    def __enter__(self) -> "IcmpProber":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        """Create the ICMP socket.

        Raises:
            PermissionDeniedError: If the process may not open this socket type.
            TransportError: For any other socket creation failure.
        """
        if self._sock is not None:
            return

        family = socket.AF_INET6 if self.ipv6 else socket.AF_INET
        proto = socket.IPPROTO_ICMPV6 if self.ipv6 else socket.IPPROTO_ICMP
        kind = socket.SOCK_RAW if self.socket_type == SocketType.RAW else socket.SOCK_DGRAM

        try:
            self._sock = socket.socket(family, kind, proto)
        except PermissionError as e:
            raise PermissionDeniedError(str(self.socket_type)) from e
        except OSError as e:
            if e.errno in (errno.EPERM, errno.EACCES):
                raise PermissionDeniedError(str(self.socket_type)) from e
            raise TransportError(f"Unable to open {self.socket_type} ICMP socket: {e}") from e

        logger.debug("Opened %s ICMP socket for %s", self.socket_type, self.address)

    def close(self) -> None:
        """Close the socket if it is open."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None
            logger.debug("Closed ICMP socket for %s", self.address)

    def probe(self, sequence_index: int) -> ProbeOutcome:
        """Send one echo request and wait for the matching reply.

        Args:
            sequence_index: Position of this probe in the sample sequence.

        Returns:
            ProbeSuccess with the round-trip time, or ProbeFailure on timeout,
            destination unreachable or another socket error.
        """
        if self._sock is None:
            raise TransportError("ICMP socket is not open")

        sequence = sequence_index & 0xFFFF
        packet = build_echo_request(self.identifier, sequence, self.ipv6)
        expected_id = self.identifier if self.socket_type == SocketType.RAW else None

        start = time.perf_counter()
        deadline = start + self.timeout_seconds
        try:
            self._sock.sendto(packet, (self.address, 0))
        except OSError as e:
            if e.errno in _UNREACHABLE_ERRNOS:
                logger.debug("Probe %d unreachable on send: %s", sequence_index, e)
                return ProbeFailure(sequence_index, FailureReason.UNREACHABLE)
            logger.warning("Probe %d send error: %s", sequence_index, e)
            return ProbeFailure(sequence_index, FailureReason.OTHER)

        while True:
            remaining = deadline - time.perf_counter()
            if remaining <= 0:
                logger.debug("Probe %d timed out after %dms", sequence_index, self.timeout_ms)
                return ProbeFailure(sequence_index, FailureReason.TIMEOUT)

            try:
                readable, _, _ = select.select([self._sock], [], [], remaining)
                if not readable:
                    continue
                data, _addr = self._sock.recvfrom(65535)
            except OSError as e:
                if e.errno in _UNREACHABLE_ERRNOS:
                    return ProbeFailure(sequence_index, FailureReason.UNREACHABLE)
                logger.warning("Probe %d receive error: %s", sequence_index, e)
                return ProbeFailure(sequence_index, FailureReason.OTHER)

            received = time.perf_counter()

            if self.socket_type == SocketType.RAW and not self.ipv6:
                data = strip_ipv4_header(data)

            verdict = classify_reply(data, expected_id, sequence, self.ipv6)
            if verdict == REPLY_ECHO:
                rtt_ms = (received - start) * 1000.0
                logger.debug("Probe %d reply in %.3fms", sequence_index, rtt_ms)
                return ProbeSuccess(sequence_index, rtt_ms)
            if verdict == REPLY_UNREACHABLE:
                logger.debug("Probe %d destination unreachable", sequence_index)
                return ProbeFailure(sequence_index, FailureReason.UNREACHABLE)
