"""Unit tests for the ICMP prober, packet handling and host resolution.

Sockets are replaced with in-memory fakes so no privileges or network access
are required.
"""

import errno
import socket
import struct

import pytest

from check_jitter import prober as prober_module
from check_jitter.errors import (
    InvalidHostError,
    PermissionDeniedError,
    ResolutionError,
    TransportError,
)
from check_jitter.models import FailureReason, ProbeFailure, ProbeSuccess
from check_jitter.prober import (
    ICMP_HEADER,
    REPLY_ECHO,
    REPLY_UNREACHABLE,
    IcmpProber,
    SocketType,
    build_echo_request,
    checksum,
    classify_reply,
    resolve_host,
    strip_ipv4_header,
    validate_host,
)


def ipv4_header(payload_length=0):
    """Minimal 20-byte IPv4 header (IHL=5)."""
    return struct.pack(
        "!BBHHHBBH4s4s",
        0x45, 0, 20 + payload_length, 0, 0, 64, 1, 0,
        bytes([192, 0, 2, 1]), bytes([192, 0, 2, 2]),
    )


def echo_reply(identifier, sequence, ipv6=False):
    icmp_type = 129 if ipv6 else 0
    return ICMP_HEADER.pack(icmp_type, 0, 0, identifier, sequence) + b"payload"


def unreachable_v4(identifier, sequence):
    quoted = ipv4_header(8) + ICMP_HEADER.pack(8, 0, 0, identifier, sequence)
    return ICMP_HEADER.pack(3, 1, 0, 0, 0) + quoted


class FakeSocket:
    """In-memory socket: records sent packets and replays queued replies."""

    def __init__(self, replies=None, send_error=None):
        self.replies = list(replies or [])
        self.send_error = send_error
        self.sent = []
        self.closed = False

    def sendto(self, data, address):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((data, address))
        return len(data)

    def recvfrom(self, size):
        return self.replies.pop(0), ("192.0.2.1", 0)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_socket(monkeypatch):
    """Install a FakeSocket factory and a select() that reports queued replies."""
    created = []

    def install(replies=None, send_error=None):
        sock = FakeSocket(replies, send_error)

        def factory(family, kind, proto):
            created.append((family, kind, proto))
            return sock

        monkeypatch.setattr(prober_module.socket, "socket", factory)
        monkeypatch.setattr(
            prober_module.select,
            "select",
            lambda r, w, x, timeout: (r if sock.replies else [], [], []),
        )
        return sock, created

    return install


class TestChecksum:
    """Test the Internet checksum."""

    def test_known_value(self):
        """Test checksum against a hand-computed value."""
        assert checksum(b"\x08\x00\x00\x00\x00\x01\x00\x01") == 0xF7FD

    def test_odd_length_is_padded(self):
        """Test odd-length data is padded with a zero byte."""
        assert checksum(b"\x01") == checksum(b"\x01\x00")

    def test_packet_checksums_to_zero(self):
        """Test a built IPv4 echo request verifies (checksum over it is 0)."""
        packet = build_echo_request(0x1234, 7)
        assert checksum(packet) == 0


class TestBuildEchoRequest:
    """Test echo request construction."""

    def test_ipv4_header_fields(self):
        """Test type, code, identifier and sequence for IPv4."""
        icmp_type, code, _csum, ident, seq = ICMP_HEADER.unpack_from(build_echo_request(0xBEEF, 3))
        assert (icmp_type, code, ident, seq) == (8, 0, 0xBEEF, 3)

    def test_ipv6_type_and_zero_checksum(self):
        """Test ICMPv6 echo request leaves the checksum to the kernel."""
        icmp_type, _code, csum, _ident, _seq = ICMP_HEADER.unpack_from(
            build_echo_request(1, 1, ipv6=True)
        )
        assert icmp_type == 128
        assert csum == 0


class TestReplyParsing:
    """Test IP header stripping and reply classification."""

    def test_strip_ipv4_header(self):
        """Test the IHL-sized header is removed."""
        body = echo_reply(1, 2)
        assert strip_ipv4_header(ipv4_header(len(body)) + body) == body

    def test_strip_leaves_non_ipv4_untouched(self):
        """Test data that is not an IPv4 packet is returned as-is."""
        body = echo_reply(1, 2)
        assert strip_ipv4_header(body) == body
        assert strip_ipv4_header(b"") == b""

    def test_matching_echo_reply(self):
        """Test our echo reply is recognized."""
        assert classify_reply(echo_reply(10, 5), 10, 5) == REPLY_ECHO

    def test_wrong_sequence_ignored(self):
        """Test replies for other sequence numbers are ignored."""
        assert classify_reply(echo_reply(10, 4), 10, 5) is None

    def test_wrong_identifier_ignored(self):
        """Test replies for other processes are ignored."""
        assert classify_reply(echo_reply(11, 5), 10, 5) is None

    def test_identifier_not_checked_when_none(self):
        """Test datagram mode matches on sequence only."""
        assert classify_reply(echo_reply(999, 5), None, 5) == REPLY_ECHO

    def test_own_echo_request_ignored(self):
        """Test looped-back echo requests are not replies."""
        assert classify_reply(build_echo_request(10, 5), 10, 5) is None

    def test_unreachable_quoting_our_echo(self):
        """Test destination unreachable for our probe."""
        assert classify_reply(unreachable_v4(10, 5), 10, 5) == REPLY_UNREACHABLE

    def test_unreachable_for_other_probe_ignored(self):
        """Test unreachable errors about other packets are ignored."""
        assert classify_reply(unreachable_v4(10, 6), 10, 5) is None

    def test_ipv6_echo_reply(self):
        """Test ICMPv6 echo reply type."""
        assert classify_reply(echo_reply(1, 2, ipv6=True), 1, 2, ipv6=True) == REPLY_ECHO
        assert classify_reply(echo_reply(1, 2, ipv6=False), 1, 2, ipv6=True) is None

    def test_ipv6_unreachable(self):
        """Test ICMPv6 destination unreachable quoting our echo."""
        quoted = bytes(40) + ICMP_HEADER.pack(128, 0, 0, 1, 2)
        packet = ICMP_HEADER.pack(1, 3, 0, 0, 0) + quoted
        assert classify_reply(packet, 1, 2, ipv6=True) == REPLY_UNREACHABLE

    def test_truncated_packet(self):
        """Test packets shorter than an ICMP header are ignored."""
        assert classify_reply(b"\x00\x00", 1, 1) is None


class TestValidateHost:
    """Test host syntax validation."""

    @pytest.mark.parametrize(
        "host", ["192.0.2.1", "::1", "2001:db8::1", "localhost", "example.com", "a-b.example.org."]
    )
    def test_valid(self, host):
        """Test IP literals and hostnames are accepted."""
        assert validate_host(host) == host

    @pytest.mark.parametrize(
        "host", ["", "   ", "exa mple.com", "-bad.example.com", "bad-.example.com", "a..b", "a" * 64 + ".com"]
    )
    def test_invalid(self, host):
        """Test malformed hosts raise InvalidHostError."""
        with pytest.raises(InvalidHostError):
            validate_host(host)


class TestResolveHost:
    """Test resolution with an injected resolver."""

    @staticmethod
    def mock_resolver(host):
        table = {
            "localhost": ["127.0.0.1"],
            "ipv6-localhost": ["::1"],
            "multi.example.com": ["192.0.2.1", "192.0.2.2", "192.0.2.3"],
            "empty.example.com": [],
        }
        if host not in table:
            raise ResolutionError(host, "unknown host")
        return table[host]

    def test_ipv4_literal_skips_resolver(self):
        """Test IP literals are returned without a lookup."""
        def boom(host):
            raise AssertionError("resolver must not be called")

        assert resolve_host("192.168.1.1", boom) == "192.168.1.1"
        assert resolve_host("::1", boom) == "::1"

    def test_hostname(self):
        """Test a hostname resolves via the resolver."""
        assert resolve_host("localhost", self.mock_resolver) == "127.0.0.1"
        assert resolve_host("ipv6-localhost", self.mock_resolver) == "::1"

    def test_first_address_wins(self):
        """Test the first of several addresses is used."""
        assert resolve_host("multi.example.com", self.mock_resolver) == "192.0.2.1"

    def test_empty_result(self):
        """Test an empty lookup is a resolution error."""
        with pytest.raises(ResolutionError, match="DNS Lookup failed for: empty.example.com"):
            resolve_host("empty.example.com", self.mock_resolver)

    def test_resolver_error_propagates(self):
        """Test resolver errors propagate unchanged."""
        with pytest.raises(ResolutionError, match="unknown host"):
            resolve_host("nowhere.example.com", self.mock_resolver)

    def test_default_resolver_wraps_gaierror(self, monkeypatch):
        """Test getaddrinfo failures become ResolutionError."""
        def fail(*args, **kwargs):
            raise socket.gaierror(-2, "Name or service not known")

        monkeypatch.setattr(prober_module.socket, "getaddrinfo", fail)
        with pytest.raises(ResolutionError, match="DNS resolution error for 'nowhere.invalid'"):
            prober_module.default_resolver("nowhere.invalid")

    def test_default_resolver_deduplicates(self, monkeypatch):
        """Test repeated addresses from getaddrinfo are collapsed in order."""
        infos = [
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("192.0.2.5", 0)),
            (socket.AF_INET, socket.SOCK_DGRAM, 17, "", ("192.0.2.5", 0)),
            (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("2001:db8::5", 0, 0, 0)),
        ]
        monkeypatch.setattr(prober_module.socket, "getaddrinfo", lambda *a, **k: infos)
        assert prober_module.default_resolver("dual.example.com") == ["192.0.2.5", "2001:db8::5"]


class TestIcmpProberInitialization:
    """Test IcmpProber configuration."""

    def test_defaults(self):
        """Test default timeout and socket type."""
        p = IcmpProber("192.0.2.1")
        assert p.timeout_ms == 1000
        assert p.timeout_seconds == 1.0
        assert p.socket_type is SocketType.RAW
        assert p.ipv6 is False

    def test_ipv6_address(self):
        """Test IPv6 addresses select ICMPv6."""
        assert IcmpProber("::1").ipv6 is True

    @pytest.mark.parametrize("timeout", [0, -100])
    def test_invalid_timeout(self, timeout):
        """Test non-positive timeouts are rejected."""
        with pytest.raises(ValueError, match="timeout_ms must be positive"):
            IcmpProber("192.0.2.1", timeout_ms=timeout)

    def test_socket_type_display(self):
        """Test socket type names used in logs and messages."""
        assert str(SocketType.RAW) == "Raw"
        assert str(SocketType.DATAGRAM) == "Datagram"


class TestIcmpProberSocket:
    """Test socket lifecycle and transport errors."""

    def test_raw_socket_opened_and_closed(self, fake_socket):
        """Test the context manager opens one raw socket and closes it."""
        sock, created = fake_socket()
        with IcmpProber("192.0.2.1") as p:
            assert p._sock is sock
        assert created == [(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP)]
        assert sock.closed

    def test_datagram_socket(self, fake_socket):
        """Test datagram mode opens a SOCK_DGRAM ICMP socket."""
        _sock, created = fake_socket()
        with IcmpProber("192.0.2.1", socket_type=SocketType.DATAGRAM):
            pass
        assert created == [(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_ICMP)]

    def test_ipv6_socket(self, fake_socket):
        """Test IPv6 targets open an ICMPv6 socket."""
        _sock, created = fake_socket()
        with IcmpProber("::1"):
            pass
        assert created == [(socket.AF_INET6, socket.SOCK_RAW, socket.IPPROTO_ICMPV6)]

    def test_closed_on_error(self, fake_socket):
        """Test the socket is released when the block raises."""
        sock, _created = fake_socket()
        with pytest.raises(RuntimeError):
            with IcmpProber("192.0.2.1"):
                raise RuntimeError("boom")
        assert sock.closed

    def test_permission_denied(self, monkeypatch):
        """Test missing privilege raises PermissionDeniedError with a remedy."""
        def denied(*args):
            raise PermissionError(errno.EPERM, "Operation not permitted")

        monkeypatch.setattr(prober_module.socket, "socket", denied)
        with pytest.raises(PermissionDeniedError, match="insufficient permissions") as excinfo:
            IcmpProber("192.0.2.1").open()
        assert "CAP_NET_RAW" in str(excinfo.value)
        assert isinstance(excinfo.value, TransportError)

    def test_other_socket_error(self, monkeypatch):
        """Test other creation failures raise TransportError."""
        def unsupported(*args):
            raise OSError(errno.EAFNOSUPPORT, "Address family not supported")

        monkeypatch.setattr(prober_module.socket, "socket", unsupported)
        with pytest.raises(TransportError, match="Unable to open"):
            IcmpProber("192.0.2.1").open()

    def test_probe_requires_open_socket(self):
        """Test probing before open() is an error."""
        with pytest.raises(TransportError, match="not open"):
            IcmpProber("192.0.2.1").probe(0)


class TestIcmpProberProbe:
    """Test single probe outcomes."""

    def test_success_raw_ipv4(self, fake_socket):
        """Test a matching reply yields ProbeSuccess."""
        p = IcmpProber("192.0.2.1")
        body = echo_reply(p.identifier, 4)
        sock, _created = fake_socket([ipv4_header(len(body)) + body])

        with p:
            outcome = p.probe(4)

        assert isinstance(outcome, ProbeSuccess)
        assert outcome.sequence_index == 4
        assert outcome.rtt_ms >= 0
        packet, address = sock.sent[0]
        assert address == ("192.0.2.1", 0)
        assert ICMP_HEADER.unpack_from(packet)[3:] == (p.identifier, 4)

    def test_skips_unrelated_packets(self, fake_socket):
        """Test unrelated traffic is skipped until our reply arrives."""
        p = IcmpProber("192.0.2.1")
        other = echo_reply(p.identifier, 99)
        ours = echo_reply(p.identifier, 1)
        fake_socket([ipv4_header(len(other)) + other, ipv4_header(len(ours)) + ours])

        with p:
            assert isinstance(p.probe(1), ProbeSuccess)

    def test_datagram_ignores_identifier(self, fake_socket):
        """Test datagram replies without an IP header and rewritten identifier."""
        p = IcmpProber("192.0.2.1", socket_type=SocketType.DATAGRAM)
        fake_socket([echo_reply((p.identifier + 1) & 0xFFFF, 2)])

        with p:
            assert isinstance(p.probe(2), ProbeSuccess)

    def test_timeout(self, fake_socket):
        """Test no reply within the timeout yields a timeout failure."""
        fake_socket([])
        with IcmpProber("192.0.2.1", timeout_ms=5) as p:
            assert p.probe(0) == ProbeFailure(0, FailureReason.TIMEOUT)

    def test_unreachable_reply(self, fake_socket):
        """Test destination unreachable for our probe."""
        p = IcmpProber("192.0.2.1")
        body = unreachable_v4(p.identifier, 3)
        fake_socket([ipv4_header(len(body)) + body])

        with p:
            assert p.probe(3) == ProbeFailure(3, FailureReason.UNREACHABLE)

    def test_unreachable_on_send(self, fake_socket):
        """Test EHOSTUNREACH from sendto is an unreachable failure."""
        fake_socket(send_error=OSError(errno.EHOSTUNREACH, "No route to host"))
        with IcmpProber("192.0.2.1") as p:
            assert p.probe(0) == ProbeFailure(0, FailureReason.UNREACHABLE)

    def test_other_send_error(self, fake_socket):
        """Test other send errors are recorded, not raised."""
        fake_socket(send_error=OSError(errno.EINVAL, "Invalid argument"))
        with IcmpProber("192.0.2.1") as p:
            assert p.probe(0) == ProbeFailure(0, FailureReason.OTHER)

    def test_sequence_wraps(self, fake_socket):
        """Test sequence numbers wrap at 16 bits while the index is kept."""
        p = IcmpProber("192.0.2.1")
        body = echo_reply(p.identifier, 0)
        fake_socket([ipv4_header(len(body)) + body])

        with p:
            outcome = p.probe(65536)
        assert isinstance(outcome, ProbeSuccess)
        assert outcome.sequence_index == 65536
