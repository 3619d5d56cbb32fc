"""
Feed URL validation (SSRF guardrails).

Decides whether a caller-supplied feed URL is safe and policy-permitted to
fetch, and returns it in canonical form. The canonical string is what the
feed cache fingerprints, so equivalent spellings of one URL share an entry.

Only literal hostnames are inspected. Names are never resolved, so a public
hostname that resolves to a private address is NOT blocked here (DNS
rebinding and time-of-check/time-of-use gaps are a known residual risk).
"""

import ipaddress
import logging
import re
import socket
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

REASON_INVALID = "Invalid URL"
REASON_SCHEME = "Only http/https URLs are allowed"
REASON_LOCAL = "Localhost/local domains are not allowed"
REASON_PRIVATE_IP = "Private IP addresses are not allowed"
REASON_ALLOWLIST = "Hostname not in allowlist"

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        # IPv4
        "127.0.0.0/8",     # loopback
        "169.254.0.0/16",  # link-local
        "10.0.0.0/8",      # private
        "172.16.0.0/12",   # private
        "192.168.0.0/16",  # private
        "100.64.0.0/10",   # CGNAT
        "0.0.0.0/8",       # "this network"
        # IPv6
        "::/128",          # unspecified
        "::1/128",         # loopback
        "fe80::/10",       # link-local
        "fc00::/7",        # unique-local
    )
)

# Last label decides whether a host is an IPv4 literal (127.1, 0x7f.1, 2130706433)
_NUMERIC_LABEL = re.compile(r"^(?:\d+|0x[0-9a-f]*)$")
_HOST_CHARS = re.compile(r"^[a-z0-9_.-]+$")


@dataclass(frozen=True)
class Accepted:
    """URL passed every check."""

    normalized_url: str
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Rejected:
    """URL failed a check; ``reason`` is safe to show to the caller."""

    reason: str
    ok: bool = field(default=False, init=False)


ValidationResult = Union[Accepted, Rejected]


@dataclass(frozen=True)
class UrlPolicy:
    """Validation policy. An empty allowlist allows every public host."""

    allowlist: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls, settings) -> "UrlPolicy":
        return cls(allowlist=frozenset(settings.domain_allowlist))


class _InvalidUrl(Exception):
    pass


def _parse_ipv4_literal(host: str) -> Optional[str]:
    """
    Return the dotted-quad form of an IPv4 literal host, or None for names.

    Uses the legacy inet_aton parser so shorthand and hex/octal forms that
    browsers and URL libraries accept (127.1, 0x7f000001) are caught too.
    """
    labels = host.split(".")
    if labels and labels[-1] == "":
        labels = labels[:-1]
    if not labels or not _NUMERIC_LABEL.match(labels[-1]):
        return None
    try:
        return socket.inet_ntoa(socket.inet_aton(".".join(labels)))
    except OSError:
        # Ends in a number but is not a valid address
        raise _InvalidUrl(host)


def _canonical_host(hostname: str) -> str:
    host = hostname.lower()
    if not host.isascii():
        try:
            host = host.encode("idna").decode("ascii")
        except UnicodeError:
            raise _InvalidUrl(hostname)
    if ":" in host:
        try:
            ipaddress.IPv6Address(host)
        except ValueError:
            raise _InvalidUrl(hostname)
        return host
    if not _HOST_CHARS.match(host):
        raise _InvalidUrl(hostname)
    return _parse_ipv4_literal(host) or host


def _ip_literal(host: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def is_blocked_ip(ip: Union[ipaddress.IPv4Address, ipaddress.IPv6Address]) -> bool:
    """Check a literal address against the loopback/link-local/private ranges."""
    return any(ip.version == net.version and ip in net for net in BLOCKED_NETWORKS)


def is_local_hostname(host: str) -> bool:
    h = host.lower().rstrip(".")
    return h == "localhost" or h.endswith(".localhost") or h.endswith(".local")


def passes_allowlist(host: str, allowlist: frozenset) -> bool:
    """
    Suffix match on label boundaries.

    Examples (allowlist {"example.com"}):
        example.com      -> True
        sub.example.com  -> True
        evilexample.com  -> False
    """
    if not allowlist:
        return True
    h = host.lower().rstrip(".")
    return any(h == allowed or h.endswith("." + allowed) for allowed in allowlist)


def _host_and_port(parts):
    hostname = parts.hostname
    if not parts.netloc or not hostname:
        raise _InvalidUrl(parts.geturl())
    # Accessing .port validates it (ValueError on junk or out of range)
    return hostname, parts.port


def _rebuild(parts, scheme: str, host: str, port: Optional[int]) -> str:
    netloc_host = f"[{host}]" if ":" in host else host
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        netloc_host = f"{netloc_host}:{port}"
    userinfo = parts.netloc.rpartition("@")[0] if "@" in parts.netloc else ""
    netloc = f"{userinfo}@{netloc_host}" if userinfo else netloc_host
    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def validate_feed_url(raw: str, policy: Optional[UrlPolicy] = None) -> ValidationResult:
    """
    Validate a caller-supplied feed URL.

    Checks, in order: absolute URL, http/https scheme, localhost/.local names,
    private IP literals, optional domain allowlist.

    Args:
        raw: URL as received from the caller
        policy: Allowlist policy (no allowlist when None)

    Returns:
        Accepted(normalized_url) or Rejected(reason)
    """
    policy = policy or UrlPolicy()

    try:
        parts = urlsplit((raw or "").strip())
    except ValueError:
        return Rejected(REASON_INVALID)

    scheme = parts.scheme.lower()
    if not scheme:
        return Rejected(REASON_INVALID)
    if scheme not in ALLOWED_SCHEMES:
        return Rejected(REASON_SCHEME)

    try:
        hostname, port = _host_and_port(parts)
    except (ValueError, _InvalidUrl):
        return Rejected(REASON_INVALID)

    try:
        host = _canonical_host(hostname)
    except _InvalidUrl:
        return Rejected(REASON_INVALID)

    # Checked after IDNA mapping: fullwidth and circled letters fold to ASCII
    if is_local_hostname(host):
        return Rejected(REASON_LOCAL)

    ip = _ip_literal(host)
    if ip is not None and is_blocked_ip(ip):
        logger.warning(f"SSRF attempt blocked: {raw[:100]}")
        return Rejected(REASON_PRIVATE_IP)

    if not passes_allowlist(host, policy.allowlist):
        return Rejected(REASON_ALLOWLIST)

    return Accepted(_rebuild(parts, scheme, host, port))
