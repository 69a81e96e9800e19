"""Matrix server name resolution utilities.

Resolves Matrix server names to homeserver base URLs using well-known delegation and
DNS SRV records, and checks resolved hosts against private address ranges.

BlacklistingResolver enforces the address check when the HTTP client connects, so the
addresses that are vetted are the ones that are dialled.
"""

import ipaddress
import logging
import re
import socket
from typing import Any, Dict, Iterable, List, Optional
from aiohttp import ClientSession, ClientTimeout
from aiohttp.resolver import AsyncResolver
from aiodns import DNSResolver
from aiodns.error import DNSError
from pydantic import BaseModel
import sentry_sdk

logger = logging.getLogger(__name__)

DEFAULT_FEDERATION_PORT = 8448

SRV_SERVICES = ("_matrix-fed._tcp", "_matrix._tcp")
"""SRV service labels in lookup order. _matrix._tcp is deprecated but still honoured."""

_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9\-.]{1,255}$")


class ServerName(BaseModel):
    """Parsed Matrix server name.

    ``host`` is a hostname or an IP literal without brackets.
    """

    host: str
    port: Optional[int] = None

    @property
    def is_ip_literal(self) -> bool:
        return is_ip_literal(self.host)


class ResolvedServer(BaseModel):
    """Resolved federation endpoint for a server name."""

    host: str
    port: int

    @property
    def base_url(self) -> str:
        if ":" in self.host:
            return f"https://[{self.host}]:{self.port}"
        return f"https://{self.host}:{self.port}"


def is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def parse_server_name(value: Optional[str]) -> Optional[ServerName]:
    """Parse a server name of the form ``host[:port]``.

    IPv6 literals must be bracketed, e.g. ``[::1]:8448``.

    Args:
        value: Raw server name

    Returns:
        ServerName if the value is well formed, None otherwise
    """
    if value is None:
        return None
    value = value.strip()
    if len(value) == 0:
        return None

    port_text: Optional[str] = None
    if value.startswith("["):
        end = value.find("]")
        if end == -1:
            return None
        host = value[1:end]
        rest = value[end + 1 :]
        if not is_ip_literal(host) or ":" not in host:
            return None
        if len(rest) > 0:
            if not rest.startswith(":"):
                return None
            port_text = rest[1:]
    else:
        host, sep, port_text = value.partition(":")
        if not sep:
            port_text = None
        if not _HOSTNAME_RE.match(host):
            return None

    port: Optional[int] = None
    if port_text is not None:
        if not port_text.isdigit():
            return None
        port = int(port_text)
        if port < 1 or port > 65535:
            return None

    return ServerName(host=host.lower(), port=port)


async def resolve_well_known(
    session: ClientSession, host: str, timeout: Optional[ClientTimeout] = None
) -> Optional[ServerName]:
    """Fetch the delegated server name from https://{host}/.well-known/matrix/server.

    Args:
        session: HTTP client session
        host: Hostname to query
        timeout: Optional request timeout

    Returns:
        The delegated ServerName, or None if there is no usable delegation
    """
    try:
        async with session.get(
            f"https://{host}/.well-known/matrix/server", timeout=timeout
        ) as resp:
            if resp.status != 200:
                return None
            body = await resp.json(content_type=None)
    except Exception as e:
        logger.debug("No well-known delegation for %s: %s", host, e)
        return None

    if not isinstance(body, dict):
        return None
    delegated = body.get("m.server", None)
    if not isinstance(delegated, str):
        return None
    return parse_server_name(delegated)


async def resolve_srv(
    host: str, timeout: Optional[float] = None
) -> Optional[ResolvedServer]:
    """Look up the federation SRV records for a hostname.

    The record with the lowest priority wins, ties broken by the highest weight. A
    target of "." means the service is not offered under that label.

    Args:
        host: Hostname to look up
        timeout: Optional DNS query timeout in seconds

    Returns:
        ResolvedServer for the preferred record, None if there are no records
    """
    resolver = DNSResolver(timeout=timeout)
    for service in SRV_SERVICES:
        try:
            results = await resolver.query(f"{service}.{host}", "SRV")
        except DNSError:
            continue
        except Exception as e:
            sentry_sdk.capture_exception(e)
            continue
        records = sorted(results or [], key=lambda r: (r.priority, -r.weight))
        first_result = next(iter(records), None)
        if first_result is None:
            continue
        target = first_result.host.rstrip(".").lower()
        if len(target) == 0:
            logger.debug("%s.%s is explicitly unavailable", service, host)
            continue
        return ResolvedServer(host=target, port=first_result.port)
    return None


async def resolve_host_port(
    server_name: ServerName, timeout: Optional[float] = None
) -> ResolvedServer:
    """Resolve a host without explicit port via SRV, falling back to 8448."""
    if server_name.port is not None:
        return ResolvedServer(host=server_name.host, port=server_name.port)
    if server_name.is_ip_literal:
        return ResolvedServer(host=server_name.host, port=DEFAULT_FEDERATION_PORT)
    srv = await resolve_srv(server_name.host, timeout)
    if srv is not None:
        return srv
    return ResolvedServer(host=server_name.host, port=DEFAULT_FEDERATION_PORT)


async def resolve_server(
    session: ClientSession, value: str, timeout: Optional[ClientTimeout] = None
) -> Optional[ResolvedServer]:
    """Resolve a Matrix server name to its federation endpoint.

    Args:
        session: HTTP client session
        value: Server name, e.g. ``example.org`` or ``example.org:8448``
        timeout: Optional timeout for the well-known request and DNS lookups

    Returns:
        ResolvedServer if the server name is valid, None otherwise
    """
    server_name = parse_server_name(value)
    if server_name is None:
        return None

    dns_timeout = timeout.total if timeout is not None else None

    if server_name.is_ip_literal or server_name.port is not None:
        return await resolve_host_port(server_name, dns_timeout)

    delegated = await resolve_well_known(session, server_name.host, timeout)
    if delegated is not None:
        logger.debug("Server %s delegates to %s", server_name.host, delegated.host)
        return await resolve_host_port(delegated, dns_timeout)

    return await resolve_host_port(server_name, dns_timeout)


def is_blacklisted_address(address: str) -> bool:
    """Check whether an IP address falls in a range homeservers must not live in."""
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return True
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


async def resolve_addresses(host: str, timeout: Optional[float] = None) -> List[str]:
    """Resolve A and AAAA records for a host."""
    if is_ip_literal(host):
        return [host]
    resolver = DNSResolver(timeout=timeout)
    addresses: List[str] = []
    for qtype in ("A", "AAAA"):
        try:
            results = await resolver.query(host, qtype)
        except DNSError:
            continue
        addresses.extend(result.host for result in results or [])
    return addresses


async def is_blacklisted_host(host: str, timeout: Optional[float] = None) -> bool:
    """Check whether a host resolves to any blacklisted address.

    Hosts that do not resolve at all are treated as blacklisted.
    """
    addresses = await resolve_addresses(host, timeout)
    if len(addresses) == 0:
        return True
    return any(is_blacklisted_address(address) for address in addresses)


class BlacklistingResolver(AsyncResolver):
    """aiodns-backed resolver for aiohttp that drops blacklisted addresses.

    Used as the resolver of the client session's TCPConnector, so every hostname the
    service connects to is checked against the addresses actually dialled. Hosts in
    ``allowed_hosts`` are passed through unfiltered. aiohttp does not consult the
    resolver for IP literals, those are checked by the caller.
    """

    def __init__(
        self, allowed_hosts: Iterable[str] = (), timeout: Optional[float] = None
    ):
        super().__init__(timeout=timeout)
        self.allowed_hosts = frozenset(host.lower() for host in allowed_hosts)

    async def resolve(
        self, host: str, port: int = 0, family: int = socket.AF_INET
    ) -> List[Dict[str, Any]]:
        results = await super().resolve(host, port, family)
        if host.lower() in self.allowed_hosts:
            return results

        allowed = [
            result for result in results if not is_blacklisted_address(result["host"])
        ]
        if len(allowed) == 0:
            logger.warning("Refusing to connect to %s: blacklisted address", host)
            raise OSError(f"{host} resolves only to blacklisted addresses")
        return allowed
