"""SSRF guard - the only way the engine talks to the network.

THE PROBLEM:
The targets we scan come from vendor records and from DNS zones we do not
control. Either can point the scanner at our own infrastructure:

    https://169.254.169.254/latest/meta-data     (cloud metadata, literal IP)
    https://internal.vendor.example              (public name, A record 10.0.0.5)
    https://vendor.example → 302 → http://127.0.0.1:8080/admin

HOW WE SOLVE IT:
1. validate_url() checks scheme, host lists, and the address the name
   resolves to *right now* - never just the hostname string.
2. GuardedFetcher turns off transport-level redirects. Every Location is
   resolved against the current URL and validated again before we follow
   it, and the hop count is capped by the policy.
3. The HTTP session connects through PolicyResolver, which re-checks every
   address at connect time. A name that rebinds between validation and
   connect is refused at the socket layer instead of being trusted.

Private ranges come straight from the IANA special-purpose registries;
anything we cannot parse as an address is treated as private (fail closed).

REFERENCE:
OWASP SSRF Prevention Cheat Sheet; RFC 1918, RFC 4193, RFC 4291, RFC 6598.
"""

import asyncio
import ipaddress
import logging
import re
import socket
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union
from urllib.parse import urljoin, urlsplit

import aiohttp
from aiohttp.abc import AbstractResolver

from surface_recon.util.types import (
    ScanConfig, ScanPolicy, ValidationOutcome, FetchResponse,
    DnsAnswer, Resolved, Unresolved, TimedOut,
)
from .errors import PolicyBlocked, TooManyRedirects, TransportFailure
from .normalization import normalize_hostname, host_matches
from .probes.dns_probe import DNSProbe

logger = logging.getLogger(__name__)

HostResolver = Callable[[str], Awaitable[DnsAnswer]]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

PRIVATE_IPV4_NETWORKS = [
    ipaddress.ip_network('10.0.0.0/8'),
    ipaddress.ip_network('172.16.0.0/12'),
    ipaddress.ip_network('192.168.0.0/16'),
    ipaddress.ip_network('127.0.0.0/8'),
    ipaddress.ip_network('169.254.0.0/16'),   # link-local, includes 169.254.169.254
    ipaddress.ip_network('0.0.0.0/8'),
    ipaddress.ip_network('100.64.0.0/10'),    # shared address space (RFC 6598)
]

PRIVATE_IPV6_NETWORKS = [
    ipaddress.ip_network('::1/128'),
    ipaddress.ip_network('::/128'),
    ipaddress.ip_network('fe80::/10'),        # link-local
    ipaddress.ip_network('fc00::/7'),         # unique local, covers fd00::/8
]

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})

_SAFE_HOST_RE = re.compile(r'^[a-z0-9._:-]+$')
_CHUNK_SIZE = 64 * 1024


def is_private_ip(address: str) -> bool:
    """True if address is in a private, loopback, link-local or reserved range.

    IPv4-mapped IPv6 addresses (::ffff:10.0.0.1) are judged by the IPv4
    address they embed.
    """
    try:
        ip = ipaddress.ip_address(address.split('%')[0])
    except ValueError:
        return True

    if ip.version == 6:
        mapped = ip.ipv4_mapped
        if mapped is not None:
            return any(mapped in net for net in PRIVATE_IPV4_NETWORKS)
        return any(ip in net for net in PRIVATE_IPV6_NETWORKS)

    return any(ip in net for net in PRIVATE_IPV4_NETWORKS)


def _is_ip_literal(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
        return True
    except ValueError:
        return False


def _canonical_ip(address: str) -> Optional[IPAddress]:
    """Parse address, dropping any %scope and unwrapping IPv4-mapped IPv6."""
    try:
        ip = ipaddress.ip_address(address.split('%')[0])
    except ValueError:
        return None
    if ip.version == 6 and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def blocked_addresses(policy: ScanPolicy) -> FrozenSet[IPAddress]:
    """IP-literal entries of policy.blocked_hosts, in canonical form."""
    addresses = (_canonical_ip(entry) for entry in policy.blocked_hosts)
    return frozenset(ip for ip in addresses if ip is not None)


def is_blocked_address(address: str, policy: ScanPolicy) -> bool:
    """True if address is a blocked host written in any notation.

    Checked regardless of allow_private_ips: "::ffff:a9fe:a9fe" and a DNS
    name answering 169.254.169.254 are both the metadata endpoint.
    """
    ip = _canonical_ip(address)
    return ip is not None and ip in blocked_addresses(policy)


async def validate_url(
    url: str,
    policy: Optional[ScanPolicy] = None,
    resolve: Optional[HostResolver] = None,
) -> ValidationOutcome:
    """Decide whether url is safe to contact under policy.

    Checks, in order: parse, scheme, blocked hosts, allowed hosts, literal
    IP, then DNS. IP entries of blocked_hosts are matched in any notation,
    against literal hosts and resolved addresses alike, even when private
    IPs are allowed. Any resolved address in a private range fails the URL -
    a public-looking name pointing inward is exactly the rebinding case.
    """
    policy = policy or ScanPolicy()

    try:
        parts = urlsplit(url)
        raw_host = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except (ValueError, TypeError, AttributeError):
        return ValidationOutcome(valid=False, error=f"Invalid URL: {url}")

    if not raw_host or '\\' in parts.netloc or any(ch.isspace() for ch in parts.netloc):
        return ValidationOutcome(valid=False, error=f"Invalid URL: {url}")

    scheme = parts.scheme.lower()
    if scheme not in policy.allowed_protocols:
        return ValidationOutcome(valid=False, error=f"Protocol {scheme}: not allowed")

    hostname = normalize_hostname(raw_host)
    if hostname is None or not _SAFE_HOST_RE.match(hostname):
        return ValidationOutcome(valid=False, error=f"Invalid hostname in URL: {url}")

    if host_matches(hostname, policy.blocked_hosts) or is_blocked_address(hostname, policy):
        return ValidationOutcome(valid=False, error=f"Host {hostname} is blocked")

    if policy.allowed_hosts and not host_matches(hostname, policy.allowed_hosts):
        return ValidationOutcome(valid=False, error=f"Host {hostname} not in allowlist")

    if _is_ip_literal(hostname):
        if not policy.allow_private_ips and is_private_ip(hostname):
            return ValidationOutcome(valid=False, error=f"Direct IP {hostname} is a private address")
        return ValidationOutcome(valid=True, resolved_ip=hostname)

    if resolve is None:
        resolve = DNSProbe().resolve_host
    answer = await resolve(hostname)

    if isinstance(answer, TimedOut):
        return ValidationOutcome(valid=False, error=f"DNS lookup timed out for {hostname}")
    if isinstance(answer, Unresolved):
        return ValidationOutcome(valid=False, error=f"Failed to resolve hostname: {hostname}")
    if not isinstance(answer, Resolved):
        raise TypeError(f"Unexpected DNS answer type: {answer!r}")

    for address in answer.addresses:
        if is_blocked_address(address, policy):
            logger.warning(f"DNS rebinding attempt detected: {hostname} resolved to blocked address {address}")
            return ValidationOutcome(valid=False, error=f"Host {hostname} resolves to blocked address {address}")

    if not policy.allow_private_ips:
        for address in answer.addresses:
            if is_private_ip(address):
                logger.warning(
                    f"DNS rebinding attempt detected: {hostname} resolved to private IP {address}"
                )
                return ValidationOutcome(
                    valid=False,
                    error=f"Host {hostname} resolves to private IP {address}"
                )

    return ValidationOutcome(valid=True, resolved_ip=answer.addresses[0])


class BlockedAddressError(OSError):
    """Raised inside the connector when a resolved address is private or blocked."""


class PolicyResolver(AbstractResolver):
    """aiohttp resolver that refuses private addresses at connect time.

    Wraps another resolver (threaded getaddrinfo by default). Validation
    happens before each request too; this closes the window between that
    check and the actual connect.
    """

    def __init__(self, policy: ScanPolicy, resolver: Optional[AbstractResolver] = None):
        self._policy = policy
        self._resolver = resolver or aiohttp.ThreadedResolver()

    async def resolve(self, host: str, port: int = 0, family: int = socket.AF_INET) -> List[Dict]:
        infos = await self._resolver.resolve(host, port, family)
        for info in infos:
            if is_blocked_address(info['host'], self._policy):
                logger.warning(f"Connect-time block: {host} resolved to blocked address {info['host']}")
                raise BlockedAddressError(f"Host {host} resolves to blocked address {info['host']}")
        if self._policy.allow_private_ips:
            return infos
        for info in infos:
            if is_private_ip(info['host']):
                logger.warning(f"Connect-time block: {host} resolved to private IP {info['host']}")
                raise BlockedAddressError(f"Host {host} resolves to private IP {info['host']}")
        return infos

    async def close(self) -> None:
        await self._resolver.close()


class GuardedFetcher:
    """HTTP client that validates every hop against the SSRF policy.

    Use as an async context manager; it owns the aiohttp session unless one
    is passed in.
    """

    def __init__(
        self,
        policy: Optional[ScanPolicy] = None,
        config: Optional[ScanConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        resolve: Optional[HostResolver] = None,
    ):
        self.policy = policy or ScanPolicy()
        self.config = config or ScanConfig()
        self.session = session
        self._owns_session = session is None
        self._resolve = resolve or DNSProbe(timeout=self.config.dns_timeout).resolve_host

    async def __aenter__(self):
        if self.session is None:
            if self.config.allow_insecure_tls:
                logger.warning(
                    "TLS certificate validation is disabled (ALLOW_INSECURE_TLS=true) "
                    "- this may allow MITM attacks"
                )
            connector_kwargs = {'resolver': PolicyResolver(self.policy), 'limit': 20}
            if self.config.allow_insecure_tls:
                connector_kwargs['ssl'] = False
            self.session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(**connector_kwargs),
                timeout=aiohttp.ClientTimeout(total=self.config.http_timeout),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    async def validate(self, url: str) -> ValidationOutcome:
        """Validate url with this fetcher's policy and resolver."""
        return await validate_url(url, self.policy, self._resolve)

    async def fetch(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        max_body: Optional[int] = None,
        body_content_types: Optional[Iterable[str]] = None,
        follow_redirects: bool = True,
    ) -> FetchResponse:
        """Fetch url, following at most policy.max_redirects validated redirects.

        Args:
            method: HTTP method of the first hop
            timeout: total seconds per hop (default: config.http_timeout)
            max_body: byte cap on the body read (default: config.max_body_bytes)
            body_content_types: only read the body when Content-Type contains
                one of these; None reads every body
            follow_redirects: False returns the first 3xx as-is

        Raises:
            PolicyBlocked: a hop failed validation or connect-time checks
            TooManyRedirects: the chain is longer than the policy allows
            TransportFailure: DNS/connect/TLS/timeout/read error
        """
        if self.session is None:
            raise RuntimeError("Fetcher not initialized. Use async context manager.")

        current_url = url
        current_method = method.upper()
        redirects: List[str] = []
        content_types = tuple(t.lower() for t in body_content_types) if body_content_types else None

        while True:
            outcome = await self.validate(current_url)
            if not outcome.valid:
                if redirects:
                    logger.warning(f"Redirect blocked: {current_url} ({outcome.error})")
                    raise PolicyBlocked(f"Redirect blocked: {outcome.error}", current_url)
                logger.warning(f"SSRF protection blocked request to {current_url}: {outcome.error}")
                raise PolicyBlocked(outcome.error or "URL validation failed", current_url)

            response = await self._send(
                current_method, current_url, headers, timeout,
                max_body if max_body is not None else self.config.max_body_bytes,
                content_types, follow_redirects, tuple(redirects),
            )

            if not follow_redirects or response.status not in REDIRECT_STATUSES or not response.location:
                return response

            try:
                next_url = urljoin(current_url, response.location)
            except ValueError:
                raise PolicyBlocked(f"Redirect blocked: invalid Location {response.location!r}", current_url)

            if len(redirects) >= self.policy.max_redirects:
                raise TooManyRedirects(url, self.policy.max_redirects)

            if current_method not in ('GET', 'HEAD') and response.status in (301, 302, 303):
                current_method = 'GET'

            logger.debug(f"Following redirect {current_url} -> {next_url}")
            redirects.append(next_url)
            current_url = next_url

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]],
        timeout: Optional[float],
        max_body: int,
        content_types: Optional[Tuple[str, ...]],
        follow_redirects: bool,
        redirects: Tuple[str, ...],
    ) -> FetchResponse:
        request_headers = {'User-Agent': self.config.user_agent}
        if headers:
            request_headers.update(headers)
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.config.http_timeout)

        try:
            async with self.session.request(
                method,
                url,
                headers=request_headers,
                allow_redirects=False,
                timeout=client_timeout,
            ) as resp:
                response_headers = {k.lower(): v for k, v in resp.headers.items()}
                content_type = response_headers.get('content-type', '').lower()

                will_follow = (
                    follow_redirects
                    and resp.status in REDIRECT_STATUSES
                    and 'location' in response_headers
                )
                wants_body = content_types is None or any(t in content_type for t in content_types)

                body, truncated = b"", False
                if method != 'HEAD' and not will_follow and wants_body:
                    body, truncated = await _read_capped(resp, max_body)

                return FetchResponse(
                    url=url,
                    status=resp.status,
                    headers=response_headers,
                    body=body,
                    redirects=redirects,
                    truncated=truncated,
                )

        except aiohttp.ClientConnectorError as e:
            if isinstance(getattr(e, 'os_error', None), BlockedAddressError) or \
                    isinstance(e.__cause__, BlockedAddressError):
                raise PolicyBlocked(str(e.__cause__ or e.os_error), url) from e
            raise TransportFailure(f"Connection failed: {e}", url) from e
        except asyncio.TimeoutError as e:
            raise TransportFailure("Request timeout", url) from e
        except aiohttp.ClientError as e:
            raise TransportFailure(f"HTTP error: {type(e).__name__}: {e}", url) from e
        except OSError as e:
            raise TransportFailure(f"Socket error: {e}", url) from e


async def _read_capped(resp, limit: int) -> Tuple[bytes, bool]:
    """Read at most limit bytes of the body; report whether more was left."""
    chunks = []
    total = 0
    async for chunk in resp.content.iter_chunked(_CHUNK_SIZE):
        remaining = limit - total
        if len(chunk) > remaining:
            chunks.append(chunk[:remaining])
            return b"".join(chunks), True
        chunks.append(chunk)
        total += len(chunk)
    return b"".join(chunks), False


async def guarded_fetch(
    url: str,
    policy: Optional[ScanPolicy] = None,
    config: Optional[ScanConfig] = None,
    **options,
) -> FetchResponse:
    """One-shot guarded fetch with a throwaway session.

    Convenient for single requests; scans should share one GuardedFetcher.
    """
    async with GuardedFetcher(policy=policy, config=config) as fetcher:
        return await fetcher.fetch(url, **options)
