"""DNS probe - resolve names into tagged answers.

Every lookup comes back as exactly one of Resolved / Unresolved / TimedOut,
so callers branch on the answer type instead of poking at None, empty
lists and library exceptions.

Two lookups, two jobs:
- resolve_a(): authoritative A records through dnspython. Used for
  subdomain discovery and wildcard detection, where we want what the zone
  publishes.
- resolve_host(): the system resolver (getaddrinfo), both address families.
  Used for SSRF validation, because that is the path the HTTP client takes
  when it connects.

No caching: a cached answer is exactly what a rebinding attacker wants us
to trust.
"""

import asyncio
import logging
import socket
from typing import List, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver

from surface_recon.util.types import DnsAnswer, Resolved, Unresolved, TimedOut

logger = logging.getLogger(__name__)


def _dedupe(addresses: List[str]) -> tuple:
    seen = []
    for address in addresses:
        if address not in seen:
            seen.append(address)
    return tuple(seen)


class DNSProbe:
    """Async DNS resolver with a hard per-lookup timeout."""

    def __init__(self, timeout: float = 3.0, resolver: Optional[dns.asyncresolver.Resolver] = None):
        """Initialize DNS probe with timeout (seconds) and optional resolver."""
        self.timeout = timeout
        self._resolver = resolver

    def _get_resolver(self) -> dns.asyncresolver.Resolver:
        if self._resolver is None:
            self._resolver = dns.asyncresolver.Resolver()
        return self._resolver

    async def resolve_a(self, fqdn: str) -> DnsAnswer:
        """Look up A records for fqdn.

        The lookup is raced against self.timeout; whichever finishes first
        wins, so a dead nameserver cannot stall the caller.
        """
        try:
            resolver = self._get_resolver()
            answers = await asyncio.wait_for(
                resolver.resolve(fqdn, 'A', lifetime=self.timeout),
                timeout=self.timeout
            )
            addresses = _dedupe([str(rdata) for rdata in answers])
            if not addresses:
                return Unresolved("empty answer")
            return Resolved(addresses)

        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers) as e:
            return Unresolved(type(e).__name__)

        except (asyncio.TimeoutError, dns.exception.Timeout):
            logger.debug(f"DNS timeout for {fqdn}")
            return TimedOut(self.timeout)

        except dns.exception.DNSException as e:
            logger.debug(f"DNS error for {fqdn}: {e}")
            return Unresolved(f"DNS error: {type(e).__name__}")

    async def resolve_host(self, host: str) -> DnsAnswer:
        """Resolve host the way a connecting client would (IPv4 and IPv6)."""
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(host, None, type=socket.SOCK_STREAM),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.debug(f"Host lookup timeout for {host}")
            return TimedOut(self.timeout)
        except (socket.gaierror, UnicodeError) as e:
            return Unresolved(str(e))
        except OSError as e:
            logger.debug(f"Host lookup error for {host}: {e}")
            return Unresolved(str(e))

        # sockaddr[0] is the address; IPv6 may carry a %scope suffix
        addresses = _dedupe([info[4][0].split('%')[0] for info in infos])
        if not addresses:
            return Unresolved("no addresses")
        return Resolved(addresses)
