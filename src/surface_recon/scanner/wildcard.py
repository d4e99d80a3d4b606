"""Wildcard DNS detection - critical for accurate subdomain enumeration.

THE PROBLEM:
Some domain administrators configure DNS with a wildcard record:
    *.example.com A 203.0.113.7

This means ANY non-existent subdomain you query will resolve:
    random123.example.com → 203.0.113.7
    vpn.example.com → 203.0.113.7

Without detecting this, every candidate on our list would look like a
live subdomain.

HOW WE SOLVE IT:
Before probing candidates we resolve a random, definitely-not-real name
("nonexistent-<hex>.example.com"). If it resolves, the zone has a
wildcard, and we remember the answer. Candidates whose answer matches the
wildcard answer are treated as DNS noise.

KNOWN LIMITATIONS:
- Matching is by address only, not by HTTP response fingerprint. A genuine
  subdomain hosted on the wildcard's IP is dropped, and a wildcard that
  rotates across many IPs is not recognized.
- The match rule is therefore configurable (WildcardMatch): EXACT drops a
  candidate only when all of its addresses equal the wildcard IP; OVERLAP
  drops it when any address is shared with the wildcard answer.

The result lives in a WildcardInfo value returned to the caller - nothing
is cached on the detector, so concurrent scans never see each other's
answers.

REFERENCE:
RFC 4592 documents wildcard DNS records.
"""

import logging
import secrets
from typing import Iterable

from surface_recon.util.types import WildcardInfo, WildcardMatch, Resolved, Unresolved, TimedOut
from .probes.dns_probe import DNSProbe

logger = logging.getLogger(__name__)


class WildcardDetector:
    """Detects if a domain uses wildcard DNS records."""

    def __init__(self, dns_probe: DNSProbe, num_tests: int = 1):
        """Initialize wildcard detector.

        Args:
            dns_probe: Resolver used for the random-name lookups
            num_tests: Number of random subdomains to try (default: 1)
        """
        self.dns_probe = dns_probe
        self.num_tests = num_tests

    async def detect(self, domain: str) -> WildcardInfo:
        """Probe domain with random names and report what we found.

        The first random name that resolves decides the result. A timeout
        is not conclusive; we move on to the next random name.
        """
        for _ in range(self.num_tests):
            random_subdomain = self._generate_random_subdomain(domain)
            answer = await self.dns_probe.resolve_a(random_subdomain)

            if isinstance(answer, Resolved):
                logger.warning(f"WILDCARD DNS DETECTED for {domain}")
                logger.warning(f"    Wildcard IPs: {', '.join(sorted(answer.addresses))}")
                return WildcardInfo(
                    has_wildcard=True,
                    wildcard_ip=answer.addresses[0],
                    wildcard_ips=frozenset(answer.addresses),
                )
            if isinstance(answer, (Unresolved, TimedOut)):
                continue

        logger.info(f"No wildcard DNS detected for {domain}")
        return WildcardInfo(has_wildcard=False)

    def _generate_random_subdomain(self, domain: str) -> str:
        """FQDN of a random subdomain (e.g., "nonexistent-a1b2c3d4e5f6.example.com")."""
        return f"nonexistent-{secrets.token_hex(6)}.{domain}"


def is_wildcard_match(
    ip_addresses: Iterable[str],
    wildcard: WildcardInfo,
    mode: WildcardMatch = WildcardMatch.EXACT,
) -> bool:
    """Check if a candidate's addresses match the wildcard answer.

    Args:
        ip_addresses: Addresses the candidate resolved to
        wildcard: Result of WildcardDetector.detect()
        mode: EXACT (all addresses equal wildcard_ip) or OVERLAP (any shared)

    Returns:
        True if the candidate should be treated as wildcard noise
    """
    if not wildcard.has_wildcard or wildcard.wildcard_ip is None:
        return False

    addresses = set(ip_addresses)
    if not addresses:
        return False

    if mode is WildcardMatch.OVERLAP:
        known = set(wildcard.wildcard_ips) | {wildcard.wildcard_ip}
        return bool(addresses & known)

    return addresses == {wildcard.wildcard_ip}
