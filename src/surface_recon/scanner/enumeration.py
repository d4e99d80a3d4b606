"""Subdomain enumeration - find the live hosts of a vendor's domain.

PIPELINE:
1. Derive the base domain from the target (www.example.co.uk → example.co.uk)
2. Wildcard probe - must run first, or every candidate "exists"
3. Resolve a fixed, priority-ordered candidate list in batches of 10
4. For each candidate that resolves to something other than the wildcard:
   SSRF-validate, then HEAD over HTTPS (falling back to HTTP)
5. Stop after 20 discoveries

This is a prioritized sweep, not a brute force: the candidate list is the
few dozen names real organizations actually use.
"""

import logging
from functools import partial
from typing import Awaitable, Callable, Optional

from surface_recon.util.types import (
    ScanConfig, ScanPolicy, SubdomainProbe, SubdomainScanResult, ValidationOutcome,
    WildcardInfo, Resolved, Unresolved, TimedOut,
)
from surface_recon.util.concurrency import ConcurrencyController, chunked
from .profiles import TargetProfile
from .probes.dns_probe import DNSProbe
from .probes.http_probe import HTTPProbe
from .ssrf_guard import validate_url
from .wildcard import WildcardDetector, is_wildcard_match

logger = logging.getLogger(__name__)

UrlValidator = Callable[[str], Awaitable[ValidationOutcome]]

# Prioritized by likelihood
COMMON_SUBDOMAINS = [
    # High priority - very common
    'www', 'api', 'app', 'mail', 'webmail', 'remote', 'blog', 'shop',
    'store', 'support', 'help', 'docs', 'dev', 'staging', 'test', 'beta',
    'demo', 'portal', 'admin', 'login', 'secure', 'cdn', 'assets',
    'static', 'media', 'images', 'img',
    # Medium priority - common services
    'ftp', 'sftp', 'vpn', 'gateway', 'proxy', 'ns1', 'ns2', 'dns', 'mx',
    'smtp', 'pop', 'imap',
    # Lower priority - still worth checking
    'dashboard', 'console', 'panel', 'manage', 'my', 'account',
    'accounts', 'billing', 'status', 'monitoring', 'metrics', 'analytics',
    'tracking', 'events', 'webhook', 'webhooks', 'callback', 'oauth',
    'auth', 'sso', 'identity', 'id',
]


class SubdomainEnumerator:
    """Discovers which common subdomains of an organization are live.

    Holds collaborators only. Everything learned during a scan (wildcard
    answer, discoveries) lives in locals of collect() and its return value.
    """

    def __init__(
        self,
        dns_probe: DNSProbe,
        http_probe: HTTPProbe,
        policy: Optional[ScanPolicy] = None,
        config: Optional[ScanConfig] = None,
        validator: Optional[UrlValidator] = None,
        candidates: Optional[list] = None,
    ):
        self.dns_probe = dns_probe
        self.http_probe = http_probe
        self.policy = policy or ScanPolicy()
        self.config = config or ScanConfig()
        self.validator = validator or partial(
            validate_url, policy=self.policy, resolve=dns_probe.resolve_host
        )
        self.candidates = list(candidates) if candidates is not None else list(COMMON_SUBDOMAINS)

    async def collect(self, target_url: str) -> SubdomainScanResult:
        """Enumerate live subdomains of the organization behind target_url.

        Raises InvalidTarget if target_url has no usable hostname.
        """
        profile = TargetProfile(target_url)
        domain = profile.base_domain

        logger.info(f"Starting subdomain enumeration for {domain}")
        result = SubdomainScanResult(domain=domain)

        wildcard = await WildcardDetector(self.dns_probe).detect(domain)
        result.has_wildcard = wildcard.has_wildcard
        result.wildcard_ip = wildcard.wildcard_ip

        controller = ConcurrencyController(max_workers=self.config.enum_batch_size)

        for batch in chunked(self.candidates, self.config.enum_batch_size):
            outcomes = await controller.gather(
                batch, partial(self._check_subdomain, base_domain=domain, wildcard=wildcard)
            )
            result.total_checked += len(batch)

            for name, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.debug(f"Subdomain check for {name}.{domain} failed: {outcome}")
                    continue
                if outcome is None or not outcome.resolved:
                    continue
                if is_wildcard_match(outcome.ip_addresses or (), wildcard, self.config.wildcard_match):
                    continue
                result.discovered.append(outcome)

            if len(result.discovered) >= self.config.enum_max_discoveries:
                logger.debug(
                    f"Reached subdomain limit ({self.config.enum_max_discoveries}), stopping enumeration"
                )
                break

        logger.info(
            f"Subdomain scan complete for {domain}: found {len(result.discovered)} subdomains "
            f"({result.total_checked} checked)"
        )
        return result

    async def _check_subdomain(
        self,
        subdomain: str,
        base_domain: str,
        wildcard: WildcardInfo,
    ) -> Optional[SubdomainProbe]:
        """Resolve one candidate and, if it is real, probe it over HTTP.

        Returns None when the name does not resolve or the lookup timed out.
        """
        full_domain = f"{subdomain}.{base_domain}"

        answer = await self.dns_probe.resolve_a(full_domain)
        if isinstance(answer, (Unresolved, TimedOut)):
            return None
        if not isinstance(answer, Resolved):
            raise TypeError(f"Unexpected DNS answer type: {answer!r}")

        resolved = SubdomainProbe(
            subdomain=subdomain,
            full_domain=full_domain,
            resolved=True,
            ip_addresses=answer.addresses,
        )

        # Wildcard noise - no point spending an HTTP probe on it
        if is_wildcard_match(answer.addresses, wildcard, self.config.wildcard_match):
            return resolved

        validation = await self.validator(f"https://{full_domain}")
        if not validation.valid:
            logger.debug(f"Skipping HTTP check for {full_domain} - SSRF protection: {validation.error}")
            return resolved

        access = await self.http_probe.check_access(full_domain)
        return SubdomainProbe(
            subdomain=subdomain,
            full_domain=full_domain,
            resolved=True,
            ip_addresses=answer.addresses,
            accessible=access.accessible,
            http_status=access.status,
            redirects_to=access.redirects_to,
            has_ssl=access.has_ssl,
        )
