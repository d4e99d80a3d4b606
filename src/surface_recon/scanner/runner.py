"""Recon engine - wires the guard, probes, enumerator and crawler together.

This is what the scan-orchestration service calls:

    async with ReconEngine(policy=load_policy(), config=load_config()) as engine:
        subdomains = await engine.collect_subdomains("vendor.example")
        crawl = await engine.crawl(subdomains.discovered[0].full_domain)

The engine owns the network resources of one invocation (an HTTP session
with the policy resolver, a DNS prober). It keeps no scan results between
calls; each collect/crawl returns a fresh record for the caller to persist.
"""

import logging
from typing import Optional

from surface_recon.util.types import ScanConfig, ScanPolicy, SubdomainScanResult, CrawlResult
from surface_recon.util.log import log_target
from surface_recon.util.time import Stopwatch
from .crawler import PageCrawler
from .enumeration import SubdomainEnumerator
from .probes.dns_probe import DNSProbe
from .probes.http_probe import HTTPProbe
from .ssrf_guard import GuardedFetcher

logger = logging.getLogger(__name__)


class ReconEngine:
    """Entry point for subdomain discovery and crawling of one vendor."""

    def __init__(
        self,
        policy: Optional[ScanPolicy] = None,
        config: Optional[ScanConfig] = None,
        fetcher: Optional[GuardedFetcher] = None,
        dns_probe: Optional[DNSProbe] = None,
    ):
        """Initialize engine with SSRF policy and tuning config."""
        self.policy = policy or ScanPolicy()
        self.config = config or ScanConfig()
        self.dns_probe = dns_probe or DNSProbe(timeout=self.config.dns_timeout)
        self.fetcher = fetcher or GuardedFetcher(
            policy=self.policy,
            config=self.config,
            resolve=self.dns_probe.resolve_host,
        )

        self.enumerator = SubdomainEnumerator(
            dns_probe=self.dns_probe,
            http_probe=HTTPProbe(self.fetcher, timeout=self.config.probe_timeout),
            policy=self.policy,
            config=self.config,
            validator=self.fetcher.validate,
        )
        self.crawler = PageCrawler(self.fetcher, config=self.config)

        logger.debug(
            f"Recon engine initialized (private IPs allowed: {self.policy.allow_private_ips}, "
            f"max redirects: {self.policy.max_redirects})"
        )

    async def __aenter__(self):
        await self.fetcher.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.fetcher.__aexit__(exc_type, exc_val, exc_tb)

    async def collect_subdomains(self, target: str) -> SubdomainScanResult:
        """Enumerate live subdomains of the organization behind target."""
        stopwatch = Stopwatch()
        with log_target(target):
            result = await self.enumerator.collect(target)
        logger.info(f"Subdomain enumeration of {result.domain} took {stopwatch.elapsed_ms():.0f} ms")
        return result

    async def crawl(self, host_or_url: str) -> CrawlResult:
        """Crawl one host (bare hostname or URL)."""
        stopwatch = Stopwatch()
        with log_target(host_or_url):
            result = await self.crawler.crawl(host_or_url)
        logger.info(f"Crawl of {result.subdomain} took {stopwatch.elapsed_ms():.0f} ms")
        return result
