"""HTTP probe - check reachability of a discovered subdomain.

One HEAD request to https://<fqdn>/, falling back to http://<fqdn>/ when
HTTPS fails. Redirects are reported, not followed: the Location header is
what tells us where a subdomain points (login portals, parked pages).

All requests go through the GuardedFetcher, so a probe can never reach an
address the SSRF policy forbids.
"""

import logging

from surface_recon.util.types import AccessCheck
from surface_recon.scanner.errors import PolicyBlocked, TransportFailure, TooManyRedirects
from surface_recon.scanner.ssrf_guard import GuardedFetcher

logger = logging.getLogger(__name__)


class HTTPProbe:
    """HEAD-based reachability probe with a short per-request timeout."""

    def __init__(self, fetcher: GuardedFetcher, timeout: float = 3.0):
        """Initialize HTTP probe with a guarded fetcher and timeout (seconds)."""
        self.fetcher = fetcher
        self.timeout = timeout

    async def check_access(self, fqdn: str) -> AccessCheck:
        """Try HTTPS first, then HTTP.

        Returns AccessCheck with:
          - accessible=True and has_ssl set by whichever scheme answered
          - status and redirects_to from that response
          - accessible=False if both failed or were blocked
        """
        for scheme in ('https', 'http'):
            url = f"{scheme}://{fqdn}/"
            try:
                response = await self.fetcher.fetch(
                    url,
                    method='HEAD',
                    timeout=self.timeout,
                    follow_redirects=False,
                )
            except PolicyBlocked as e:
                logger.debug(f"Probe of {url} blocked by SSRF policy: {e}")
                continue
            except (TransportFailure, TooManyRedirects) as e:
                logger.debug(f"Probe of {url} failed: {e}")
                continue

            return AccessCheck(
                accessible=True,
                status=response.status,
                has_ssl=(scheme == 'https'),
                redirects_to=response.location or None,
            )

        return AccessCheck(accessible=False)
