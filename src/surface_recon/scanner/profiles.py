"""Target profiles - turn a vendor's domain or URL into scan inputs.

Vendor records hold whatever someone typed: "example.com",
"https://www.Example.co.uk/about", "shop.example.com". This module handles
parsing that into a hostname and the organization's base domain.
"""

import logging
import re
from typing import Optional, Tuple
from urllib.parse import urlsplit

from .errors import InvalidTarget
from .normalization import normalize_fqdn, normalize_hostname

logger = logging.getLogger(__name__)

# Public suffixes with two labels - the registrable domain takes three labels
MULTI_PART_SUFFIXES = frozenset({
    'co.uk', 'org.uk', 'ac.uk', 'gov.uk',
    'com.au', 'net.au', 'org.au',
    'co.nz', 'co.jp', 'co.in', 'co.za', 'co.kr',
    'com.br', 'com.cn', 'com.mx', 'com.sg', 'com.tr',
})

_HOST_CHARS_RE = re.compile(r'^[a-z0-9._:-]+$')


def extract_base_domain(hostname: str) -> str:
    """Extract the registrable domain from a hostname.

    Examples:
        extract_base_domain("www.example.com") → "example.com"
        extract_base_domain("shop.example.co.uk") → "example.co.uk"
        extract_base_domain("example.com") → "example.com"
    """
    parts = hostname.lower().rstrip('.').split('.')
    if len(parts) > 2:
        last_two = '.'.join(parts[-2:])
        if last_two in MULTI_PART_SUFFIXES:
            return '.'.join(parts[-3:])
    return '.'.join(parts[-2:])


def to_url(target: str) -> str:
    """Add https:// to a bare domain; leave full URLs alone."""
    target = target.strip()
    if target.lower().startswith(('http://', 'https://')):
        return target
    return f"https://{target}"


def parse_target(target: str) -> Tuple[str, str]:
    """Split a domain or URL into (url, hostname).

    Any host a URL can carry is accepted: multi-label names, single labels
    like "intranet", IPv4 and IPv6 literals. Whether it may be contacted is
    the SSRF guard's call, not ours.

    Raises InvalidTarget if there is no usable host.
    """
    if not target or not target.strip():
        raise InvalidTarget("Empty target")

    url = to_url(target)
    try:
        raw_host: Optional[str] = urlsplit(url).hostname
    except ValueError as e:
        raise InvalidTarget(f"Invalid target URL {target!r}: {e}") from e

    hostname = normalize_hostname(raw_host or '')
    if hostname is None or not _HOST_CHARS_RE.match(hostname):
        raise InvalidTarget(f"Invalid target hostname in {target!r}")
    return url, hostname


class TargetProfile:
    """Parsed scan target for subdomain enumeration.

    Stricter than parse_target: the host must be a multi-label DNS name so
    there is a base domain to enumerate under.
    Raises InvalidTarget on input we cannot scan - before any network
    activity happens.
    """

    def __init__(self, target: str):
        """Initialize profile for a domain or URL."""
        self.url, hostname = parse_target(target)

        fqdn = normalize_fqdn(hostname)
        if fqdn is None:
            raise InvalidTarget(f"Invalid target hostname in {target!r}")

        self.hostname = fqdn
        self.base_domain = extract_base_domain(fqdn)
        logger.debug(f"Target profile: {self.hostname} (base domain {self.base_domain})")

    def is_apex_domain(self) -> bool:
        """Check if this is the apex/base domain (not a subdomain)."""
        return self.hostname == self.base_domain
