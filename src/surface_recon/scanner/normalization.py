"""Hostname and URL normalization - one canonical form per target.

WHY THIS MATTERS:
Hosts and URLs can be written many different ways that refer to the same
thing:

    "WWW.Example.COM." vs "www.example.com"
    "https://example.com/docs/" vs "https://EXAMPLE.com/docs#intro"

Without normalization the crawler would fetch the same page twice, and the
SSRF policy could be sidestepped with a trailing dot ("localhost.") or
mixed case ("LocalHost") that a naive string compare does not catch.

NORMALIZATION PIPELINE (hosts):
1. Strip whitespace and the trailing root dot
2. Punycode: IDN (Unicode) labels to their ASCII form
3. Lowercase

NORMALIZATION PIPELINE (URLs, used as crawl visited-set keys):
1. Lowercase scheme and host, keep a non-default port
2. Drop the fragment - it never reaches the server
3. Collapse a trailing slash on the path, except the root "/"
4. Keep the query string - "?page=2" is a different resource

REFERENCES:
- RFC 3492: Punycode (IDN encoding)
- RFC 1035: DNS name format rules
- RFC 3986: URI syntax (fragment handling, reference resolution)
"""

import re
import logging
from typing import Iterable, Optional
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {'http': 80, 'https': 443}

_LABEL_RE = re.compile(r'^[a-z0-9_-]+$')


def normalize_hostname(hostname: str) -> Optional[str]:
    """Canonical form of a hostname, or None if it cannot be encoded.

    IP literals pass through lower-cased (IPv6 without brackets).

    Examples:
        normalize_hostname("WWW.Example.COM.") → "www.example.com"
        normalize_hostname("münchen.example.com") → "xn--mnchen-3ya.example.com"
        normalize_hostname("[::1]") → "::1"
    """
    if not hostname or not isinstance(hostname, str):
        return None

    host = hostname.strip().strip('[]').rstrip('.')
    if not host:
        return None

    if ':' in host:
        # IPv6 literal, nothing to punycode
        return host.lower()

    try:
        host = host.encode('idna').decode('ascii')
    except UnicodeError:
        logger.debug(f"Punycode conversion failed for {hostname!r}")
        return None

    return host.lower()


def normalize_fqdn(fqdn: str) -> Optional[str]:
    """Normalize a DNS name and check it is a legal FQDN.

    Returns None for anything that is not a valid multi-label name.
    """
    host = normalize_hostname(fqdn)
    if host is None or not is_valid_dns_name(host):
        return None
    return host


def is_valid_dns_name(fqdn: str) -> bool:
    """Validate DNS name format per RFC 1035.

    Rules:
    - Total length ≤253 characters, at least two labels
    - Each label: 1-63 characters of a-z, 0-9, hyphen (underscore tolerated)
    - Labels do not start or end with a hyphen
    """
    if not fqdn or len(fqdn) > 253:
        return False

    labels = fqdn.split('.')
    if len(labels) < 2:
        return False

    for label in labels:
        if not (1 <= len(label) <= 63):
            return False
        if label.startswith('-') or label.endswith('-'):
            return False
        if not _LABEL_RE.match(label):
            return False

    return True


def host_matches(hostname: str, entries: Iterable[str]) -> bool:
    """True if hostname equals an entry or is a subdomain of one.

    Examples:
        host_matches("api.example.com", {"example.com"}) → True
        host_matches("notexample.com", {"example.com"}) → False
    """
    for entry in entries:
        if hostname == entry or hostname.endswith('.' + entry):
            return True
    return False


def normalize_url(url: str) -> str:
    """Canonical form of a URL for deduplication.

    Examples:
        normalize_url("https://Example.com/docs/#top") → "https://example.com/docs"
        normalize_url("https://example.com") → "https://example.com/"
        normalize_url("http://example.com:80/a?b=1") → "http://example.com/a?b=1"
    """
    try:
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        host = normalize_hostname(parts.hostname or '') or ''
        port = parts.port
    except ValueError:
        return url.strip().lower()

    if ':' in host:
        host = f'[{host}]'
    netloc = host
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        netloc = f'{host}:{port}'

    path = parts.path.rstrip('/') or '/'

    normalized = f'{scheme}://{netloc}{path}'
    if parts.query:
        normalized = f'{normalized}?{parts.query}'
    return normalized
