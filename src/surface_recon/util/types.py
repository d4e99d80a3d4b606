"""Core data types used across the recon engine.

These types make scan inputs and results explicit and consistent.
Policies and per-item outcomes are frozen; the two aggregate results are
filled in by the coordinating coroutine and handed back to the caller.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, List, FrozenSet, Tuple, Union


DEFAULT_BLOCKED_HOSTS = frozenset({
    'localhost',
    '127.0.0.1',
    '0.0.0.0',
    '::1',
    # Cloud metadata endpoints
    '169.254.169.254',
    'metadata.google.internal',
    'metadata',
    'instance-data',
    'fd00:ec2::254',
    '100.100.100.200',
})

DEFAULT_USER_AGENT = 'Mozilla/5.0 (compatible; SurfaceRecon-SecurityBot/1.0)'


class WildcardMatch(Enum):
    """How a candidate's addresses are compared with the wildcard answer.

    EXACT: every resolved address equals the wildcard IP (literal set equality)
    OVERLAP: any resolved address appears in the wildcard's address set
    """
    EXACT = "exact"
    OVERLAP = "overlap"


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True)
class ScanPolicy:
    """SSRF policy applied to every outbound request of one scan.

    Immutable for the lifetime of an invocation. Host entries match the
    host itself and any subdomain of it.
    """
    allow_private_ips: bool = False
    allowed_protocols: FrozenSet[str] = frozenset({'http', 'https'})
    allowed_hosts: FrozenSet[str] = frozenset()
    blocked_hosts: FrozenSet[str] = DEFAULT_BLOCKED_HOSTS
    max_redirects: int = 5

    def __post_init__(self):
        if self.max_redirects < 0:
            raise ValueError("max_redirects must be >= 0")
        # Accept any iterable from callers, store lower-cased frozensets
        object.__setattr__(self, 'allowed_protocols',
                           frozenset(p.lower().rstrip(':') for p in self.allowed_protocols))
        object.__setattr__(self, 'allowed_hosts',
                           frozenset(h.lower().rstrip('.') for h in self.allowed_hosts))
        object.__setattr__(self, 'blocked_hosts',
                           frozenset(h.lower().rstrip('.') for h in self.blocked_hosts))


@dataclass
class ScanConfig:
    """Runtime tuning for the engine.

    All values can come from .env (see util.env.load_config).
    """
    dns_timeout: float = 3.0
    probe_timeout: float = 3.0
    http_timeout: float = 8.0

    # Subdomain enumeration
    enum_batch_size: int = 10
    enum_max_discoveries: int = 20
    wildcard_match: WildcardMatch = WildcardMatch.EXACT

    # Crawling
    crawl_batch_size: int = 5
    crawl_max_pages: int = 50
    crawl_time_budget: float = 30.0
    max_body_bytes: int = 500_000

    allow_insecure_tls: bool = False
    user_agent: str = DEFAULT_USER_AGENT


# ============================================================================
# DNS ANSWERS
# ============================================================================

@dataclass(frozen=True)
class Resolved:
    """Name resolved to at least one address."""
    addresses: Tuple[str, ...]


@dataclass(frozen=True)
class Unresolved:
    """Name does not exist, has no records, or the lookup failed."""
    reason: str = ""


@dataclass(frozen=True)
class TimedOut:
    """Lookup did not finish inside its time budget."""
    after: float = 0.0


DnsAnswer = Union[Resolved, Unresolved, TimedOut]


# ============================================================================
# VALIDATION & FETCH
# ============================================================================

@dataclass(frozen=True)
class ValidationOutcome:
    """Result of checking one URL against a ScanPolicy."""
    valid: bool
    error: Optional[str] = None
    resolved_ip: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'error': self.error,
            'resolved_ip': self.resolved_ip,
        }


@dataclass(frozen=True)
class FetchResponse:
    """Settled response of a guarded fetch.

    Header names are lower-cased. `body` holds at most the byte cap the
    caller asked for; `truncated` says whether more was available.
    """
    url: str
    status: int
    headers: Dict[str, str]
    body: bytes = b""
    redirects: Tuple[str, ...] = ()
    truncated: bool = False

    @property
    def content_type(self) -> str:
        return self.headers.get('content-type', '')

    @property
    def location(self) -> Optional[str]:
        return self.headers.get('location')

    @property
    def text(self) -> str:
        charset = 'utf-8'
        for part in self.content_type.split(';')[1:]:
            key, _, value = part.strip().partition('=')
            if key.lower() == 'charset' and value:
                charset = value.strip('"\' ')
        try:
            return self.body.decode(charset, errors='replace')
        except LookupError:
            return self.body.decode('utf-8', errors='replace')


# ============================================================================
# SUBDOMAIN ENUMERATION
# ============================================================================

@dataclass(frozen=True)
class AccessCheck:
    """Outcome of the HTTPS-then-HTTP reachability probe."""
    accessible: bool
    status: Optional[int] = None
    has_ssl: Optional[bool] = None
    redirects_to: Optional[str] = None


@dataclass(frozen=True)
class WildcardInfo:
    """What the random-name probe told us about the zone."""
    has_wildcard: bool
    wildcard_ip: Optional[str] = None
    wildcard_ips: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class SubdomainProbe:
    """One candidate's outcome."""
    subdomain: str
    full_domain: str
    resolved: bool
    ip_addresses: Optional[Tuple[str, ...]] = None
    accessible: Optional[bool] = None
    http_status: Optional[int] = None
    redirects_to: Optional[str] = None
    has_ssl: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subdomain': self.subdomain,
            'full_domain': self.full_domain,
            'resolved': self.resolved,
            'ip_addresses': list(self.ip_addresses) if self.ip_addresses is not None else None,
            'accessible': self.accessible,
            'http_status': self.http_status,
            'redirects_to': self.redirects_to,
            'has_ssl': self.has_ssl,
        }


@dataclass
class SubdomainScanResult:
    """Aggregate of one enumeration run."""
    domain: str
    total_checked: int = 0
    discovered: List[SubdomainProbe] = field(default_factory=list)
    has_wildcard: bool = False
    wildcard_ip: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'domain': self.domain,
            'total_checked': self.total_checked,
            'discovered': [probe.to_dict() for probe in self.discovered],
            'has_wildcard': self.has_wildcard,
            'wildcard_ip': self.wildcard_ip,
        }


# ============================================================================
# CRAWLING
# ============================================================================

@dataclass(frozen=True)
class DiscoveredPage:
    """A fetched page or an externally referenced URL."""
    url: str
    is_external: bool
    title: Optional[str] = None
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    size: Optional[int] = None
    link_text: Optional[str] = None
    found_on: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'title': self.title,
            'status_code': self.status_code,
            'content_type': self.content_type,
            'size': self.size,
            'is_external': self.is_external,
            'link_text': self.link_text,
            'found_on': self.found_on,
        }


@dataclass
class CrawlResult:
    """Aggregate of one crawl."""
    subdomain: str
    base_url: str
    crawled_at: str
    pages_discovered: int = 0
    pages: List[DiscoveredPage] = field(default_factory=list)
    external_links: List[DiscoveredPage] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subdomain': self.subdomain,
            'base_url': self.base_url,
            'crawled_at': self.crawled_at,
            'pages_discovered': self.pages_discovered,
            'pages': [page.to_dict() for page in self.pages],
            'external_links': [link.to_dict() for link in self.external_links],
            'errors': list(self.errors),
        }
