"""
surface-recon - external attack-surface reconnaissance for vendor assessments
"""

__version__ = "1.0.0"

from surface_recon.util.types import (
    ScanPolicy,
    ScanConfig,
    WildcardMatch,
    ValidationOutcome,
    FetchResponse,
    SubdomainProbe,
    SubdomainScanResult,
    DiscoveredPage,
    CrawlResult,
)
from surface_recon.util.env import load_config, load_policy
from surface_recon.scanner.errors import (
    ReconError,
    PolicyBlocked,
    TooManyRedirects,
    TransportFailure,
    InvalidTarget,
)
from surface_recon.scanner.ssrf_guard import validate_url, guarded_fetch, GuardedFetcher, is_private_ip
from surface_recon.scanner.enumeration import SubdomainEnumerator
from surface_recon.scanner.crawler import PageCrawler
from surface_recon.scanner.runner import ReconEngine

__all__ = [
    'ScanPolicy',
    'ScanConfig',
    'WildcardMatch',
    'ValidationOutcome',
    'FetchResponse',
    'SubdomainProbe',
    'SubdomainScanResult',
    'DiscoveredPage',
    'CrawlResult',
    'load_config',
    'load_policy',
    'ReconError',
    'PolicyBlocked',
    'TooManyRedirects',
    'TransportFailure',
    'InvalidTarget',
    'validate_url',
    'guarded_fetch',
    'GuardedFetcher',
    'is_private_ip',
    'SubdomainEnumerator',
    'PageCrawler',
    'ReconEngine',
]
