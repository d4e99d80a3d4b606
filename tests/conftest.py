"""Test fixtures and in-memory fakes for the recon engine.

Nothing here touches the network: the HTTP session and DNS prober are
replaced by fakes that serve canned answers and record what was asked.
"""

from typing import Callable, Dict, List, Optional, Tuple, Union

import pytest

from surface_recon.util.types import (
    AccessCheck, ScanConfig, ScanPolicy, Resolved, Unresolved, TimedOut,
)
from surface_recon.scanner.ssrf_guard import GuardedFetcher


PUBLIC_IP = '93.184.216.34'


class FakeContent:
    """Stands in for aiohttp's StreamReader."""

    def __init__(self, body: bytes):
        self._body = body

    async def iter_chunked(self, size: int):
        for start in range(0, len(self._body), size):
            yield self._body[start:start + size]


class FakeResponse:
    """Minimal aiohttp.ClientResponse used as an async context manager."""

    def __init__(self, status: int = 200, headers: Optional[Dict[str, str]] = None, body: bytes = b""):
        self.status = status
        self.headers = dict(headers or {})
        self.content = FakeContent(body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


def html_page(body: str, title: Optional[str] = None, status: int = 200) -> FakeResponse:
    head = f"<head><title>{title}</title></head>" if title else ""
    return FakeResponse(
        status=status,
        headers={'Content-Type': 'text/html; charset=utf-8'},
        body=f"<html>{head}<body>{body}</body></html>".encode('utf-8'),
    )


def redirect(location: str, status: int = 302) -> FakeResponse:
    return FakeResponse(status=status, headers={'Location': location})


Route = Union[FakeResponse, BaseException, Callable[[], FakeResponse]]


class _RequestContext:
    def __init__(self, route: Route):
        self._route = route
        self._response = None

    async def __aenter__(self):
        route = self._route
        if isinstance(route, BaseException):
            raise route
        if callable(route) and not isinstance(route, FakeResponse):
            route = route()
        self._response = route
        return await route.__aenter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._response is None:
            return False
        return await self._response.__aexit__(exc_type, exc_val, exc_tb)


class FakeSession:
    """Serves canned responses by exact URL and records every request."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.requests: List[Tuple[str, str, dict]] = []
        self.closed = False

    @property
    def requested_urls(self) -> List[str]:
        return [url for _, url, _ in self.requests]

    def request(self, method: str, url: str, **kwargs):
        self.requests.append((method, url, kwargs))
        route = self.routes.get(url)
        if route is None:
            route = FakeResponse(status=404, headers={'Content-Type': 'text/plain'}, body=b"not found")
        return _RequestContext(route)

    async def close(self):
        self.closed = True


class FakeDNS:
    """In-memory DNS with A records, connect-path records and timeouts.

    `wildcard` answers every name under a zone that has no explicit record.
    """

    def __init__(
        self,
        records: Optional[Dict[str, List[str]]] = None,
        timeouts: Optional[set] = None,
        wildcard: Optional[Tuple[str, List[str]]] = None,
    ):
        self.records = {name.lower(): list(ips) for name, ips in (records or {}).items()}
        self.timeouts = set(timeouts or ())
        self.wildcard = wildcard
        self.a_queries: List[str] = []
        self.host_queries: List[str] = []

    def _answer(self, name: str):
        name = name.lower()
        if name in self.timeouts:
            return TimedOut(3.0)
        if name in self.records:
            return Resolved(tuple(self.records[name]))
        if self.wildcard is not None:
            zone, ips = self.wildcard
            if name.endswith('.' + zone):
                return Resolved(tuple(ips))
        return Unresolved("NXDOMAIN")

    async def resolve_a(self, fqdn: str):
        self.a_queries.append(fqdn)
        return self._answer(fqdn)

    async def resolve_host(self, host: str):
        self.host_queries.append(host)
        return self._answer(host)


class FakeHTTPProbe:
    """Records reachability probes and answers with a fixed AccessCheck."""

    def __init__(self, access: Optional[AccessCheck] = None):
        self.access = access or AccessCheck(accessible=True, status=200, has_ssl=True)
        self.checked: List[str] = []

    async def check_access(self, fqdn: str) -> AccessCheck:
        self.checked.append(fqdn)
        return self.access


@pytest.fixture
def policy() -> ScanPolicy:
    return ScanPolicy()


@pytest.fixture
def config() -> ScanConfig:
    return ScanConfig()


@pytest.fixture
def public_dns() -> FakeDNS:
    """example.com and its www host resolve to a public address."""
    return FakeDNS(records={'example.com': [PUBLIC_IP], 'www.example.com': [PUBLIC_IP]})


def make_fetcher(session: FakeSession, dns: FakeDNS, policy: Optional[ScanPolicy] = None,
                 config: Optional[ScanConfig] = None) -> GuardedFetcher:
    """GuardedFetcher wired to fakes; already usable without `async with`."""
    return GuardedFetcher(policy=policy, config=config, session=session, resolve=dns.resolve_host)
