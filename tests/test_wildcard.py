"""
Unit Tests for wildcard DNS detection
"""

import pytest

from surface_recon.util.types import WildcardInfo, WildcardMatch
from surface_recon.scanner.wildcard import WildcardDetector, is_wildcard_match
from conftest import FakeDNS


class TestWildcardDetector:
    """Random-name probing"""

    @pytest.mark.asyncio
    async def test_wildcard_zone_detected(self):
        dns = FakeDNS(wildcard=('example.com', ['203.0.113.7']))

        info = await WildcardDetector(dns).detect('example.com')

        assert info.has_wildcard is True
        assert info.wildcard_ip == '203.0.113.7'
        assert info.wildcard_ips == frozenset({'203.0.113.7'})

    @pytest.mark.asyncio
    async def test_plain_zone_has_no_wildcard(self):
        dns = FakeDNS(records={'www.example.com': ['93.184.216.34']})

        info = await WildcardDetector(dns).detect('example.com')

        assert info == WildcardInfo(has_wildcard=False)

    @pytest.mark.asyncio
    async def test_probe_name_is_random_child_of_domain(self):
        dns = FakeDNS()
        detector = WildcardDetector(dns, num_tests=2)

        await detector.detect('example.com')

        assert len(dns.a_queries) == 2
        assert all(q.startswith('nonexistent-') and q.endswith('.example.com') for q in dns.a_queries)
        assert dns.a_queries[0] != dns.a_queries[1]

    @pytest.mark.asyncio
    async def test_timeout_is_not_a_wildcard(self):
        class TimeoutDNS(FakeDNS):
            def _answer(self, name):
                from surface_recon.util.types import TimedOut
                return TimedOut(3.0)

        info = await WildcardDetector(TimeoutDNS()).detect('example.com')

        assert info.has_wildcard is False


class TestWildcardMatch:
    """Candidate comparison against the wildcard answer"""

    @pytest.fixture
    def wildcard(self):
        return WildcardInfo(
            has_wildcard=True,
            wildcard_ip='203.0.113.7',
            wildcard_ips=frozenset({'203.0.113.7', '203.0.113.8'}),
        )

    def test_no_wildcard_never_matches(self):
        assert is_wildcard_match(['203.0.113.7'], WildcardInfo(has_wildcard=False)) is False

    def test_empty_answer_never_matches(self, wildcard):
        assert is_wildcard_match([], wildcard) is False

    def test_exact_same_ip(self, wildcard):
        assert is_wildcard_match(['203.0.113.7'], wildcard) is True
        assert is_wildcard_match(('203.0.113.7', '203.0.113.7'), wildcard) is True

    def test_exact_requires_every_address(self, wildcard):
        assert is_wildcard_match(['203.0.113.7', '198.51.100.1'], wildcard) is False
        assert is_wildcard_match(['203.0.113.8'], wildcard) is False

    def test_overlap_any_shared_address(self, wildcard):
        mode = WildcardMatch.OVERLAP

        assert is_wildcard_match(['203.0.113.8'], wildcard, mode) is True
        assert is_wildcard_match(['198.51.100.1', '203.0.113.7'], wildcard, mode) is True
        assert is_wildcard_match(['198.51.100.1'], wildcard, mode) is False
