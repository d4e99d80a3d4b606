"""
Unit Tests for subdomain enumeration
"""

import pytest

from surface_recon.util.types import AccessCheck, ScanConfig, WildcardMatch
from surface_recon.scanner.enumeration import COMMON_SUBDOMAINS, SubdomainEnumerator
from surface_recon.scanner.errors import InvalidTarget
from surface_recon.scanner.profiles import TargetProfile, extract_base_domain, parse_target, to_url
from conftest import FakeDNS, FakeHTTPProbe, PUBLIC_IP


class TestBaseDomain:
    """Target parsing"""

    @pytest.mark.parametrize('hostname,expected', [
        ('example.com', 'example.com'),
        ('www.example.com', 'example.com'),
        ('a.b.c.example.com', 'example.com'),
        ('shop.example.co.uk', 'example.co.uk'),
        ('example.co.uk', 'example.co.uk'),
        ('api.vendor.com.au', 'vendor.com.au'),
        ('Example.COM.', 'example.com'),
    ])
    def test_extract_base_domain(self, hostname, expected):
        assert extract_base_domain(hostname) == expected

    def test_to_url(self):
        assert to_url('example.com') == 'https://example.com'
        assert to_url('http://example.com/x') == 'http://example.com/x'

    def test_profile_from_url(self):
        profile = TargetProfile('https://WWW.Example.co.uk/about')

        assert profile.hostname == 'www.example.co.uk'
        assert profile.base_domain == 'example.co.uk'
        assert profile.is_apex_domain() is False

    @pytest.mark.parametrize('target', ['', '   ', 'not a host', 'https://', 'localhost', 'http://exa mple.com'])
    def test_invalid_targets(self, target):
        with pytest.raises(InvalidTarget):
            TargetProfile(target)

    @pytest.mark.parametrize('target,expected', [
        ('Example.com', ('https://Example.com', 'example.com')),
        ('http://intranet/', ('http://intranet/', 'intranet')),
        ('https://[2606:4700::1111]/', ('https://[2606:4700::1111]/', '2606:4700::1111')),
        ('10.0.0.5', ('https://10.0.0.5', '10.0.0.5')),
    ])
    def test_parse_target_accepts_any_url_host(self, target, expected):
        assert parse_target(target) == expected

    @pytest.mark.parametrize('target', ['', 'http://', 'not a host', 'http://exa mple.com'])
    def test_parse_target_rejects_unusable_hosts(self, target):
        with pytest.raises(InvalidTarget):
            parse_target(target)

    @pytest.mark.parametrize('target', ['http://intranet/', 'https://[2606:4700::1111]/'])
    def test_profile_still_needs_a_domain(self, target):
        with pytest.raises(InvalidTarget):
            TargetProfile(target)


def make_enumerator(dns, http_probe=None, config=None, candidates=None):
    return SubdomainEnumerator(
        dns_probe=dns,
        http_probe=http_probe or FakeHTTPProbe(),
        config=config,
        candidates=candidates,
    )


class TestSubdomainEnumerator:
    """End-to-end enumeration against fake DNS"""

    @pytest.mark.asyncio
    async def test_discovers_live_names_in_priority_order(self):
        dns = FakeDNS(records={
            'mail.example.com': ['198.51.100.3'],
            'www.example.com': [PUBLIC_IP],
            'api.example.com': ['198.51.100.2'],
        })
        http_probe = FakeHTTPProbe(AccessCheck(accessible=True, status=200, has_ssl=True))

        result = await make_enumerator(dns, http_probe).collect('https://www.example.com/')

        assert result.domain == 'example.com'
        assert result.has_wildcard is False
        assert result.wildcard_ip is None
        assert result.total_checked == len(COMMON_SUBDOMAINS)
        assert [p.subdomain for p in result.discovered] == ['www', 'api', 'mail']

        www = result.discovered[0]
        assert www.full_domain == 'www.example.com'
        assert www.resolved is True
        assert www.ip_addresses == (PUBLIC_IP,)
        assert www.accessible is True
        assert www.http_status == 200
        assert www.has_ssl is True

    @pytest.mark.asyncio
    async def test_wildcard_answers_suppressed(self):
        dns = FakeDNS(
            records={'vpn.example.com': ['198.51.100.10']},
            wildcard=('example.com', ['203.0.113.7']),
        )

        result = await make_enumerator(dns).collect('example.com')

        assert result.has_wildcard is True
        assert result.wildcard_ip == '203.0.113.7'
        assert [p.full_domain for p in result.discovered] == ['vpn.example.com']
        assert result.total_checked == len(COMMON_SUBDOMAINS)

    @pytest.mark.asyncio
    async def test_stops_at_discovery_limit(self):
        dns = FakeDNS(records={f'{name}.example.com': [PUBLIC_IP] for name in COMMON_SUBDOMAINS})

        result = await make_enumerator(dns).collect('example.com')

        assert len(result.discovered) == 20
        assert result.total_checked == 20

    @pytest.mark.asyncio
    async def test_limit_checked_per_batch(self):
        dns = FakeDNS(records={f'{name}.example.com': [PUBLIC_IP] for name in COMMON_SUBDOMAINS})
        config = ScanConfig(enum_batch_size=10, enum_max_discoveries=15)

        result = await make_enumerator(dns, config=config).collect('example.com')

        assert len(result.discovered) == 20
        assert result.total_checked == 20

    @pytest.mark.asyncio
    async def test_private_name_listed_but_not_probed(self):
        dns = FakeDNS(records={
            'www.example.com': [PUBLIC_IP],
            'admin.example.com': ['10.0.0.5'],
        })
        http_probe = FakeHTTPProbe()

        result = await make_enumerator(dns, http_probe).collect('example.com')

        admin = next(p for p in result.discovered if p.subdomain == 'admin')
        assert admin.resolved is True
        assert admin.ip_addresses == ('10.0.0.5',)
        assert admin.accessible is None
        assert http_probe.checked == ['www.example.com']

    @pytest.mark.asyncio
    async def test_dns_timeout_counted_not_reported(self):
        dns = FakeDNS(
            records={'www.example.com': [PUBLIC_IP], 'api.example.com': [PUBLIC_IP]},
            timeouts={'api.example.com'},
        )

        result = await make_enumerator(dns).collect('example.com')

        assert [p.subdomain for p in result.discovered] == ['www']
        assert result.total_checked == len(COMMON_SUBDOMAINS)

    @pytest.mark.asyncio
    async def test_unreachable_host_still_reported(self):
        dns = FakeDNS(records={'www.example.com': [PUBLIC_IP]})
        http_probe = FakeHTTPProbe(AccessCheck(accessible=False))

        result = await make_enumerator(dns, http_probe).collect('example.com')

        assert result.discovered[0].accessible is False
        assert result.discovered[0].http_status is None

    @pytest.mark.asyncio
    async def test_exact_and_overlap_modes(self):
        def dns():
            return FakeDNS(
                records={'shop.example.com': ['203.0.113.8'], 'blog.example.com': ['198.51.100.20']},
                wildcard=('example.com', ['203.0.113.7', '203.0.113.8']),
            )

        exact = await make_enumerator(
            dns(), config=ScanConfig(wildcard_match=WildcardMatch.EXACT), candidates=['shop', 'blog'],
        ).collect('example.com')
        overlap = await make_enumerator(
            dns(), config=ScanConfig(wildcard_match=WildcardMatch.OVERLAP), candidates=['shop', 'blog'],
        ).collect('example.com')

        assert [p.subdomain for p in exact.discovered] == ['shop', 'blog']
        assert [p.subdomain for p in overlap.discovered] == ['blog']

    @pytest.mark.asyncio
    async def test_invalid_target_raises_before_dns(self):
        dns = FakeDNS()

        with pytest.raises(InvalidTarget):
            await make_enumerator(dns).collect('not a host')

        assert dns.a_queries == []

    @pytest.mark.asyncio
    async def test_result_to_dict(self):
        dns = FakeDNS(records={'www.example.com': [PUBLIC_IP]})

        result = await make_enumerator(dns).collect('example.com')
        data = result.to_dict()

        assert data['domain'] == 'example.com'
        assert data['discovered'][0]['full_domain'] == 'www.example.com'
        assert data['discovered'][0]['ip_addresses'] == [PUBLIC_IP]
