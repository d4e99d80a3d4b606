"""Page crawler - bounded breadth-first walk of one host.

THE IDEA:
Once we know a vendor host is live, its pages tell us what it exposes:
login forms, document downloads, third-party widgets, links to other
services. We map that with a small, polite crawl:

- Breadth-first from the seed, in batches of 5 concurrent fetches
- At most 50 pages and about 30 seconds per host (checked between batches,
  so an in-flight batch always finishes)
- Only text/html bodies are parsed; anything else is a leaf page
- Bodies are capped at 500KB and parsed in a worker thread

WHAT WE COLLECT:
- Internal pages (same host or a subdomain of it) - fetched and parsed
- External links - recorded with the page they were found on, never fetched

SAFETY:
Every fetch goes through the GuardedFetcher, so redirects in the middle of
the crawl are validated hop by hop like any other request. A blocked or
failed page becomes an entry in `errors`; the rest of the batch carries on.

This is not a browser: no JavaScript, no forms, no robots.txt sitemap walk.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from urllib.parse import urldefrag, urljoin, urlsplit

from bs4 import BeautifulSoup

from surface_recon.util.types import ScanConfig, CrawlResult, DiscoveredPage
from surface_recon.util.concurrency import ConcurrencyController
from surface_recon.util.time import Stopwatch, iso_timestamp
from .normalization import normalize_url, normalize_hostname, host_matches
from .profiles import parse_target
from .ssrf_guard import GuardedFetcher

logger = logging.getLogger(__name__)

MAX_LINKS_PER_PAGE = 100
MAX_TITLE_LENGTH = 200
MAX_LINK_TEXT_LENGTH = 100
HTML_CONTENT_TYPE = 'text/html'
CRAWLABLE_SCHEMES = ('http', 'https')


@dataclass(frozen=True)
class FrontierItem:
    """A URL waiting to be fetched, with where we found it."""
    url: str
    found_on: Optional[str] = None
    link_text: Optional[str] = None


@dataclass
class PageFetch:
    """What one fetch produced: the page record and its outgoing links."""
    page: DiscoveredPage
    links: List[Tuple[str, str]] = field(default_factory=list)


def parse_html(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, 'html.parser')


def extract_title(soup: BeautifulSoup) -> Optional[str]:
    if soup.title is None:
        return None
    title = soup.title.get_text(strip=True)
    return title[:MAX_TITLE_LENGTH] if title else None


def extract_links(soup: BeautifulSoup, page_url: str) -> List[Tuple[str, str]]:
    """Absolute http(s) anchor targets on a page, with their link text.

    Fragment-only anchors, other schemes (javascript:, mailto:, file:, ...)
    and hrefs that do not parse are skipped. Duplicates are dropped by
    normalized URL.
    """
    links: List[Tuple[str, str]] = []
    seen = set()

    for anchor in soup.find_all('a', href=True):
        if len(links) >= MAX_LINKS_PER_PAGE:
            break

        href = anchor['href'].strip()
        if not href or href.startswith('#'):
            continue

        try:
            absolute, _ = urldefrag(urljoin(page_url, href))
            parts = urlsplit(absolute)
            parts.port
        except ValueError:
            continue

        if parts.scheme.lower() not in CRAWLABLE_SCHEMES or not parts.hostname:
            continue

        key = normalize_url(absolute)
        if key in seen:
            continue
        seen.add(key)

        text = anchor.get_text(' ', strip=True)[:MAX_LINK_TEXT_LENGTH]
        links.append((absolute, text or href[:MAX_LINK_TEXT_LENGTH]))

    return links


def is_same_site(url: str, hostname: str) -> bool:
    """True if url points at hostname or one of its subdomains."""
    try:
        host = normalize_hostname(urlsplit(url).hostname or '')
    except ValueError:
        return False
    return host is not None and host_matches(host, (hostname,))


class PageCrawler:
    """Breadth-first crawler for a single host.

    Visited and queued sets are locals of crawl(), so one crawler can serve
    concurrent crawls of different hosts.
    """

    def __init__(self, fetcher: GuardedFetcher, config: Optional[ScanConfig] = None):
        self.fetcher = fetcher
        self.config = config or ScanConfig()

    async def crawl(self, seed_url: str) -> CrawlResult:
        """Crawl the host behind seed_url.

        Raises InvalidTarget if the seed has no usable host; every other
        failure ends up in CrawlResult.errors. IP literals and single-label
        hosts are crawled if the guard lets them through.
        """
        base_url, subdomain = parse_target(seed_url)

        logger.info(f"Starting crawl of {subdomain}")

        result = CrawlResult(subdomain=subdomain, base_url=base_url, crawled_at=iso_timestamp())

        max_pages = self.config.crawl_max_pages
        frontier = deque([FrontierItem(base_url)])
        queued = {normalize_url(base_url)}
        visited = set()
        seen_external = set()

        controller = ConcurrencyController(max_workers=self.config.crawl_batch_size)
        stopwatch = Stopwatch()

        while frontier and len(visited) < max_pages:
            batch: List[FrontierItem] = []
            while frontier and len(batch) < self.config.crawl_batch_size and len(visited) < max_pages:
                item = frontier.popleft()
                key = normalize_url(item.url)
                if key in visited:
                    continue
                visited.add(key)
                batch.append(item)

            if not batch:
                break

            outcomes = await controller.gather(batch, self._fetch_page)

            for item, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.debug(f"Fetch failed for {item.url}: {outcome}")
                    result.errors.append(f"Failed to fetch {item.url}: {outcome}")
                    continue

                result.pages.append(outcome.page)

                for link_url, link_text in outcome.links:
                    key = normalize_url(link_url)
                    if is_same_site(link_url, subdomain):
                        if key not in visited and key not in queued:
                            queued.add(key)
                            frontier.append(FrontierItem(link_url, found_on=item.url, link_text=link_text))
                    elif key not in seen_external:
                        seen_external.add(key)
                        result.external_links.append(DiscoveredPage(
                            url=link_url,
                            is_external=True,
                            link_text=link_text,
                            found_on=item.url,
                        ))

            if stopwatch.exceeded(self.config.crawl_time_budget):
                logger.warning(f"Crawl timeout reached for {subdomain}")
                break

        result.pages_discovered = len(result.pages)
        logger.info(
            f"Crawl complete: {len(result.pages)} pages, {len(result.external_links)} external links, "
            f"{len(result.errors)} errors"
        )
        return result

    async def _fetch_page(self, item: FrontierItem) -> PageFetch:
        """Fetch one frontier entry and parse it if it is HTML."""
        response = await self.fetcher.fetch(
            item.url,
            headers={'Accept': 'text/html,application/xhtml+xml'},
            timeout=self.config.http_timeout,
            max_body=self.config.max_body_bytes,
            body_content_types=(HTML_CONTENT_TYPE,),
        )

        content_type = response.content_type
        declared = response.headers.get('content-length', '')
        size = int(declared) if declared.isdigit() else len(response.body)

        if HTML_CONTENT_TYPE not in content_type.lower():
            return PageFetch(page=DiscoveredPage(
                url=item.url,
                is_external=False,
                status_code=response.status,
                content_type=content_type or None,
                size=size,
                link_text=item.link_text,
                found_on=item.found_on,
            ))

        # Parse off the event loop
        soup = await asyncio.to_thread(parse_html, response.text)
        page = DiscoveredPage(
            url=item.url,
            is_external=False,
            title=extract_title(soup),
            status_code=response.status,
            content_type=content_type,
            size=size,
            link_text=item.link_text,
            found_on=item.found_on,
        )
        # Relative links resolve against where we ended up, not where we started
        return PageFetch(page=page, links=extract_links(soup, response.url))
