import gzip
import zlib
from collections import deque
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

import httpx
from defusedxml import ElementTree as ET
from defusedxml.common import DefusedXmlException

from cwv_auditor.features.sitemap.schemas.sitemap import DiscoveredPage, PageCategory
from cwv_auditor.platform.config import settings
from cwv_auditor.platform.exceptions import InputError, SitemapError
from cwv_auditor.platform.logger import get_logger
from cwv_auditor.platform.utils.url_validator import sitemap_location, validate_url

logger = get_logger(__name__)

MAIN_PAGE_KEYWORDS = [
    'about', 'services', 'contact', 'pricing', 'faq', 'team', 'careers', 'home', 'portfolio'
]

HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; CWVAuditor/1.0)",
    "Accept": "application/xml,text/xml;q=0.9,*/*;q=0.8",
}


def _localname(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def categorize_url(url: str) -> PageCategory:
    """
    Bucket a page by its path shape.

    The site root and shallow pages named like a company page are "main",
    anything two or more segments deep is treated as CMS content, the rest is
    "other".
    """
    path = urlparse(url).path.lower()
    segments = [s for s in path.split('/') if s]

    if path in ('', '/', '/index.html'):
        return PageCategory.main
    if len(segments) == 1 and any(k in segments[0] for k in MAIN_PAGE_KEYWORDS):
        return PageCategory.main
    if len(segments) >= 2:
        return PageCategory.cms
    return PageCategory.other


def parse_sitemap(content: bytes, source: str) -> Tuple[List[str], List[str]]:
    """
    Parse one sitemap document.

    Returns (page_urls, child_sitemap_urls). A <urlset> yields pages, a
    <sitemapindex> yields children. Gzipped payloads are inflated first.
    """
    if content[:2] == b"\x1f\x8b":
        try:
            content = gzip.decompress(content)
        except (OSError, EOFError, zlib.error) as e:
            raise SitemapError(f"Corrupt gzip sitemap at {source}: {e}") from e

    try:
        root = ET.fromstring(content)
    except (ET.ParseError, DefusedXmlException) as e:
        raise SitemapError(f"Invalid sitemap XML at {source}: {e}") from e

    kind = _localname(root.tag)
    if kind not in ("urlset", "sitemapindex"):
        raise SitemapError(f"Unsupported sitemap root element in {source}: {kind}")

    entry_tag = "url" if kind == "urlset" else "sitemap"
    locs = []
    for node in root:
        if _localname(node.tag) != entry_tag:
            continue
        for child in node:
            if _localname(child.tag) == "loc" and child.text and child.text.strip():
                locs.append(child.text.strip())

    if kind == "urlset":
        return locs, []
    return [], locs


class SitemapService:
    """Discovers and categorizes a site's pages from its XML sitemap(s)."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_child_sitemaps: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or settings.SITEMAP_TIMEOUT
        self.max_child_sitemaps = max_child_sitemaps or settings.SITEMAP_MAX_CHILD_SITEMAPS
        self.transport = transport

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> bytes:
        response = await client.get(url)
        response.raise_for_status()
        return response.content

    async def collect_urls(self, sitemap_url: str) -> List[str]:
        """
        Walk a sitemap and any sitemap index children breadth-first.

        The root document must load; a failing child sitemap is logged and
        skipped so one broken shard does not hide the rest of the site.
        """
        pages: List[str] = []
        queue = deque([sitemap_url])
        seen = {sitemap_url}
        children_followed = 0

        async with httpx.AsyncClient(
            timeout=self.timeout, headers=HEADERS, follow_redirects=True, transport=self.transport
        ) as client:
            while queue:
                current = queue.popleft()
                is_root = current == sitemap_url
                try:
                    content = await self._fetch(client, current)
                    found_pages, children = parse_sitemap(content, current)
                except (httpx.HTTPError, SitemapError, OSError, EOFError) as e:
                    if is_root:
                        raise SitemapError(f"Failed to fetch sitemap {current}: {e}") from e
                    logger.warning(f"Skipping child sitemap {current}: {e}")
                    continue

                pages.extend(found_pages)
                for child in children:
                    if child in seen:
                        continue
                    if children_followed >= self.max_child_sitemaps:
                        logger.warning(
                            f"Sitemap index {sitemap_url} lists more than "
                            f"{self.max_child_sitemaps} children, ignoring the rest"
                        )
                        break
                    seen.add(child)
                    children_followed += 1
                    queue.append(child)

        return pages

    async def discover_pages(self, domain: str) -> List[DiscoveredPage]:
        """
        Discover, deduplicate (first occurrence wins) and categorize the pages
        listed in `domain`'s sitemap. Raises InputError for a malformed domain
        and SitemapError when nothing usable comes back.
        """
        is_valid, _, error_message = validate_url(domain or "")
        if not is_valid:
            raise InputError(f"Invalid domain: {error_message}")

        sitemap_url = sitemap_location(domain)
        logger.info(f"Fetching sitemap {sitemap_url}")
        urls = await self.collect_urls(sitemap_url)

        unique: Dict[str, DiscoveredPage] = {}
        for url in urls:
            if url not in unique:
                unique[url] = DiscoveredPage(url=url, category=categorize_url(url))

        if not unique:
            raise SitemapError(f"No URLs found in sitemap {sitemap_url}")

        logger.info(f"Discovered {len(unique)} pages from {sitemap_url}")
        return list(unique.values())


def get_sitemap_service() -> SitemapService:
    return SitemapService()
