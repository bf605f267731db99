"""Sitemap-driven website source adapter for HTML documentation"""

import logging
from urllib.parse import urldefrag, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from docsync.models.document import DocumentFormat, SourceEntry
from docsync.models.sources_config import FetchingConfig, WebsiteSource
from docsync.services.source_adapter import FetchError, SourceAdapter

logger = logging.getLogger(__name__)

EXCLUDED_SUFFIXES = (".xml", ".jpg", ".jpeg", ".png", ".svg", ".gif")
EXCLUDED_PATH_PARTS = ("/assets/",)

# Nested sitemap indexes are followed this many levels deep
MAX_SITEMAP_DEPTH = 2


class WebAdapter(SourceAdapter):
    """Enumerate documentation pages from a sitemap and fetch them over HTTP"""

    document_format = DocumentFormat.HTML

    def __init__(
        self,
        website: WebsiteSource,
        fetching_config: FetchingConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the adapter

        Args:
            website: Website source configuration
            fetching_config: Timeouts and user agent
            client: Optional preconfigured HTTP client
        """
        self.website = website
        self.base_url = str(website.url)
        self.host = urlparse(self.base_url).netloc
        self.sitemap_url = (
            str(website.sitemap_url) if website.sitemap_url else urljoin(self.base_url, "/sitemap.xml")
        )
        super().__init__(website.name, fetching_config, client)

    def is_document_url(self, url: str) -> bool:
        """Keep same-host pages under a configured prefix; drop assets and images"""
        parsed = urlparse(url)
        if parsed.netloc != self.host:
            return False

        path = parsed.path.lower()
        if path.endswith(EXCLUDED_SUFFIXES) or any(p in path for p in EXCLUDED_PATH_PARTS):
            return False

        prefixes = self.website.path_prefixes
        return not prefixes or any(parsed.path.startswith(prefix) for prefix in prefixes)

    async def enumerate(self) -> list[SourceEntry]:
        """
        List pages from the sitemap in sitemap order

        Returns:
            One entry per page; the signature is <lastmod> (None when absent)

        Raises:
            FetchError: If the sitemap cannot be retrieved or parsed
        """
        entries: list[SourceEntry] = []
        seen: set[str] = set()
        await self._collect(self.sitemap_url, entries, seen, depth=0)

        logger.info(f"Found {len(entries)} documentation URLs in {self.sitemap_url}")
        return entries

    async def _collect(
        self, sitemap_url: str, entries: list[SourceEntry], seen: set[str], depth: int
    ) -> None:
        response = await self._get(sitemap_url, self.index_timeout)
        soup = BeautifulSoup(response.content, "xml")

        if soup.find("urlset") is None and soup.find("sitemapindex") is None:
            raise FetchError(sitemap_url, response.status_code, "Response is not a sitemap")

        if depth < MAX_SITEMAP_DEPTH:
            for sitemap in soup.find_all("sitemap"):
                loc = sitemap.find("loc")
                if loc and loc.get_text(strip=True):
                    await self._collect(loc.get_text(strip=True), entries, seen, depth + 1)

        for url_tag in soup.find_all("url"):
            loc_tag = url_tag.find("loc")
            if loc_tag is None:
                continue
            url, _ = urldefrag(loc_tag.get_text(strip=True))
            if not url or url in seen or not self.is_document_url(url):
                continue
            seen.add(url)

            lastmod_tag = url_tag.find("lastmod")
            lastmod = lastmod_tag.get_text(strip=True) if lastmod_tag else ""
            entries.append(SourceEntry(identifier=url, signature=lastmod or None, url=url))

    async def fetch(self, identifier: str) -> bytes:
        """Download one page"""
        response = await self._get(identifier, self.content_timeout)
        logger.debug(f"✓ Fetched {identifier} ({response.status_code})")
        return response.content

    async def resolve_signature(self, entry: SourceEntry) -> str | None:
        """The sitemap lastmod; no extra request"""
        return entry.signature
