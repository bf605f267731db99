"""Integration tests for the GitHub and sitemap source adapters (mocked HTTP)"""

import httpx
import pytest

from docsync.models.document import DocumentFormat, SourceEntry
from docsync.models.sources_config import (
    FetchingConfig,
    GitHubConfig,
    GitHubRepoSource,
    WebsiteSource,
)
from docsync.services.github_fetcher import RepoAdapter, matches_patterns
from docsync.services.source_adapter import FetchError
from docsync.services.website_fetcher import WebAdapter

TREE = {
    "sha": "root",
    "truncated": False,
    "tree": [
        {"path": "src/ui/layout.md", "type": "blob", "sha": "blob-layout"},
        {"path": "src/index.md", "type": "blob", "sha": "blob-index"},
        {"path": "src/ui", "type": "tree", "sha": "tree-ui"},
        {"path": "src/assets/logo.png", "type": "blob", "sha": "blob-logo"},
        {"path": "README.md", "type": "blob", "sha": "blob-readme"},
    ],
}

SITEMAP_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://docs.flutter.dev/sitemap-pages.xml</loc></sitemap>
</sitemapindex>
"""

SITEMAP_PAGES = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://docs.flutter.dev/ui/layout</loc><lastmod>2026-01-10</lastmod></url>
  <url><loc>https://docs.flutter.dev/ui/layout#rows</loc></url>
  <url><loc>https://docs.flutter.dev/ui/widgets</loc></url>
  <url><loc>https://docs.flutter.dev/release/breaking-changes</loc></url>
  <url><loc>https://docs.flutter.dev/assets/images/logo.png</loc></url>
  <url><loc>https://pub.dev/packages/provider</loc></url>
</urlset>
"""


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestMatchesPatterns:
    """Test glob matching of repository paths"""

    def test_double_star_matches_zero_directories(self):
        assert matches_patterns("src/index.md", ["src/**/*.md"])
        assert matches_patterns("src/ui/layout/index.md", ["src/**/*.md"])

    def test_non_matching_paths(self):
        assert not matches_patterns("README.md", ["src/**/*.md"])
        assert not matches_patterns("src/ui/logo.png", ["src/**/*.md"])


class TestRepoAdapter:
    """Test GitHub enumeration, fetch and signature resolution"""

    @pytest.fixture
    def repo_source(self):
        return GitHubRepoSource(name="flutter-website", repo_owner="flutter", repo_name="website")

    @pytest.mark.asyncio
    async def test_enumerate_filters_and_sorts(self, repo_source):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["recursive"] = request.url.params.get("recursive")
            seen["auth"] = request.headers.get("Authorization")
            seen["agent"] = request.headers.get("User-Agent")
            return httpx.Response(200, json=TREE)

        async with mock_client(handler) as client:
            adapter = RepoAdapter(
                repo_source,
                GitHubConfig(token="ghp_test"),
                FetchingConfig(user_agent="test-agent"),
                client=client,
            )
            entries = await adapter.enumerate()

        assert [e.identifier for e in entries] == ["src/index.md", "src/ui/layout.md"]
        assert entries[1].signature == "blob-layout"
        assert entries[1].url == "https://github.com/flutter/website/blob/main/src/ui/layout.md"
        assert seen["path"] == "/repos/flutter/website/git/trees/main"
        assert seen["recursive"] == "1"
        assert seen["auth"] == "token ghp_test"
        assert seen["agent"] == "test-agent"
        assert adapter.document_format == DocumentFormat.MARKDOWN

    @pytest.mark.asyncio
    async def test_latest_signature(self, repo_source, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/repos/flutter/website/commits"
            assert request.url.params["sha"] == "main"
            assert "Authorization" not in request.headers
            if request.url.params["path"] == "src/new.md":
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[{"sha": "commit-1"}])

        async with mock_client(handler) as client:
            adapter = RepoAdapter(repo_source, client=client)
            assert await adapter.latest_signature("src/ui/layout.md") == "commit-1"
            assert await adapter.resolve_signature(SourceEntry(identifier="src/new.md")) is None

    @pytest.mark.asyncio
    async def test_fetch_uses_raw_content_url(self, repo_source):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.host == "raw.githubusercontent.com"
            assert request.url.path == "/flutter/website/main/src/index.md"
            return httpx.Response(200, content=b"# Flutter")

        async with mock_client(handler) as client:
            adapter = RepoAdapter(repo_source, client=client)
            assert await adapter.fetch("src/index.md") == b"# Flutter"

    @pytest.mark.asyncio
    async def test_http_errors_become_fetch_errors(self, repo_source):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="Not Found")

        async with mock_client(handler) as client:
            adapter = RepoAdapter(repo_source, client=client)
            with pytest.raises(FetchError) as exc_info:
                await adapter.fetch("src/missing.md")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_network_errors_become_fetch_errors(self, repo_source):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            adapter = RepoAdapter(repo_source, client=client)
            with pytest.raises(FetchError, match="Network error"):
                await adapter.enumerate()

    @pytest.mark.asyncio
    async def test_timeouts_become_fetch_errors(self, repo_source):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with mock_client(handler) as client:
            adapter = RepoAdapter(repo_source, client=client)
            with pytest.raises(FetchError, match="Timeout"):
                await adapter.fetch("src/index.md")


class TestWebAdapter:
    """Test sitemap enumeration and page fetching"""

    @pytest.fixture
    def website(self):
        return WebsiteSource(name="flutter-docs", url="https://docs.flutter.dev")

    @staticmethod
    def sitemap_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/sitemap.xml":
            return httpx.Response(200, text=SITEMAP_INDEX)
        if request.url.path == "/sitemap-pages.xml":
            return httpx.Response(200, text=SITEMAP_PAGES)
        return httpx.Response(200, text="<html><body><main>page</main></body></html>")

    @pytest.mark.asyncio
    async def test_enumerate_follows_sitemap_index(self, website):
        async with mock_client(self.sitemap_handler) as client:
            adapter = WebAdapter(website, client=client)
            entries = await adapter.enumerate()

        assert [e.identifier for e in entries] == [
            "https://docs.flutter.dev/ui/layout",
            "https://docs.flutter.dev/ui/widgets",
            "https://docs.flutter.dev/release/breaking-changes",
        ]
        assert entries[0].signature == "2026-01-10"
        assert entries[1].signature is None
        assert await adapter.resolve_signature(entries[0]) == "2026-01-10"

    @pytest.mark.asyncio
    async def test_path_prefixes_restrict_pages(self, website):
        website.path_prefixes = ["/ui/"]

        async with mock_client(self.sitemap_handler) as client:
            adapter = WebAdapter(website, client=client)
            entries = await adapter.enumerate()

        assert [e.identifier for e in entries] == [
            "https://docs.flutter.dev/ui/layout",
            "https://docs.flutter.dev/ui/widgets",
        ]

    @pytest.mark.asyncio
    async def test_non_sitemap_response_raises(self, website):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html><body>Not a sitemap</body></html>")

        async with mock_client(handler) as client:
            adapter = WebAdapter(website, client=client)
            with pytest.raises(FetchError, match="not a sitemap"):
                await adapter.enumerate()

    @pytest.mark.asyncio
    async def test_fetch_page(self, website):
        async with mock_client(self.sitemap_handler) as client:
            adapter = WebAdapter(website, client=client)
            content = await adapter.fetch("https://docs.flutter.dev/ui/layout")

        assert b"<main>page</main>" in content
        assert adapter.document_format == DocumentFormat.HTML
        assert adapter.signature_required is False
