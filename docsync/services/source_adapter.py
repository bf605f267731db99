"""Common contract for documentation source adapters"""

import logging
from abc import ABC, abstractmethod

import httpx

from docsync.config import config
from docsync.models.document import DocumentFormat, SourceEntry
from docsync.models.sources_config import FetchingConfig

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised on a network error, timeout or non-2xx response from a source"""

    def __init__(self, url: str, status_code: int | None = None, message: str = ""):
        self.url = url
        self.status_code = status_code
        self.message = message
        super().__init__(f"Failed to fetch {url}: {message}")


class SourceAdapter(ABC):
    """
    A documentation source that can be enumerated and fetched

    Subclasses set source_key (the sync cursor key) and document_format
    (which parser handles the fetched bytes). When signature_required is set,
    a document whose signature resolves to None is not tracked by the source
    and is skipped; otherwise None means "unknown" and forces a refresh.
    """

    document_format: DocumentFormat
    signature_required: bool = False

    def __init__(
        self,
        source_key: str,
        fetching_config: FetchingConfig | None = None,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.source_key = source_key
        self.fetching_config = fetching_config or FetchingConfig()
        self.index_timeout = self.fetching_config.index_timeout or config.index_timeout_seconds
        self.content_timeout = (
            self.fetching_config.content_timeout or config.content_timeout_seconds
        )

        user_agent = self.fetching_config.user_agent or config.http_user_agent
        # Per-request headers; the client may be shared between sources
        self.headers = {"User-Agent": user_agent, **(headers or {})}

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(follow_redirects=True)

    @abstractmethod
    async def enumerate(self) -> list[SourceEntry]:
        """
        List every document of the source in a stable order

        Raises:
            FetchError: If the listing cannot be retrieved
        """

    @abstractmethod
    async def fetch(self, identifier: str) -> bytes:
        """
        Download the raw content of one document

        Raises:
            FetchError: On network error, timeout or non-2xx response
        """

    @abstractmethod
    async def resolve_signature(self, entry: SourceEntry) -> str | None:
        """
        Current freshness signature of a document

        Returns:
            The signature, or None if the source has no record of the document
        """

    async def _get(self, url: str, timeout: float, **kwargs) -> httpx.Response:
        """GET a URL, turning transport failures and non-2xx statuses into FetchError"""
        try:
            response = await self.client.get(
                url, headers=self.headers, timeout=timeout, **kwargs
            )
        except httpx.TimeoutException as e:
            raise FetchError(url, None, f"Timeout after {timeout}s") from e
        except httpx.HTTPError as e:
            raise FetchError(url, None, f"Network error: {e}") from e

        if not 200 <= response.status_code < 300:
            raise FetchError(
                url, response.status_code, f"HTTP {response.status_code}: {response.text[:100]}"
            )
        return response

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it"""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "SourceAdapter":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
