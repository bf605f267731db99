"""GitHub repository source adapter for markdown documentation"""

import fnmatch
import logging
import os

import httpx

from docsync.models.document import DocumentFormat, SourceEntry
from docsync.models.sources_config import FetchingConfig, GitHubConfig, GitHubRepoSource
from docsync.services.source_adapter import FetchError, SourceAdapter

logger = logging.getLogger(__name__)


def matches_patterns(path: str, patterns: list[str]) -> bool:
    """
    Check a repo path against glob patterns

    '**/' also matches zero directories, so 'src/**/*.md' matches 'src/index.md'.
    """
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern):
            return True
        if "**/" in pattern and fnmatch.fnmatch(path, pattern.replace("**/", "")):
            return True
    return False


class RepoAdapter(SourceAdapter):
    """Enumerate and fetch markdown files of a GitHub repository"""

    document_format = DocumentFormat.MARKDOWN
    # A path without commit history on the branch is not synced
    signature_required = True

    def __init__(
        self,
        repo_source: GitHubRepoSource,
        github_config: GitHubConfig | None = None,
        fetching_config: FetchingConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize GitHub adapter

        Args:
            repo_source: Repository to read documentation from
            github_config: GitHub API configuration
            fetching_config: Timeouts and user agent
            client: Optional preconfigured HTTP client
        """
        self.repo_source = repo_source
        self.github_config = github_config or GitHubConfig()
        self.token = self.github_config.token or os.getenv("GITHUB_TOKEN")
        self.api_url = self.github_config.api_url.rstrip("/")
        self.raw_url = self.github_config.raw_url.rstrip("/")

        headers = {"Accept": "application/vnd.github.v3+json"}
        if self.token:
            # Use 'token' prefix for classic GitHub tokens (ghp_*)
            # Use 'Bearer' prefix for fine-grained tokens (github_pat_*)
            prefix = "Bearer" if self.token.startswith("github_pat_") else "token"
            headers["Authorization"] = f"{prefix} {self.token}"

        super().__init__(repo_source.name, fetching_config, client, headers)

    @property
    def repo_path(self) -> str:
        return f"{self.repo_source.repo_owner}/{self.repo_source.repo_name}"

    def public_url(self, path: str) -> str:
        return f"https://github.com/{self.repo_path}/blob/{self.repo_source.branch}/{path}"

    async def enumerate(self) -> list[SourceEntry]:
        """
        List markdown files matching the configured patterns, sorted by path

        Returns:
            One entry per blob; the signature is the blob SHA

        Raises:
            FetchError: If the repository tree cannot be retrieved
        """
        url = f"{self.api_url}/repos/{self.repo_path}/git/trees/{self.repo_source.branch}"
        response = await self._get(url, self.index_timeout, params={"recursive": "1"})

        try:
            data = response.json()
        except ValueError as e:
            raise FetchError(url, response.status_code, "Invalid JSON in tree response") from e

        if data.get("truncated"):
            logger.warning(f"Repository tree for {self.repo_path} is truncated")

        entries = [
            SourceEntry(
                identifier=item["path"],
                signature=item.get("sha"),
                url=self.public_url(item["path"]),
            )
            for item in data.get("tree", [])
            if item.get("type") == "blob"
            and matches_patterns(item["path"], self.repo_source.paths)
        ]
        entries.sort(key=lambda entry: entry.identifier)

        logger.info(f"Found {len(entries)} matching files in {self.repo_path}")
        return entries

    async def fetch(self, identifier: str) -> bytes:
        """Download a file from raw.githubusercontent.com"""
        url = f"{self.raw_url}/{self.repo_path}/{self.repo_source.branch}/{identifier}"
        response = await self._get(url, self.content_timeout)
        logger.debug(f"✓ Fetched {identifier}")
        return response.content

    async def latest_signature(self, path: str) -> str | None:
        """
        SHA of the newest commit touching a path

        Returns:
            The commit SHA, or None if the path has no history on the branch

        Raises:
            FetchError: If the commits API call fails
        """
        url = f"{self.api_url}/repos/{self.repo_path}/commits"
        response = await self._get(
            url,
            self.index_timeout,
            params={"path": path, "sha": self.repo_source.branch, "per_page": 1},
        )

        try:
            commits = response.json()
        except ValueError as e:
            raise FetchError(url, response.status_code, "Invalid JSON in commits response") from e

        if not commits:
            return None
        return commits[0]["sha"]

    async def resolve_signature(self, entry: SourceEntry) -> str | None:
        return await self.latest_signature(entry.identifier)
