"""Models for sources configuration (sources.yaml)"""

from pydantic import BaseModel, Field, HttpUrl


class WebsiteSource(BaseModel):
    """Configuration for a sitemap-driven website documentation source"""

    name: str = Field(description="Human-readable name for this source; also the cursor key")
    url: HttpUrl = Field(description="Base URL of the website")
    sitemap_url: HttpUrl | None = Field(
        default=None, description="Sitemap location (default: <url>/sitemap.xml)"
    )
    path_prefixes: list[str] = Field(
        default_factory=list,
        description="Only sitemap URLs under one of these path prefixes (empty = all)",
    )
    enabled: bool = Field(default=True, description="Whether this source is enabled")


class GitHubRepoSource(BaseModel):
    """Configuration for a GitHub repository documentation source"""

    name: str = Field(description="Human-readable name for this source; also the cursor key")
    repo_owner: str = Field(description="GitHub repository owner (username or org)")
    repo_name: str = Field(description="GitHub repository name")
    branch: str = Field(default="main", description="Branch to enumerate and fetch from")
    paths: list[str] = Field(
        default_factory=lambda: ["src/**/*.md"],
        description="Glob patterns for files to fetch (e.g., 'src/**/*.md')",
    )
    enabled: bool = Field(default=True, description="Whether this source is enabled")


class FetchingConfig(BaseModel):
    """Configuration for fetching behavior"""

    index_timeout: float | None = Field(
        default=None, gt=0, le=300, description="Override the listing timeout in seconds"
    )
    content_timeout: float | None = Field(
        default=None, gt=0, le=300, description="Override the document download timeout"
    )
    user_agent: str | None = Field(
        default=None, description="Override the configured HTTP User-Agent"
    )


class GitHubConfig(BaseModel):
    """Configuration for GitHub API access"""

    token: str | None = Field(
        default=None, description="GitHub personal access token (or use GITHUB_TOKEN env var)"
    )
    api_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    raw_url: str = Field(
        default="https://raw.githubusercontent.com", description="Raw content base URL"
    )


class SchedulerConfig(BaseModel):
    """Configuration for the background sync scheduler"""

    enabled: bool = Field(default=False, description="Run sync batches on an interval")
    interval_minutes: int = Field(
        default=10, ge=1, le=1440, description="Minutes between scheduled sync batches"
    )


class SourcesConfig(BaseModel):
    """Complete sources configuration"""

    class Sources(BaseModel):
        """Container for all source types"""

        websites: list[WebsiteSource] = Field(default_factory=list)
        github_repos: list[GitHubRepoSource] = Field(default_factory=list)

    sources: Sources = Field(default_factory=Sources)
    fetching: FetchingConfig = Field(default_factory=FetchingConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    def get_enabled_websites(self) -> list[WebsiteSource]:
        """Get all enabled website sources"""
        return [source for source in self.sources.websites if source.enabled]

    def get_enabled_github_repos(self) -> list[GitHubRepoSource]:
        """Get all enabled GitHub repository sources"""
        return [source for source in self.sources.github_repos if source.enabled]
