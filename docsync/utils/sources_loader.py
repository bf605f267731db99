"""Utility to load sources configuration from YAML file"""

import logging
import os
from pathlib import Path

import httpx
import yaml
from pydantic import ValidationError

from docsync.models.sources_config import SourcesConfig
from docsync.services.github_fetcher import RepoAdapter
from docsync.services.source_adapter import SourceAdapter
from docsync.services.website_fetcher import WebAdapter

logger = logging.getLogger(__name__)


def load_sources_config(config_path: str | Path = "sources.yaml") -> SourcesConfig:
    """
    Load sources configuration from YAML file

    Args:
        config_path: Path to sources.yaml file (default: sources.yaml in project root)

    Returns:
        SourcesConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Sources configuration file not found: {config_path}\n"
            f"Please create a sources.yaml file listing GitHub repos and/or websites."
        )

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in sources configuration: {e}") from e

    if not data:
        raise ValueError("Sources configuration file is empty")

    try:
        sources_config = SourcesConfig(**data)
    except ValidationError as e:
        raise ValueError(f"Failed to load sources configuration: {e}") from e

    # Allow environment variable to override scheduler.enabled
    scheduler_enabled_env = os.getenv("SYNC_SCHEDULER_ENABLED")
    if scheduler_enabled_env is not None:
        scheduler_enabled = scheduler_enabled_env.lower() in ("true", "1", "yes")
        if sources_config.scheduler.enabled != scheduler_enabled:
            logger.info(
                f"Overriding scheduler.enabled from env: {scheduler_enabled} "
                f"(was: {sources_config.scheduler.enabled})"
            )
            sources_config.scheduler.enabled = scheduler_enabled

    logger.info(f"Loaded sources configuration from {config_path}")
    logger.info(f"  Enabled websites: {len(sources_config.get_enabled_websites())}")
    logger.info(f"  Enabled GitHub repos: {len(sources_config.get_enabled_github_repos())}")
    logger.info(f"  Background sync enabled: {sources_config.scheduler.enabled}")

    return sources_config


def build_adapters(
    sources_config: SourcesConfig, client: httpx.AsyncClient | None = None
) -> list[SourceAdapter]:
    """
    Create one adapter per enabled source, GitHub repositories first

    Args:
        sources_config: Loaded sources configuration
        client: Optional shared HTTP client (the caller then owns it)

    Returns:
        Adapters in sync order

    Raises:
        ValueError: If two enabled sources share a name
    """
    repos = sources_config.get_enabled_github_repos()
    websites = sources_config.get_enabled_websites()

    names = [repo.name for repo in repos] + [website.name for website in websites]
    duplicates = {name for name in names if names.count(name) > 1}
    if duplicates:
        raise ValueError(f"Source names must be unique, duplicated: {sorted(duplicates)}")

    adapters: list[SourceAdapter] = [
        RepoAdapter(repo, sources_config.github, sources_config.fetching, client=client)
        for repo in repos
    ]
    adapters.extend(
        WebAdapter(website, sources_config.fetching, client=client) for website in websites
    )
    return adapters
