"""Unit tests for sources.yaml loading and adapter construction"""

import pytest

from docsync.services.github_fetcher import RepoAdapter
from docsync.services.website_fetcher import WebAdapter
from docsync.utils.sources_loader import build_adapters, load_sources_config

SOURCES_YAML = """
sources:
  github_repos:
    - name: flutter-website
      repo_owner: flutter
      repo_name: website
      paths: ["src/**/*.md"]
    - name: disabled-repo
      repo_owner: flutter
      repo_name: samples
      enabled: false
  websites:
    - name: flutter-docs
      url: https://docs.flutter.dev
      path_prefixes: ["/ui/"]
fetching:
  content_timeout: 15
scheduler:
  enabled: true
  interval_minutes: 5
"""


@pytest.fixture
def sources_file(tmp_path):
    path = tmp_path / "sources.yaml"
    path.write_text(SOURCES_YAML)
    return path


def test_load_sources_config(sources_file, monkeypatch):
    monkeypatch.delenv("SYNC_SCHEDULER_ENABLED", raising=False)

    sources_config = load_sources_config(sources_file)

    repos = sources_config.get_enabled_github_repos()
    assert [repo.name for repo in repos] == ["flutter-website"]
    assert repos[0].branch == "main"
    assert sources_config.get_enabled_websites()[0].path_prefixes == ["/ui/"]
    assert sources_config.fetching.content_timeout == 15
    assert sources_config.fetching.index_timeout is None
    assert sources_config.scheduler.enabled is True
    assert sources_config.scheduler.interval_minutes == 5


def test_scheduler_env_override(sources_file, monkeypatch):
    monkeypatch.setenv("SYNC_SCHEDULER_ENABLED", "false")

    sources_config = load_sources_config(sources_file)

    assert sources_config.scheduler.enabled is False


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_sources_config(tmp_path / "missing.yaml")


def test_invalid_yaml_raises(tmp_path):
    path = tmp_path / "sources.yaml"
    path.write_text("sources: [unclosed")

    with pytest.raises(ValueError, match="Invalid YAML"):
        load_sources_config(path)


def test_invalid_schema_raises(tmp_path):
    path = tmp_path / "sources.yaml"
    path.write_text("sources:\n  github_repos:\n    - name: missing-owner\n")

    with pytest.raises(ValueError, match="Failed to load sources configuration"):
        load_sources_config(path)


@pytest.mark.asyncio
async def test_build_adapters_repos_first(sources_file):
    sources_config = load_sources_config(sources_file)

    adapters = build_adapters(sources_config)
    try:
        assert [type(a) for a in adapters] == [RepoAdapter, WebAdapter]
        assert [a.source_key for a in adapters] == ["flutter-website", "flutter-docs"]
        assert adapters[0].content_timeout == 15
        assert adapters[1].sitemap_url == "https://docs.flutter.dev/sitemap.xml"
    finally:
        for adapter in adapters:
            await adapter.close()


def test_duplicate_source_names_rejected(tmp_path):
    path = tmp_path / "sources.yaml"
    path.write_text(
        "sources:\n"
        "  github_repos:\n"
        "    - {name: docs, repo_owner: flutter, repo_name: website}\n"
        "  websites:\n"
        "    - {name: docs, url: 'https://docs.flutter.dev'}\n"
    )

    with pytest.raises(ValueError, match="unique"):
        build_adapters(load_sources_config(path))
