"""Centralized configuration using Pydantic BaseSettings"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application configuration with environment variable support"""

    # Sources
    # Note: repositories and sitemaps to crawl are configured in sources.yaml
    sources_config_path: str = Field(
        default="sources.yaml", description="Path to the sources configuration file"
    )

    # Database
    db_path: str = Field(default="./data/docs.db", description="SQLite database file path")

    # Embedding (Local model using fastembed)
    embedding_model: str = Field(
        default="BAAI/bge-small-en-v1.5", description="Local embedding model name (fastembed)"
    )
    fastembed_cache_dir: str = Field(
        default="./data/models", description="Directory to cache embedding model"
    )
    embedding_batch_size: int = Field(
        default=32, ge=1, le=256, description="Batch size for embedding generation"
    )
    embedding_dimension: int = Field(
        default=384, description="Embedding vector dimension (384 for bge-small-en-v1.5)"
    )
    vector_index_enabled: bool = Field(
        default=True, description="Push chunks to the vector index and query it first"
    )

    # Chunking (characters)
    max_chunk_size: int = Field(
        default=1200, ge=200, le=8000, description="Maximum chunk body length in characters"
    )
    chunk_overlap_size: int = Field(
        default=200,
        ge=0,
        le=1000,
        description="Overlap budget in characters; overlap_size // 5 words are carried over",
    )
    min_trailing_chunk_size: int = Field(
        default=100,
        ge=0,
        description="A section's trailing buffer is kept only if longer than this",
    )
    min_section_length: int = Field(
        default=50, ge=0, description="Markdown sections of this length or less are dropped"
    )
    min_html_text_length: int = Field(
        default=100, ge=0, description="HTML pages with less normalized text fail to parse"
    )
    default_code_language: str = Field(
        default="dart", description="Language tag for code blocks without an explicit one"
    )

    # Sync
    sync_batch_size: int = Field(
        default=50, ge=1, le=1000, description="Documents processed per sync invocation"
    )
    test_mode_documents: int = Field(
        default=3, ge=1, le=50, description="Fixed prefix processed by a test-mode sync"
    )
    inter_document_delay_seconds: float = Field(
        default=1.0, ge=0.0, le=60.0, description="Delay after each processed document"
    )
    sync_time_budget_seconds: float = Field(
        default=540.0, gt=0.0, description="Wall-clock budget of one sync invocation"
    )

    # HTTP
    http_user_agent: str = Field(
        default="Flutter-Docs-Crawler/2.0", description="User-Agent sent to upstream sources"
    )
    index_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for listings (sitemap, repo tree, commits)"
    )
    content_timeout_seconds: float = Field(
        default=30.0, gt=0.0, description="Timeout for content page downloads"
    )

    # Content classification
    openai_api_key: str = Field(
        default="", description="API key for the LLM content classifier (empty disables it)"
    )
    classifier_model: str = Field(
        default="gpt-4o-mini", description="Chat model used to classify chunk content"
    )
    classifier_max_attempts: int = Field(
        default=3, ge=1, le=10, description="Classification attempts before defaulting to guide"
    )
    classifier_backoff_base_seconds: float = Field(
        default=2.0, ge=0.0, description="Exponential backoff base between classifier attempts"
    )

    # MCP Server
    mcp_host: str = Field(default="0.0.0.0", description="MCP server bind address")
    mcp_port: int = Field(default=8080, ge=1024, le=65535, description="MCP server port")

    # Query
    query_result_limit: int = Field(
        default=5, ge=1, le=50, description="Default maximum number of search results"
    )

    # OpenTelemetry
    otel_logging_enabled: bool = Field(default=False, description="Enable OpenTelemetry logging")
    otel_tracing_enabled: bool = Field(
        default=False, description="Enable OpenTelemetry tracing for HTTP requests"
    )
    otel_endpoint: str = Field(
        default="http://localhost:4318",
        description="OpenTelemetry collector endpoint (HTTP/protobuf)",
    )
    otel_service_name: str = Field(
        default="flutter-docs-sync", description="Service name for OpenTelemetry"
    )
    otel_service_version: str = Field(
        default="1.0.0", description="Service version for OpenTelemetry"
    )
    otel_log_full_results: bool = Field(
        default=False,
        description="Include full query results in telemetry logs (needed for analytics)",
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


# Global config instance
config = AppConfig()
