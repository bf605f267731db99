"""Search result models"""

from enum import Enum

from pydantic import BaseModel, Field

from docsync.models.chunk import Chunk


class MatchType(str, Enum):
    """Which retrieval path produced a result"""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"


class ScoredChunk(BaseModel):
    """Documentation chunk returned in response to a query"""

    chunk: Chunk = Field(description="The matching documentation chunk")
    score: float = Field(description="Relevance score; keyword scores may be zero or negative")
    rank: int = Field(ge=1, description="Position in result list (1-indexed)")
    match_type: MatchType = Field(description="How this result matched")


class QueryInfo(BaseModel):
    """Metadata about the query execution"""

    original_query: str = Field(description="The query that was executed")
    total_results: int = Field(ge=0, description="Number of results returned")
    query_time_ms: float = Field(ge=0.0, description="Query execution time in milliseconds")
    used_fallback: bool = Field(
        default=False, description="Whether results came from the keyword fallback"
    )


class QueryDocsOutput(BaseModel):
    """Complete output from query_docs tool"""

    results: list[ScoredChunk] = Field(description="List of search results")
    query_info: QueryInfo = Field(description="Metadata about the query")
