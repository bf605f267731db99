"""Query request/response models"""

from enum import Enum

from pydantic import BaseModel, Field


class QueryType(str, Enum):
    """Type of search to perform"""

    AUTO = "auto"
    SEMANTIC = "semantic"
    KEYWORD = "keyword"


class Query(BaseModel):
    """User-submitted request for documentation search"""

    text: str = Field(min_length=1, description="The query string (natural language or keywords)")
    limit: int = Field(default=5, ge=1, le=50, description="Maximum number of results to return")
    query_type: QueryType = Field(
        default=QueryType.AUTO,
        description="auto = vector search with keyword fallback; or force one path",
    )
