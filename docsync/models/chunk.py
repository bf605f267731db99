"""Documentation chunk data model"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class ContentType(str, Enum):
    """Fixed taxonomy of chunk content"""

    TUTORIAL = "tutorial"
    API = "api"
    GUIDE = "guide"
    COOKBOOK = "cookbook"
    REFERENCE = "reference"
    CODE = "code"


# Labels a classifier is allowed to return; CODE is assigned by the chunker only
CLASSIFIABLE_TYPES = frozenset(
    {
        ContentType.TUTORIAL,
        ContentType.API,
        ContentType.GUIDE,
        ContentType.COOKBOOK,
        ContentType.REFERENCE,
    }
)

CODE_CHUNK_INDEX = -1


class Chunk(BaseModel):
    """A retrievable segment of one source document"""

    id: str = Field(min_length=1, description="Deterministic id derived from the source document")
    source_id: str = Field(description="Identifier of the source document (repo path or URL)")
    url: str = Field(default="", description="Public URL of the source document")
    title: str = Field(description="Document title (code chunks: '<title> - Code Example')")
    section: str = Field(default="", description="Heading of the section this chunk belongs to")
    description: str = Field(default="", description="Document description")
    tags: list[str] = Field(default_factory=list, description="Document tags")
    content_type: ContentType = Field(
        default=ContentType.GUIDE, description="Classified kind of content"
    )
    content: str = Field(min_length=1, description="Chunk body text")
    word_count: int = Field(ge=0, description="Whitespace-separated word count of content")
    signature: str | None = Field(
        default=None, description="Freshness signature of the source when this chunk was built"
    )
    chunk_index: int = Field(
        ge=CODE_CHUNK_INDEX, description="Prose position within the document, -1 for code"
    )
    language: str | None = Field(default=None, description="Code language (code chunks only)")
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When this chunk was written"
    )

    @model_validator(mode="after")
    def check_code_fields(self) -> "Chunk":
        """Code chunks carry index -1 and a language; prose chunks carry neither"""
        is_code = self.content_type == ContentType.CODE
        if is_code and self.chunk_index != CODE_CHUNK_INDEX:
            raise ValueError(f"Code chunk {self.id} must have chunk_index -1")
        if not is_code and self.chunk_index == CODE_CHUNK_INDEX:
            raise ValueError(f"Prose chunk {self.id} must have chunk_index >= 0")
        return self

    @property
    def is_code(self) -> bool:
        return self.content_type == ContentType.CODE
