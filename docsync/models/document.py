"""Source document and parsed document models"""

from enum import Enum

from pydantic import BaseModel, Field


class DocumentFormat(str, Enum):
    """Raw format of a source document"""

    MARKDOWN = "markdown"
    HTML = "html"


class SourceEntry(BaseModel):
    """One document as listed by a source adapter's enumeration"""

    identifier: str = Field(min_length=1, description="Repo path or page URL")
    signature: str | None = Field(
        default=None, description="Blob SHA (repo) or sitemap lastmod (web); None if unknown"
    )
    url: str = Field(default="", description="Public URL of the document")


class SourceDocument(BaseModel):
    """A fetched source document; only its signature outlives a sync run"""

    identifier: str
    signature: str | None = None
    url: str = ""
    raw: bytes = b""


class Section(BaseModel):
    """A heading-delimited slice of a document body"""

    heading: str = Field(description="Section heading text")
    level: int = Field(default=1, ge=1, le=6, description="Heading level (1-6)")
    content: str = Field(description="Section body text")


class CodeBlock(BaseModel):
    """A code example extracted from a document"""

    language: str = Field(description="Code language tag")
    content: str = Field(description="Code text")


class ParsedDocument(BaseModel):
    """Structured view of a source document, produced by a parser"""

    title: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)
    code_blocks: list[CodeBlock] = Field(default_factory=list)
    frontmatter: dict = Field(default_factory=dict, description="Raw front matter (markdown)")
    source_format: DocumentFormat = DocumentFormat.MARKDOWN
