"""Markdown documentation parser"""

import logging
from pathlib import PurePosixPath
from typing import Any

import yaml
from markdown_it import MarkdownIt
from mdit_py_plugins.front_matter import front_matter_plugin

from docsync.config import config
from docsync.models.document import CodeBlock, DocumentFormat, ParsedDocument, Section

logger = logging.getLogger(__name__)


class ParseError(Exception):
    """Raised when a source document cannot be turned into a ParsedDocument"""

    def __init__(self, identifier: str, message: str):
        self.identifier = identifier
        self.message = message
        super().__init__(f"Failed to parse {identifier}: {message}")


def decode_document(raw: bytes | str, identifier: str) -> str:
    """Decode raw document bytes as UTF-8 (a leading BOM is dropped)"""
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(identifier, f"Content is not valid UTF-8: {e}") from e


def _as_tag_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(tag).strip() for tag in value if str(tag).strip()]
    return [str(value).strip()] if str(value).strip() else []


class DocParser:
    """Parse markdown documentation with YAML front matter"""

    def __init__(
        self,
        min_section_length: int | None = None,
        default_code_language: str | None = None,
    ):
        self.min_section_length = (
            config.min_section_length if min_section_length is None else min_section_length
        )
        self.default_code_language = default_code_language or config.default_code_language

        self.md = MarkdownIt("commonmark")
        self.md.use(front_matter_plugin)
        self.md.enable("table")

    def parse(self, raw: bytes | str, identifier: str) -> ParsedDocument:
        """
        Parse a markdown document into title, metadata, sections and code blocks

        Args:
            raw: Raw markdown (bytes are decoded as UTF-8)
            identifier: Source path, used for the title fallback and errors

        Returns:
            ParsedDocument with sections in document order

        Raises:
            ParseError: If the content cannot be decoded or the front matter is invalid
        """
        text = decode_document(raw, identifier)
        tokens = self.md.parse(text)
        lines = text.splitlines()

        frontmatter, body_start = self._extract_frontmatter(tokens, identifier)
        body = "\n".join(lines[body_start:]).strip()

        title = str(
            frontmatter.get("title")
            or frontmatter.get("name")
            or PurePosixPath(identifier).stem
        )
        description = str(frontmatter.get("description") or frontmatter.get("excerpt") or "")
        tags = _as_tag_list(frontmatter.get("tags"))

        sections = self._extract_sections(tokens, lines)
        if not sections and body:
            sections = [Section(heading=title, level=1, content=body)]

        return ParsedDocument(
            title=title,
            description=description,
            tags=tags,
            sections=sections,
            code_blocks=self._extract_code_blocks(tokens),
            frontmatter=frontmatter,
            source_format=DocumentFormat.MARKDOWN,
        )

    def _extract_frontmatter(self, tokens: list, identifier: str) -> tuple[dict[str, Any], int]:
        """Return the parsed front matter and the first body line index"""
        for token in tokens:
            if token.type != "front_matter":
                continue
            try:
                data = yaml.safe_load(token.content) or {}
            except yaml.YAMLError as e:
                raise ParseError(identifier, f"Invalid front matter: {e}") from e
            if not isinstance(data, dict):
                raise ParseError(identifier, "Front matter is not a mapping")
            body_start = token.map[1] if token.map else 0
            return data, body_start
        return {}, 0

    def _extract_sections(self, tokens: list, lines: list[str]) -> list[Section]:
        """
        Slice the document at heading lines

        Each section runs from its heading line up to the next heading line,
        so it includes the heading itself. Headings inside fenced code are
        never heading tokens.
        """
        headings: list[tuple[int, int, str]] = []
        for i, token in enumerate(tokens):
            if token.type == "heading_open" and token.map:
                level = int(token.tag[1])
                inline = tokens[i + 1] if i + 1 < len(tokens) else None
                text = inline.content.strip() if inline is not None else ""
                headings.append((token.map[0], level, text))

        sections = []
        for n, (start, level, heading) in enumerate(headings):
            end = headings[n + 1][0] if n + 1 < len(headings) else len(lines)
            content = "\n".join(lines[start:end]).strip()
            if len(content) > self.min_section_length:
                sections.append(Section(heading=heading, level=level, content=content))
        return sections

    def _extract_code_blocks(self, tokens: list) -> list[CodeBlock]:
        """Fenced code blocks; the language is the first word of the info string"""
        blocks = []
        for token in tokens:
            if token.type != "fence" or not token.content.strip():
                continue
            info = token.info.strip().split()
            language = info[0] if info else self.default_code_language
            blocks.append(CodeBlock(language=language, content=token.content.strip()))
        return blocks
