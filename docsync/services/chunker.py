"""Split parsed documents into bounded, overlapping chunks"""

import logging
import re
from datetime import UTC, datetime

from docsync.config import config
from docsync.models.chunk import CODE_CHUNK_INDEX, Chunk, ContentType
from docsync.models.document import ParsedDocument
from docsync.services.classifier import ContentClassifier

logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"
CODE_SECTION = "Code Examples"

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_DOC_SUFFIX = re.compile(r"\.(md|html?)$", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


def slugify(identifier: str) -> str:
    """
    Turn a source identifier into a chunk id prefix

    'src/ui/layout.md' -> 'src_ui_layout'
    'https://docs.flutter.dev/ui/layout' -> 'docs_flutter_dev_ui_layout'
    """
    slug = _SCHEME.sub("", identifier.strip())
    slug = _DOC_SUFFIX.sub("", slug.rstrip("/"))
    return _NON_ALNUM.sub("_", slug).strip("_")


def prose_chunk_id(identifier: str, index: int) -> str:
    return f"{slugify(identifier)}_chunk_{index}"


def code_chunk_id(identifier: str, n: int) -> str:
    return f"{slugify(identifier)}_code_{n}"


def word_count(text: str) -> int:
    return len(text.split())


class Chunker:
    """Chunk parsed documents section by section, with a word overlap between chunks"""

    def __init__(
        self,
        classifier: ContentClassifier | None = None,
        max_chunk_size: int | None = None,
        overlap_size: int | None = None,
        min_trailing_size: int | None = None,
    ):
        self.classifier = classifier or ContentClassifier(backend=None)
        self.max_chunk_size = max_chunk_size or config.max_chunk_size
        self.overlap_size = config.chunk_overlap_size if overlap_size is None else overlap_size
        self.min_trailing_size = (
            config.min_trailing_chunk_size if min_trailing_size is None else min_trailing_size
        )
        # 200 characters of overlap is carried as roughly 40 words
        self.overlap_words = self.overlap_size // 5

    async def chunk(
        self,
        parsed: ParsedDocument,
        source_id: str,
        signature: str | None = None,
        url: str = "",
    ) -> list[Chunk]:
        """
        Chunk a parsed document

        Args:
            parsed: Parsed document
            source_id: Source identifier (repo path or URL), the chunk id prefix
            signature: Freshness signature stamped on every chunk
            url: Public URL of the document

        Returns:
            list[Chunk]: Prose chunks in document order, then one chunk per code block
        """
        chunks: list[Chunk] = []
        now = datetime.now(UTC)
        index = 0

        for section in parsed.sections:
            for body in self.split_section(section.content):
                content_type = await self.classifier.classify(body)
                chunks.append(
                    Chunk(
                        id=prose_chunk_id(source_id, index),
                        source_id=source_id,
                        url=url,
                        title=parsed.title,
                        section=section.heading,
                        description=parsed.description,
                        tags=parsed.tags,
                        content_type=content_type,
                        content=body,
                        word_count=word_count(body),
                        signature=signature,
                        chunk_index=index,
                        last_updated=now,
                    )
                )
                index += 1

        for n, block in enumerate(parsed.code_blocks):
            content = (
                f"Code example from {parsed.title}:\n\n"
                f"```{block.language}\n{block.content}\n```"
            )
            chunks.append(
                Chunk(
                    id=code_chunk_id(source_id, n),
                    source_id=source_id,
                    url=url,
                    title=f"{parsed.title} - Code Example",
                    section=CODE_SECTION,
                    description=parsed.description,
                    tags=parsed.tags,
                    content_type=ContentType.CODE,
                    content=content,
                    word_count=word_count(block.content),
                    signature=signature,
                    chunk_index=CODE_CHUNK_INDEX,
                    language=block.language,
                    last_updated=now,
                )
            )

        logger.debug(
            f"Created {len(chunks)} chunks for {source_id} "
            f"({index} prose, {len(parsed.code_blocks)} code)"
        )
        return chunks

    def split_section(self, content: str) -> list[str]:
        """
        Split one section into chunk bodies

        Paragraphs are accumulated until the next one would push the buffer
        past max_chunk_size; the next buffer then starts with the closing
        chunk's last words. A trailing buffer is kept only if it is longer
        than min_trailing_size.
        """
        bodies: list[str] = []
        current = ""

        for paragraph in self._paragraphs(content):
            appended_length = len(current) + len(PARAGRAPH_SEPARATOR) + len(paragraph)
            if current and appended_length > self.max_chunk_size:
                closed = current.strip()
                bodies.append(closed)
                overlap = self._overlap(closed, len(paragraph))
                current = f"{overlap} {paragraph}" if overlap else paragraph
            else:
                current = f"{current}{PARAGRAPH_SEPARATOR}{paragraph}" if current else paragraph

        if len(current.strip()) > self.min_trailing_size:
            bodies.append(current.strip())

        return bodies

    def _paragraphs(self, content: str) -> list[str]:
        """Blank-line separated paragraphs, oversized ones split at word boundaries"""
        paragraphs = []
        for paragraph in _PARAGRAPH_SPLIT.split(content):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            if len(paragraph) <= self.max_chunk_size:
                paragraphs.append(paragraph)
            else:
                paragraphs.extend(self._split_long(paragraph))
        return paragraphs

    def _split_long(self, paragraph: str) -> list[str]:
        """Cut a paragraph into pieces of at most max_chunk_size characters"""
        # Leave room for the overlap that precedes a piece in a new buffer
        limit = max(self.max_chunk_size - self.overlap_size, self.max_chunk_size // 2, 1)
        pieces: list[str] = []
        current = ""

        for word in paragraph.split():
            while len(word) > limit:
                if current:
                    pieces.append(current)
                    current = ""
                pieces.append(word[:limit])
                word = word[limit:]
            if current and len(current) + 1 + len(word) > limit:
                pieces.append(current)
                current = word
            else:
                current = f"{current} {word}" if current else word

        if current:
            pieces.append(current)
        return pieces

    def _overlap(self, closed: str, next_length: int) -> str:
        """Last overlap_words words of a closed chunk, shortened from the front if needed"""
        if self.overlap_words <= 0:
            return ""

        words = closed.split()[-self.overlap_words :]
        # Keep overlap + " " + next paragraph within the maximum
        while words and len(" ".join(words)) + 1 + next_length > self.max_chunk_size:
            words.pop(0)
        return " ".join(words)
