"""Extract documentation content from HTML pages"""

import html
import logging
import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from docsync.config import config
from docsync.models.document import CodeBlock, DocumentFormat, ParsedDocument, Section
from docsync.services.doc_parser import ParseError, decode_document

logger = logging.getLogger(__name__)

# First match wins
CONTENT_SELECTORS = ["main .content", "main", ".content", "article", ".markdown-body", "#content"]

UNWANTED_SELECTORS = [
    "nav",
    ".nav",
    ".navigation",
    ".sidebar",
    ".toc",
    ".table-of-contents",
    ".breadcrumbs",
    ".breadcrumb",
    "footer",
    ".footer",
    ".social-share",
    ".share-buttons",
    "script",
    "style",
    "noscript",
]

CODE_SELECTOR = "pre code, .highlight code, .code-block"
MIN_CODE_LENGTH = 10

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
BLOCK_TAGS = HEADING_TAGS + ["p", "pre", "li", "blockquote", "table", "dl"]

_LANGUAGE_CLASS = re.compile(r"^(?:language|lang)-(\w+)$")


class HtmlParser:
    """Extract title, metadata, sections and code examples from a documentation page"""

    def __init__(
        self,
        min_text_length: int | None = None,
        default_code_language: str | None = None,
    ) -> None:
        self.min_text_length = (
            config.min_html_text_length if min_text_length is None else min_text_length
        )
        self.default_code_language = default_code_language or config.default_code_language

    def parse(self, raw: bytes | str, url: str) -> ParsedDocument:
        """
        Parse HTML and extract documentation content

        Args:
            raw: HTML content (bytes are decoded as UTF-8)
            url: Source URL (title fallback and error context)

        Returns:
            ParsedDocument with one section per heading

        Raises:
            ParseError: If the page is empty or its main content is too short
        """
        html_content = decode_document(raw, url)
        if not html_content.strip():
            raise ParseError(url, "HTML content is empty")

        soup = BeautifulSoup(html_content, "lxml")

        for selector in UNWANTED_SELECTORS:
            for element in soup.select(selector):
                element.decompose()

        container, selector = self.find_content_container(soup)
        if container is None:
            raise ParseError(url, "No content container or <body> found")

        title = self._extract_title(soup, url)
        sections = self._extract_sections(container, title)

        text_length = len(" ".join(" ".join(s.content for s in sections).split()))
        if text_length < self.min_text_length:
            raise ParseError(
                url, f"Content too short ({text_length} chars, minimum {self.min_text_length})"
            )

        metadata = self.extract_metadata(soup)
        parsed = ParsedDocument(
            title=title,
            description=metadata.get("description", ""),
            tags=[k.strip() for k in metadata.get("keywords", "").split(",") if k.strip()],
            sections=sections,
            code_blocks=self._extract_code_blocks(container),
            source_format=DocumentFormat.HTML,
        )

        logger.debug(f"Parsed {url} using '{selector}' ({len(sections)} sections)")
        return parsed

    def find_content_container(self, soup: BeautifulSoup) -> tuple[Tag | None, str]:
        """
        Locate the main content area

        Returns:
            Tuple of (container, selector that matched); falls back to <body>
        """
        for selector in CONTENT_SELECTORS:
            container = soup.select_one(selector)
            if container is not None:
                return container, selector

        logger.debug("No content selector matched, falling back to <body>")
        return soup.find("body"), "body"

    def extract_metadata(self, soup: BeautifulSoup) -> dict[str, str]:
        """
        Extract description and keywords from meta tags

        Args:
            soup: BeautifulSoup parsed HTML

        Returns:
            Dictionary of metadata key-value pairs
        """
        metadata: dict[str, str] = {}

        desc_tag = soup.find("meta", attrs={"name": "description"}) or soup.find(
            "meta", attrs={"property": "og:description"}
        )
        if desc_tag and desc_tag.get("content"):
            metadata["description"] = desc_tag["content"].strip()

        keywords_tag = soup.find("meta", attrs={"name": "keywords"})
        if keywords_tag and keywords_tag.get("content"):
            metadata["keywords"] = keywords_tag["content"]

        return metadata

    @staticmethod
    def clean_text(text: str) -> str:
        """
        Clean and normalize extracted text

        Args:
            text: Raw text extracted from HTML

        Returns:
            Cleaned text with normalized whitespace
        """
        # Decode HTML entities
        text = html.unescape(text)

        # Collapse runs of spaces and tabs
        text = re.sub(r"[ \t]+", " ", text)

        # Collapse 3+ newlines to 2 newlines (paragraph separation)
        text = re.sub(r"\n{3,}", "\n\n", text)

        return text.strip()

    def _extract_title(self, soup: BeautifulSoup, url: str) -> str:
        """First <h1>, else <title>, else the last URL path segment"""
        h1_tag = soup.find("h1")
        if h1_tag and h1_tag.get_text(strip=True):
            return h1_tag.get_text(" ", strip=True)

        title_tag = soup.find("title")
        if title_tag and title_tag.get_text(strip=True):
            return title_tag.get_text(strip=True)

        segments = [s for s in urlparse(url).path.split("/") if s]
        return segments[-1] if segments else urlparse(url).netloc or url

    def _extract_sections(self, container: Tag, title: str) -> list[Section]:
        """
        Walk the container's block elements in order

        Every h1-h6 opens a new section. Text before the first heading goes
        into a section named after the page title.
        """
        sections: list[Section] = []
        heading, level = title, 1
        paragraphs: list[str] = []

        def close_section() -> None:
            content = "\n\n".join(paragraphs).strip()
            if content:
                sections.append(Section(heading=heading, level=level, content=content))

        blocks = [
            el
            for el in container.find_all(BLOCK_TAGS)
            if self._outermost_block(el, container)
        ]

        if not blocks:
            text = self.clean_text(container.get_text("\n"))
            return [Section(heading=title, level=1, content=text)] if text else []

        for element in blocks:
            if element.name in HEADING_TAGS:
                close_section()
                heading = element.get_text(" ", strip=True)
                level = int(element.name[1])
                paragraphs = [heading] if heading else []
                continue

            if element.name == "pre":
                # Keep code indentation
                text = element.get_text().strip("\n")
            else:
                text = self.clean_text(" ".join(element.get_text(" ", strip=True).split()))
            if text.strip():
                paragraphs.append(text)

        close_section()
        return sections

    @staticmethod
    def _outermost_block(element: Tag, container: Tag) -> bool:
        """True unless the element sits inside another block element of the container"""
        for parent in element.parents:
            if parent is container:
                return True
            if parent.name in BLOCK_TAGS:
                return False
        return True

    def _extract_code_blocks(self, container: Tag) -> list[CodeBlock]:
        """Code examples with their language; duplicates from nested matches are dropped"""
        blocks: list[CodeBlock] = []
        seen: set[str] = set()

        for element in container.select(CODE_SELECTOR):
            code = element.get_text().strip()
            if len(code) <= MIN_CODE_LENGTH or code in seen:
                continue
            seen.add(code)
            blocks.append(CodeBlock(language=self._code_language(element), content=code))

        return blocks

    def _code_language(self, element: Tag) -> str:
        candidates = [element] + [p for p in element.parents if p.name in ("pre", "div")][:2]
        for candidate in candidates:
            for css_class in candidate.get("class") or []:
                match = _LANGUAGE_CLASS.match(css_class)
                if match:
                    return match.group(1)
        return self.default_code_language
