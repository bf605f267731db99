"""Content type classification of chunks using an LLM"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from openai import AsyncOpenAI

from docsync.config import config
from docsync.models.chunk import CLASSIFIABLE_TYPES, ContentType

logger = logging.getLogger(__name__)

# Async callable returning the raw label produced for a piece of text
ClassifierBackend = Callable[[str], Awaitable[str]]

PROMPT_EXCERPT_CHARS = 500

CLASSIFY_PROMPT = """Classify this Flutter documentation content into one of these categories:
- tutorial: Step-by-step instructions
- api: API reference documentation
- guide: Conceptual explanations
- cookbook: Code recipes/examples
- reference: Technical specifications

Content: {excerpt}...

Category:"""


class ClassificationError(Exception):
    """Raised by a classifier backend when a label cannot be produced"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Classification failed: {message}")


class OpenAIClassifierBackend:
    """Classifier backend using OpenAI chat completions"""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.client = AsyncOpenAI(api_key=api_key or config.openai_api_key)
        self.model = model or config.classifier_model

    async def __call__(self, text: str) -> str:
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": CLASSIFY_PROMPT.format(excerpt=text[:PROMPT_EXCERPT_CHARS]),
                    }
                ],
                temperature=0,
                max_tokens=5,
            )
        except Exception as e:
            raise ClassificationError(str(e)) from e

        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise ClassificationError("Empty completion")
        return content


class ContentClassifier:
    """
    Assign a ContentType to chunk text

    The backend is retried with exponential backoff. Unknown labels and
    exhausted retries yield ContentType.GUIDE; classification never fails a chunk.
    """

    def __init__(
        self,
        backend: ClassifierBackend | None = None,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
    ):
        self.backend = backend
        self.max_attempts = max_attempts or config.classifier_max_attempts
        self.backoff_base = (
            config.classifier_backoff_base_seconds if backoff_base is None else backoff_base
        )

    @classmethod
    def from_config(cls) -> "ContentClassifier":
        """Use the OpenAI backend when an API key is configured, else label everything guide"""
        if config.openai_api_key:
            return cls(backend=OpenAIClassifierBackend())
        logger.info("No OPENAI_API_KEY configured, all chunks will be classified as guide")
        return cls(backend=None)

    async def classify(self, text: str) -> ContentType:
        """
        Classify text into one of tutorial, api, guide, cookbook, reference

        Args:
            text: Chunk body

        Returns:
            The label, or ContentType.GUIDE when it cannot be determined
        """
        if self.backend is None:
            return ContentType.GUIDE

        for attempt in range(1, self.max_attempts + 1):
            try:
                label = await self.backend(text)
                return self._normalize(label)
            except Exception as e:
                logger.warning(
                    f"Error classifying content (attempt {attempt}/{self.max_attempts}): {e}"
                )
                if attempt < self.max_attempts:
                    wait_time = self.backoff_base**attempt if self.backoff_base else 0
                    await asyncio.sleep(wait_time)

        logger.error("Failed to classify content after all retries, defaulting to guide")
        return ContentType.GUIDE

    @staticmethod
    def _normalize(label: str) -> ContentType:
        cleaned = label.strip().lower().strip(" .:*`'\"")
        try:
            content_type = ContentType(cleaned)
        except ValueError:
            return ContentType.GUIDE
        return content_type if content_type in CLASSIFIABLE_TYPES else ContentType.GUIDE
