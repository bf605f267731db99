"""Unit tests for content classification"""

from unittest.mock import AsyncMock, patch

import pytest

from docsync.models.chunk import ContentType
from docsync.services.classifier import ClassificationError, ContentClassifier


class TestContentClassifier:
    """Test label normalization, retries and fallbacks"""

    @pytest.mark.asyncio
    async def test_without_backend_everything_is_guide(self):
        classifier = ContentClassifier(backend=None)

        assert await classifier.classify("Step 1: install Flutter") == ContentType.GUIDE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "label,expected",
        [
            ("tutorial", ContentType.TUTORIAL),
            ("  API\n", ContentType.API),
            ("Cookbook.", ContentType.COOKBOOK),
            ("reference", ContentType.REFERENCE),
            ("poetry", ContentType.GUIDE),
            ("code", ContentType.GUIDE),
        ],
    )
    async def test_labels_are_normalized(self, label, expected):
        backend = AsyncMock(return_value=label)
        classifier = ContentClassifier(backend=backend, backoff_base=0)

        assert await classifier.classify("some text") == expected

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        backend = AsyncMock(side_effect=[ClassificationError("rate limited"), "tutorial"])
        classifier = ContentClassifier(backend=backend, max_attempts=3, backoff_base=0)

        assert await classifier.classify("text") == ContentType.TUTORIAL
        assert backend.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_default_to_guide(self):
        backend = AsyncMock(side_effect=ClassificationError("down"))
        classifier = ContentClassifier(backend=backend, max_attempts=3, backoff_base=0)

        assert await classifier.classify("text") == ContentType.GUIDE
        assert backend.await_count == 3

    @pytest.mark.asyncio
    async def test_backoff_is_exponential(self):
        backend = AsyncMock(side_effect=ClassificationError("down"))
        classifier = ContentClassifier(backend=backend, max_attempts=3, backoff_base=2.0)

        with patch("docsync.services.classifier.asyncio.sleep", new=AsyncMock()) as sleep:
            await classifier.classify("text")

        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]

    @patch("docsync.services.classifier.config")
    def test_from_config_without_api_key(self, mock_config):
        mock_config.openai_api_key = ""
        mock_config.classifier_max_attempts = 3
        mock_config.classifier_backoff_base_seconds = 2.0

        classifier = ContentClassifier.from_config()

        assert classifier.backend is None
