"""Shared fixtures"""

import pytest_asyncio

from docsync.services.document_store import DocumentStore


@pytest_asyncio.fixture
async def store():
    """Initialized in-memory document store"""
    document_store = DocumentStore(":memory:")
    await document_store.initialize()
    yield document_store
    document_store.close()
