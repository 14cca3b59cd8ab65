"""
Shared test fixtures.

Provides: in-memory SQLite store, deterministic-shape embedding providers,
embedding service and ingestion pipeline wired for fast tests.
"""

import asyncio
import io
from typing import List, Sequence

import pytest
from docx import Document as DocxDocument
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from cerebro.db import init_models
from cerebro.errors import EmbeddingProviderError
from cerebro.services.embedding import EmbeddingService, MockEmbeddingProvider
from cerebro.services.ingestion import DocumentIngestionPipeline
from cerebro.services.store import DocumentStore
from cerebro.services.vector_search import VectorSearchIndex

DIM = 384


class CountingProvider(MockEmbeddingProvider):
    """Mock provider that records every batch and can fail on demand.

    ``failures`` is consumed front to back, one entry per embed_batch call;
    ``None`` means the call succeeds.
    """

    def __init__(self, dimension: int = DIM, failures: Sequence[Exception | None] = (), delay: float = 0.0):
        super().__init__(dimension, seed=1234)
        self.batches: List[List[str]] = []
        self.single_calls: List[str] = []
        self._failures = list(failures)
        self._delay = delay

    async def embed_batch(self, texts):
        self.batches.append(list(texts))
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._failures:
            failure = self._failures.pop(0)
            if failure is not None:
                raise failure
        return await super().embed_batch(texts)

    async def embed_one(self, text):
        self.single_calls.append(text)
        return await super().embed_one(text)


class FixedProvider:
    """Returns a caller-chosen vector per text, for ranking assertions."""

    def __init__(self, vectors: dict, dimension: int):
        self.vectors = vectors
        self.dimension = dimension

    async def embed_one(self, text):
        return list(self.vectors[text])

    async def embed_batch(self, texts):
        return [list(self.vectors[t]) for t in texts]


def transient_error() -> EmbeddingProviderError:
    return EmbeddingProviderError("rate limited", transient=True)


def make_docx(*paragraphs: str) -> bytes:
    doc = DocxDocument()
    for p in paragraphs:
        doc.add_paragraph(p)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


@pytest.fixture
async def engine():
    """In-memory SQLite engine with the schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine) -> DocumentStore:
    return DocumentStore(engine)


@pytest.fixture
def provider() -> CountingProvider:
    return CountingProvider()


@pytest.fixture
def embedding_service(provider) -> EmbeddingService:
    return EmbeddingService(provider, batch_size=5, batch_delay=0, max_retries=0, retry_min_wait=0, retry_max_wait=0)


@pytest.fixture
def pipeline(store, embedding_service) -> DocumentIngestionPipeline:
    return DocumentIngestionPipeline(store, embedding_service, chunk_size=1000, chunk_overlap=200)


@pytest.fixture
async def index(store) -> VectorSearchIndex:
    index = VectorSearchIndex(store, dimension=DIM)
    await index.ensure_index()
    return index
