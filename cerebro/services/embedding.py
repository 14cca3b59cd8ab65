import asyncio
from typing import Awaitable, Callable, List, Protocol, Sequence, TypeVar

import numpy as np
import structlog
from openai import (
    APIConnectionError,
    AsyncOpenAI,
    InternalServerError,
    OpenAIError,
    RateLimitError,
)
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..config import Settings
from ..errors import EmbeddingGenerationError, EmbeddingProviderError, InvalidConfiguration
from ..models import Chunk

log = structlog.get_logger(__name__)

T = TypeVar("T")


class EmbeddingProvider(Protocol):
    """Anything that turns text into fixed-size vectors."""

    dimension: int

    async def embed_one(self, text: str) -> List[float]: ...

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]: ...


class MockEmbeddingProvider:
    """Uniform noise in [-1, 1). Right shape, meaningless values."""

    def __init__(self, dimension: int = 384, seed: int | None = None):
        self.dimension = dimension
        self._rng = np.random.default_rng(seed)

    async def embed_one(self, text: str) -> List[float]:
        return self._rng.uniform(-1.0, 1.0, size=self.dimension).tolist()

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        return self._rng.uniform(-1.0, 1.0, size=(len(texts), self.dimension)).tolist()


class OpenAIEmbeddingProvider:
    def __init__(self, api_key: str, model: str, dimension: int, client: AsyncOpenAI | None = None):
        self.model = model
        self.dimension = dimension
        self._api_key = api_key
        self._client = client

    def get_client(self) -> AsyncOpenAI:
        if self._client is None:
            # retries are handled by EmbeddingService
            self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    async def embed_one(self, text: str) -> List[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        client = self.get_client()
        try:
            resp = await client.embeddings.create(
                model=self.model, input=list(texts), dimensions=self.dimension
            )
        except (RateLimitError, APIConnectionError, InternalServerError) as e:
            raise EmbeddingProviderError(f"OpenAI embeddings call failed: {e}", transient=True) from e
        except OpenAIError as e:
            raise EmbeddingProviderError(f"OpenAI embeddings call failed: {e}") from e
        return [d.embedding for d in resp.data]


def build_provider(settings: Settings) -> EmbeddingProvider:
    name = (settings.EMBEDDING_PROVIDER or "mock").lower()
    if name == "mock":
        return MockEmbeddingProvider(settings.EMBED_DIM, seed=settings.MOCK_EMBED_SEED)
    if name == "openai":
        if not settings.OPENAI_API_KEY:
            raise InvalidConfiguration(
                "OPENAI_API_KEY is not set. Please configure OPENAI_API_KEY in environment variables."
            )
        return OpenAIEmbeddingProvider(settings.OPENAI_API_KEY, settings.OPENAI_EMBED_MODEL, settings.EMBED_DIM)
    raise InvalidConfiguration(f"Unknown EMBEDDING_PROVIDER: {settings.EMBEDDING_PROVIDER!r}")


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, EmbeddingProviderError) and exc.transient


class EmbeddingService:
    """Batches chunk texts through a provider, one batch at a time.

    Batches run sequentially with ``batch_delay`` seconds between them so the
    provider's rate limit is respected. Transient provider errors are retried
    with exponential backoff up to ``max_retries`` extra attempts.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        *,
        batch_size: int = 5,
        batch_delay: float = 0.1,
        max_retries: int = 3,
        retry_min_wait: float = 0.5,
        retry_max_wait: float = 8.0,
    ):
        if batch_size <= 0:
            raise InvalidConfiguration(f"batch_size must be positive, got {batch_size}")
        self.provider = provider
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_retries = max_retries
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait

    @classmethod
    def from_settings(cls, settings: Settings, provider: EmbeddingProvider | None = None) -> "EmbeddingService":
        return cls(
            provider or build_provider(settings),
            batch_size=settings.EMBED_BATCH_SIZE,
            batch_delay=settings.EMBED_BATCH_DELAY_MS / 1000,
            max_retries=settings.EMBED_MAX_RETRIES,
            retry_min_wait=settings.EMBED_RETRY_MIN_WAIT,
            retry_max_wait=settings.EMBED_RETRY_MAX_WAIT,
        )

    @property
    def dimension(self) -> int:
        return self.provider.dimension

    async def _call(self, fn: Callable[[], Awaitable[T]]) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_min_wait, min=self.retry_min_wait, max=self.retry_max_wait),
            retry=retry_if_exception(_is_transient),
            before_sleep=lambda state: log.warning(
                "Retrying embedding provider call",
                attempt_number=state.attempt_number,
                error=str(state.outcome.exception()) if state.outcome else None,
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await fn()
        raise AssertionError("unreachable")  # pragma: no cover

    async def generate_embeddings(self, chunks: List[Chunk]) -> List[Chunk]:
        """Attach an embedding to every chunk, keeping order and indices.

        Embeddings are only written once every batch has succeeded; on failure
        the chunks are left untouched and EmbeddingGenerationError is raised.
        """
        vectors: List[List[float]] = []
        total_batches = -(-len(chunks) // self.batch_size)
        for batch_no, start in enumerate(range(0, len(chunks), self.batch_size), start=1):
            batch = chunks[start:start + self.batch_size]
            texts = [c.content for c in batch]
            try:
                batch_vectors = await self._call(lambda: self.provider.embed_batch(texts))
            except EmbeddingProviderError as e:
                log.error("Embedding batch failed", batch=batch_no, total_batches=total_batches, error=str(e))
                raise EmbeddingGenerationError(f"Failed to generate embeddings: {e}") from e
            except Exception as e:
                log.exception("Embedding batch failed unexpectedly", batch=batch_no, total_batches=total_batches)
                raise EmbeddingGenerationError(f"Failed to generate embeddings: {e!r}") from e

            if len(batch_vectors) != len(batch):
                raise EmbeddingGenerationError(
                    f"Provider returned {len(batch_vectors)} vectors for a batch of {len(batch)} texts"
                )
            for v in batch_vectors:
                if len(v) != self.dimension:
                    raise EmbeddingGenerationError(
                        f"Provider returned a vector of dimension {len(v)}, expected {self.dimension}"
                    )
            vectors.extend(batch_vectors)
            log.debug("Embedded batch", batch=batch_no, total_batches=total_batches, size=len(batch))

            if start + self.batch_size < len(chunks):
                await asyncio.sleep(self.batch_delay)

        for chunk, vector in zip(chunks, vectors):
            chunk.embedding = [float(x) for x in vector]
        return chunks

    async def generate_embedding(self, text: str) -> List[float]:
        """Single embedding, e.g. for a query. Provider errors propagate as-is."""
        return await self._call(lambda: self.provider.embed_one(text))
