from typing import List, NamedTuple, Sequence
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..errors import DimensionMismatch, IndexNotFoundError, VectorSearchError
from ..models import Chunk
from .store import DocumentStore

log = structlog.get_logger(__name__)


class SearchHit(NamedTuple):
    chunk: Chunk
    score: float
    document_id: UUID


class VectorSearchIndex:
    """Owner-scoped nearest-neighbour search over stored chunk embeddings.

    The store ranks candidates first; owner filtering and truncation to
    ``limit`` happen here afterwards, so ``candidate_multiplier`` times more
    candidates than requested are pulled from the store.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        dimension: int = 384,
        index_name: str = "ix_chunks_vector",
        candidate_multiplier: int = 10,
    ):
        self.store = store
        self.dimension = dimension
        self.index_name = index_name
        self.candidate_multiplier = candidate_multiplier

    async def exists(self) -> bool:
        return await self.store.index_exists(self.index_name)

    async def ensure_index(self) -> bool:
        """Create the index unless it is already there. Returns True if created."""
        if await self.exists():
            log.info("Vector search index already exists", index=self.index_name)
            return False
        await self.store.create_index(self.index_name)
        log.info("Vector search index created", index=self.index_name, dimension=self.dimension, similarity="cosine")
        return True

    async def drop_index(self) -> None:
        if not await self.exists():
            raise IndexNotFoundError(f"Vector search index {self.index_name!r} does not exist")
        await self.store.drop_index(self.index_name)
        log.info("Vector search index dropped", index=self.index_name)

    async def query(self, query_vector: Sequence[float], owner_id: str, limit: int = 5) -> List[SearchHit]:
        if len(query_vector) != self.dimension:
            raise DimensionMismatch(
                f"Query vector must have dimension {self.dimension}, got {len(query_vector)}"
            )
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        try:
            if not await self.exists():
                raise IndexNotFoundError(f"Vector search index {self.index_name!r} does not exist")
            candidates = await self.store.search_by_vector(
                list(query_vector), {"owner_id": owner_id}, limit * self.candidate_multiplier
            )
        except SQLAlchemyError as e:
            log.exception("Vector search failed", owner_id=owner_id)
            raise VectorSearchError(f"Failed to perform vector search: {e}") from e

        # Never trust the engine's filter: drop anything another owner holds
        own = [c for c in candidates if c.owner_id == owner_id]
        if len(own) != len(candidates):
            log.warning("Discarded cross-owner search candidates", owner_id=owner_id, dropped=len(candidates) - len(own))
        own.sort(key=lambda c: c.score, reverse=True)
        return [SearchHit(c.chunk, c.score, c.document_id) for c in own[:limit]]
