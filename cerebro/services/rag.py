import asyncio
import uuid
from typing import Any, List

import structlog

from ..config import Settings
from ..errors import Cancelled
from ..schemas import QueryResponse
from ..utils.citations import assemble_answer, build_citations
from .embedding import EmbeddingService
from .vector_search import VectorSearchIndex

log = structlog.get_logger(__name__)


class QueryService:
    def __init__(
        self,
        embedding_service: EmbeddingService,
        index: VectorSearchIndex,
        *,
        top_k: int = 5,
        timeout: float | None = None,
    ):
        self.embedding_service = embedding_service
        self.index = index
        self.top_k = top_k
        self.timeout = timeout

    @classmethod
    def from_settings(
        cls, settings: Settings, embedding_service: EmbeddingService, index: VectorSearchIndex
    ) -> "QueryService":
        return cls(embedding_service, index, top_k=settings.SEARCH_TOP_K, timeout=settings.QUERY_TIMEOUT)

    async def answer(
        self,
        query: str,
        owner_id: str,
        conversation_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> QueryResponse:
        """Retrieve the owner's best-matching chunks and answer with citations.

        Errors from embedding or search are not caught here.
        """
        timeout = self.timeout if timeout is None else timeout
        if timeout is None:
            hits = await self._retrieve(query, owner_id)
        else:
            try:
                async with asyncio.timeout(timeout) as deadline:
                    hits = await self._retrieve(query, owner_id)
            except TimeoutError as e:
                if not deadline.expired():
                    raise
                raise Cancelled(f"Query exceeded its {timeout}s deadline") from e

        citations = build_citations(hits)
        log.info("Query answered", owner_id=owner_id, citations=len(citations))
        return QueryResponse(
            answer=assemble_answer(query, citations),
            citations=citations,
            conversation_id=conversation_id or uuid.uuid4().hex,
        )

    async def _retrieve(self, query: str, owner_id: str):
        query_vector = await self.embedding_service.generate_embedding(query)
        return await self.index.query(query_vector, owner_id, self.top_k)

    async def history(self, owner_id: str) -> List[Any]:
        # No conversation state is persisted
        return []
