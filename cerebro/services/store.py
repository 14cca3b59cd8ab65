from typing import Any, Dict, List, NamedTuple, Sequence
from uuid import UUID

import numpy as np
import structlog
from sqlalchemy import Column, Index, MetaData, String, Table, Uuid, inspect, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from ..errors import DocumentNotFound
from ..models import Chunk, Document

log = structlog.get_logger(__name__)


class VectorCandidate(NamedTuple):
    chunk: Chunk
    score: float
    document_id: UUID
    owner_id: str


def _to_vec(raw) -> np.ndarray:
    if raw is None:
        raw = []
    return np.asarray([float(x) for x in raw], dtype=np.float32).reshape(-1)


def _cosine(q: np.ndarray, e: np.ndarray) -> float:
    if e.size == 0 or e.size != q.size:
        return 0.0
    return float(np.dot(q, e) / (np.linalg.norm(q) * np.linalg.norm(e) + 1e-8))


def _vector_index(name: str) -> Index:
    # Bound to a private copy of the chunks table so the index never joins
    # Base.metadata and create_all keeps ignoring it.
    table = Table(
        Chunk.__tablename__,
        MetaData(),
        Column("owner_id", String(64)),
        Column("document_id", Uuid),
    )
    return Index(name, table.c.owner_id, table.c.document_id)


class DocumentStore:
    """SQLAlchemy-backed persistence for documents, chunks and the vector index.

    Every method runs in its own session; instances handed back are detached
    and fully loaded (chunks included).
    """

    def __init__(self, engine: AsyncEngine, session_factory: async_sessionmaker | None = None):
        self.engine = engine
        self.session_factory = session_factory or async_sessionmaker(engine, expire_on_commit=False)

    async def create(self, document: Document) -> Document:
        async with self.session_factory() as session:
            session.add(document)
            await session.commit()
        return document

    async def get(self, document_id: UUID) -> Document:
        async with self.session_factory() as session:
            document = await session.get(Document, document_id)
        if document is None:
            raise DocumentNotFound(f"Document {document_id} not found", document_id=document_id)
        return document

    async def list_by_owner(self, owner_id: str) -> Sequence[Document]:
        async with self.session_factory() as session:
            res = await session.execute(
                select(Document).where(Document.owner_id == owner_id).order_by(Document.created_at.desc())
            )
            return res.scalars().all()

    async def save(self, document: Document) -> Document:
        """Write the document (and its chunk list) in one transaction.

        Returns the persisted instance; callers keep working with that one.
        """
        async with self.session_factory() as session:
            merged = await session.merge(document)
            await session.commit()
        return merged

    async def index_exists(self, name: str) -> bool:
        async with self.engine.connect() as conn:
            indexes = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_indexes(Chunk.__tablename__)
            )
        return any(ix["name"] == name for ix in indexes)

    async def create_index(self, name: str) -> None:
        async with self.engine.begin() as conn:
            # checkfirst: a concurrent worker may have created it since exists()
            await conn.run_sync(_vector_index(name).create, checkfirst=True)

    async def drop_index(self, name: str) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(_vector_index(name).drop)

    async def search_by_vector(
        self, vector: List[float], filter: Dict[str, Any], candidate_count: int
    ) -> List[VectorCandidate]:
        """Rank embedded chunks matching ``filter`` by cosine similarity.

        ``filter`` maps chunk column names to required values. At most
        ``candidate_count`` candidates come back, best first.
        """
        stmt = select(Chunk).where(Chunk.embedding.is_not(None))
        for column, value in filter.items():
            stmt = stmt.where(getattr(Chunk, column) == value)

        async with self.session_factory() as session:
            res = await session.execute(stmt)
            rows: List[Chunk] = list(res.scalars().all())

        q = _to_vec(vector)
        scored = [VectorCandidate(ch, _cosine(q, _to_vec(ch.embedding)), ch.document_id, ch.owner_id) for ch in rows]
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored[:candidate_count]
