import asyncio
from datetime import datetime, timezone
from typing import Awaitable, List, Sequence, Tuple, TypeVar
from uuid import UUID

import structlog

from ..config import Settings
from ..errors import Cancelled, CerebroError, EmbeddingGenerationError, ExtractionError, UnsupportedMimeType
from ..models import Chunk, Document, ProcessingStatus
from ..schemas import DocumentStatus, IngestOptions
from ..utils.text import split_text, word_count
from .embedding import EmbeddingService
from .extract import extract_text
from .store import DocumentStore

log = structlog.get_logger(__name__)

T = TypeVar("T")


class DocumentIngestionPipeline:
    """extract -> chunk -> embed -> persist, with status tracked on the Document.

    The document is written after creation, when processing starts, and once
    more in its terminal state, so status can be polled while it runs. Any
    failure after creation leaves the document ``failed``/``failed`` with the
    error recorded, then re-raises.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedding_service: EmbeddingService,
        *,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        timeout: float | None = None,
    ):
        self.store = store
        self.embedding_service = embedding_service
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.timeout = timeout

    @classmethod
    def from_settings(
        cls, settings: Settings, store: DocumentStore, embedding_service: EmbeddingService
    ) -> "DocumentIngestionPipeline":
        return cls(
            store,
            embedding_service,
            chunk_size=settings.CHUNK_SIZE,
            chunk_overlap=settings.CHUNK_OVERLAP,
            timeout=settings.INGEST_TIMEOUT,
        )

    async def submit(
        self,
        content: bytes,
        owner_id: str,
        mime_type: str,
        original_name: str,
        options: IngestOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> Document:
        """Extract text from an uploaded file and ingest it.

        Extraction failures are recorded as an already-failed document whose
        id is attached to the re-raised error.
        """
        try:
            text = await extract_text(content, mime_type)
            if not text or not text.strip():
                raise ExtractionError("Empty text after extraction")
        except (UnsupportedMimeType, ExtractionError) as e:
            document = await self.store.create(Document(
                owner_id=owner_id,
                original_name=original_name,
                mime_type=mime_type,
                content="",
                processing_status=ProcessingStatus.FAILED,
                vectorization_status=ProcessingStatus.FAILED,
                error=str(e),
                doc_metadata={},
                chunks=[],
            ))
            log.error("Document extraction failed", document_id=str(document.id), owner_id=owner_id,
                      mime_type=mime_type, error=str(e))
            e.document_id = document.id
            raise
        return await self.ingest(text, owner_id, mime_type, original_name, options, timeout=timeout)

    async def ingest(
        self,
        text: str,
        owner_id: str,
        mime_type: str,
        original_name: str,
        options: IngestOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> Document:
        options = options or IngestOptions()
        document = await self.store.create(Document(
            owner_id=owner_id,
            original_name=original_name,
            mime_type=mime_type,
            content=text,
            processing_status=ProcessingStatus.PENDING,
            vectorization_status=ProcessingStatus.PENDING,
            doc_metadata={},
            chunks=[],
        ))
        doc_log = log.bind(document_id=str(document.id), owner_id=owner_id)
        doc_log.info("Document created", original_name=original_name, mime_type=mime_type, length=len(text))

        document.processing_status = ProcessingStatus.PROCESSING
        document = await self.store.save(document)

        try:
            chunks, metadata = await self._with_deadline(
                self._chunk_and_embed(text, owner_id, options), timeout
            )
            document.chunks = chunks
            document.doc_metadata = metadata
            document.processing_status = ProcessingStatus.COMPLETED
            document.vectorization_status = ProcessingStatus.COMPLETED
            document.error = None
            document = await self.store.save(document)
        except asyncio.CancelledError:
            doc_log.warning("Document ingestion cancelled")
            # The task is going away; the terminal write must still land
            await asyncio.shield(self._mark_failed(document, "Ingestion cancelled"))
            raise
        except Exception as e:
            doc_log.exception("Document ingestion failed")
            await self._mark_failed(document, str(e) or type(e).__name__)
            if isinstance(e, CerebroError) and e.document_id is None:
                e.document_id = document.id
            raise

        doc_log.info("Document ingested", total_chunks=metadata["total_chunks"])
        return document

    async def _mark_failed(self, document: Document, error: str) -> None:
        document.chunks = []
        document.processing_status = ProcessingStatus.FAILED
        document.vectorization_status = ProcessingStatus.FAILED
        document.error = error
        await self.store.save(document)

    async def _chunk_and_embed(self, text: str, owner_id: str, options: IngestOptions) -> Tuple[List[Chunk], dict]:
        chunk_size = self.chunk_size if options.chunk_size is None else options.chunk_size
        chunk_overlap = self.chunk_overlap if options.chunk_overlap is None else options.chunk_overlap

        chunks = split_text(text, chunk_size, chunk_overlap)
        for chunk in chunks:
            chunk.owner_id = owner_id
        log.debug("Split document", owner_id=owner_id, chunks=len(chunks),
                  chunk_size=chunk_size, chunk_overlap=chunk_overlap)

        chunks = await self.embedding_service.generate_embeddings(chunks)
        dimension = self.embedding_service.dimension
        if any(not c.embedding or len(c.embedding) != dimension for c in chunks):
            raise EmbeddingGenerationError(f"Not every chunk carries a {dimension}-dimensional embedding")

        metadata = {
            "total_chunks": len(chunks),
            "word_count": word_count(text),
            "last_processed": datetime.now(timezone.utc).isoformat(),
        }
        return chunks, metadata

    async def _with_deadline(self, aw: Awaitable[T], timeout: float | None) -> T:
        timeout = self.timeout if timeout is None else timeout
        if timeout is None:
            return await aw
        try:
            async with asyncio.timeout(timeout) as deadline:
                return await aw
        except TimeoutError as e:
            # A TimeoutError from inside the work itself is not our deadline
            if not deadline.expired():
                raise
            raise Cancelled(f"Ingestion exceeded its {timeout}s deadline") from e

    async def get_status(self, document_id: UUID) -> DocumentStatus:
        document = await self.store.get(document_id)
        return DocumentStatus(
            processing_status=document.processing_status,
            vectorization_status=document.vectorization_status,
            error=document.error,
        )

    async def get_document(self, document_id: UUID) -> Document:
        return await self.store.get(document_id)

    async def list_documents(self, owner_id: str) -> Sequence[Document]:
        return await self.store.list_by_owner(owner_id)
