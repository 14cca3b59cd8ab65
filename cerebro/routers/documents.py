from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from ..models import Document
from ..schemas import ChunkOut, DocumentOut, DocumentStatus, DocumentSummary, IngestOptions, UploadResponse
from ..services.ingestion import DocumentIngestionPipeline
from ..deps import get_pipeline

router = APIRouter(tags=["documents"])

def _document_out(doc: Document) -> DocumentOut:
    summary = DocumentSummary.model_validate(doc)
    return DocumentOut(
        **summary.model_dump(),
        chunks=[
            ChunkOut(
                index=c.index, content=c.content,
                start_offset=c.start_offset, end_offset=c.end_offset,
                has_embedding=bool(c.embedding),
            )
            for c in doc.chunks
        ],
    )

@router.post("/documents/upload", response_model=UploadResponse)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    owner_id: str = Form(...),
    chunk_size: Optional[int] = Form(None),
    chunk_overlap: Optional[int] = Form(None),
    pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
):
    settings = request.app.state.settings
    if file.content_type not in settings.ALLOWED_MIME_TYPES:
        raise HTTPException(400, "Invalid file type. Only PDF and DOC files are allowed.")
    content_bytes = await file.read()
    if not content_bytes:
        raise HTTPException(400, "Uploaded file is empty")
    if len(content_bytes) > settings.MAX_FILE_SIZE:
        raise HTTPException(400, f"File size exceeds {settings.MAX_FILE_SIZE} bytes limit")

    doc = await pipeline.submit(
        content_bytes, owner_id, file.content_type, file.filename or "upload",
        IngestOptions(chunk_size=chunk_size, chunk_overlap=chunk_overlap),
    )
    return UploadResponse(
        document_id=doc.id,
        chunks=len(doc.chunks),
        processing_status=doc.processing_status,
        vectorization_status=doc.vectorization_status,
    )

@router.get("/documents", response_model=List[DocumentSummary])
async def list_documents(owner_id: str, pipeline: DocumentIngestionPipeline = Depends(get_pipeline)):
    docs = await pipeline.list_documents(owner_id)
    return [DocumentSummary.model_validate(d) for d in docs]

@router.get("/documents/{document_id}/status", response_model=DocumentStatus)
async def document_status(document_id: UUID, pipeline: DocumentIngestionPipeline = Depends(get_pipeline)):
    return await pipeline.get_status(document_id)

@router.get("/documents/{document_id}", response_model=DocumentOut)
async def get_document(document_id: UUID, pipeline: DocumentIngestionPipeline = Depends(get_pipeline)):
    return _document_out(await pipeline.get_document(document_id))
