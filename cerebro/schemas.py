
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from uuid import UUID

from .models import ProcessingStatus

class IngestOptions(BaseModel):
    chunk_size: Optional[int] = None
    chunk_overlap: Optional[int] = None

class UploadResponse(BaseModel):
    document_id: UUID
    chunks: int
    processing_status: ProcessingStatus
    vectorization_status: ProcessingStatus

class DocumentStatus(BaseModel):
    processing_status: ProcessingStatus
    vectorization_status: ProcessingStatus
    error: Optional[str] = None

class ChunkOut(BaseModel):
    index: int
    content: str
    start_offset: int
    end_offset: int
    has_embedding: bool = False

class DocumentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    owner_id: str
    original_name: str
    mime_type: str
    processing_status: ProcessingStatus
    vectorization_status: ProcessingStatus
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="doc_metadata")
    created_at: datetime

class DocumentOut(DocumentSummary):
    chunks: List[ChunkOut] = Field(default_factory=list)

class QueryRequest(BaseModel):
    query: str = Field(min_length=1)
    owner_id: str = Field(min_length=1)
    conversation_id: Optional[str] = None

class Citation(BaseModel):
    content: str
    document_id: UUID
    score: float

class QueryResponse(BaseModel):
    answer: str
    citations: List[Citation]
    conversation_id: str
