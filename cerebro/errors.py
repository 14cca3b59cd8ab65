"""Error kinds raised by the ingestion and retrieval core.

Every error carries the HTTP status the transport answers with, and
optionally the id of the document it was recorded against.
"""
from uuid import UUID


class CerebroError(Exception):
    status_code: int = 500

    def __init__(self, message: str, *, document_id: UUID | None = None):
        super().__init__(message)
        self.message = message
        self.document_id = document_id


class InvalidConfiguration(CerebroError):
    """Bad chunking parameters or an unknown provider name."""
    status_code = 400


class UnsupportedMimeType(CerebroError):
    status_code = 400


class ExtractionError(CerebroError):
    """The PDF/DOC parser could not read the file."""
    status_code = 422


class EmbeddingProviderError(CerebroError):
    """A single provider call failed.

    ``transient`` marks failures worth retrying (rate limits, timeouts,
    dropped connections).
    """
    status_code = 502

    def __init__(self, message: str, *, transient: bool = False, document_id: UUID | None = None):
        super().__init__(message, document_id=document_id)
        self.transient = transient


class EmbeddingGenerationError(CerebroError):
    status_code = 502


class DimensionMismatch(CerebroError):
    status_code = 400


class IndexNotFoundError(CerebroError):
    status_code = 503


class VectorSearchError(CerebroError):
    status_code = 500


class DocumentNotFound(CerebroError):
    status_code = 404


class Cancelled(CerebroError):
    """The caller's deadline expired before the operation finished."""
    status_code = 504
