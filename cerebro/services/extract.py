
import io
from pdfminer.high_level import extract_text as pdf_extract
from docx import Document as DocxDocument
import structlog

from ..errors import ExtractionError, UnsupportedMimeType

log = structlog.get_logger(__name__)

PDF_MIME = "application/pdf"
DOC_MIME = "application/msword"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

SUPPORTED_MIME_TYPES = (PDF_MIME, DOC_MIME, DOCX_MIME)

async def extract_text(content: bytes, mime_type: str) -> str:
    if mime_type not in SUPPORTED_MIME_TYPES:
        raise UnsupportedMimeType(f"Unsupported file type: {mime_type}")
    try:
        if mime_type == PDF_MIME:
            return pdf_extract(io.BytesIO(content))
        # python-docx reads the OOXML container; legacy binary .doc files fail here
        doc = DocxDocument(io.BytesIO(content))
        return "\n".join(p.text for p in doc.paragraphs)
    except Exception as e:
        log.warning("Text extraction failed", mime_type=mime_type, error=str(e))
        raise ExtractionError(f"Failed to extract {mime_type} content: {e}") from e
