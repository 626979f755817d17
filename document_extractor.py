"""Text extraction from uploaded / fetched CV files (PDF and Word)."""
import io

import fitz
import structlog
from docx import Document

from exceptions import MalformedDocumentFailure, UnsupportedTypeFailure

logger = structlog.get_logger(__name__)

PDF_TYPES = {"pdf", "application/pdf"}
WORD_TYPES = {
    "docx",
    "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
}


def normalize_file_type(declared_type: str) -> str:
    return (declared_type or "").strip().lower()


def is_supported_type(declared_type: str) -> bool:
    normalized = normalize_file_type(declared_type)
    return normalized in PDF_TYPES or normalized in WORD_TYPES


def extract_text_from_pdf(content: bytes) -> str:
    # Extract text from PDF using PyMuPDF (fitz)
    try:
        with fitz.open(stream=content, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
    except Exception as exc:
        logger.warning("PDF extraction failed", error=str(exc))
        raise MalformedDocumentFailure("Failed to extract text from PDF") from exc
    return "\n".join(pages).strip()


def extract_text_from_docx(content: bytes) -> str:
    try:
        doc = Document(io.BytesIO(content))
    except Exception as exc:
        logger.warning("DOCX extraction failed", error=str(exc))
        raise MalformedDocumentFailure("Failed to extract text from DOCX") from exc
    return "\n".join(para.text for para in doc.paragraphs).strip()


def extract_text(content: bytes, declared_type: str) -> str:
    """Extract plain text from a CV file.

    Dispatches on the declared type (extension or mime type). Raises
    UnsupportedTypeFailure for anything that is not PDF or Word, and
    MalformedDocumentFailure when the parser rejects the bytes. Neither is
    worth retrying. May return an empty string for documents without text.
    """
    normalized = normalize_file_type(declared_type)

    if normalized in PDF_TYPES:
        return extract_text_from_pdf(content)
    if normalized in WORD_TYPES:
        return extract_text_from_docx(content)

    raise UnsupportedTypeFailure(declared_type)
