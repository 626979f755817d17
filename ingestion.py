"""Turning raw CV files into stored resumes."""
from typing import List, Optional, Protocol

import structlog
from sqlalchemy.orm import Session

import crud
import models
import schemas
from candidate_info import extract_candidate_info
from document_extractor import extract_text
from exceptions import EmptyDocumentFailure, ExtractionFailure

logger = structlog.get_logger(__name__)

UPLOAD_SOURCE = "upload"


class AttachmentSource(Protocol):
    """A mail provider (or similar) that yields CV attachments.

    Credentials are handed in on every call; sources keep no token state.
    """

    provider: str

    async def fetch_attachments(
        self, credentials: schemas.ProviderCredentials
    ) -> List[schemas.Attachment]: ...


async def ingest_attachment(
    db: Session, user_id: int, attachment: schemas.Attachment, source: str = UPLOAD_SOURCE
) -> models.Resume:
    """Extract, identify and store one attachment.

    Raises an ExtractionFailure subclass when no text can be obtained; in that
    case nothing is written.
    """
    text = extract_text(attachment.content, attachment.mime_type)
    if not text.strip():
        raise EmptyDocumentFailure()

    info = await extract_candidate_info(text)
    resume = crud.create_resume(
        db,
        schemas.ResumeCreate(
            extracted_text=text,
            original_file_name=attachment.filename,
            file_type=attachment.mime_type,
            source=source,
            candidate_name=info.name,
            email=info.email,
            phone=info.phone,
            received_at=attachment.received_at,
        ),
        user_id=user_id,
    )
    db.commit()
    db.refresh(resume)
    logger.info("Resume stored", resume_id=resume.id, user_id=user_id, source=source)
    return resume


async def ingest_attachments(
    db: Session,
    user_id: int,
    attachments: List[schemas.Attachment],
    source: str = UPLOAD_SOURCE,
    max_bytes: Optional[int] = None,
) -> schemas.IngestionSummary:
    """Ingest each attachment independently; one bad file does not stop the rest."""
    summary = schemas.IngestionSummary()

    for attachment in attachments:
        if max_bytes is not None and len(attachment.content) > max_bytes:
            summary.failed += 1
            summary.errors.append(f"{attachment.filename}: File exceeds the {max_bytes} byte limit")
            continue
        try:
            resume = await ingest_attachment(db, user_id, attachment, source=source)
        except ExtractionFailure as exc:
            logger.warning("Skipping attachment", filename=attachment.filename, reason=exc.message)
            summary.failed += 1
            summary.errors.append(f"{attachment.filename}: {exc.message}")
            continue
        summary.successful += 1
        summary.resume_ids.append(resume.id)

    logger.info(
        "Ingestion complete",
        user_id=user_id,
        source=source,
        successful=summary.successful,
        failed=summary.failed,
    )
    return summary


async def ingest_from_source(
    db: Session,
    user_id: int,
    source: AttachmentSource,
    credentials: schemas.ProviderCredentials,
) -> schemas.IngestionSummary:
    attachments = await source.fetch_attachments(credentials)
    logger.info("Fetched attachments", provider=source.provider, count=len(attachments))
    return await ingest_attachments(db, user_id, attachments, source=source.provider)
