import os
import re
import json
import logging
from typing import List, Optional, Tuple
from pathlib import Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from fastapi import UploadFile
from app.models.access_link import AccessLink, LinkKind
from app.models.document import Document, DocumentType, DocumentStatus
from app.config import settings
from app.core.exceptions import (
    AccessLinkExhaustedException,
    DocumentUploadException,
    InvalidParameterException,
    ResourceNotFoundException,
    StorageFailureException,
)
from app.core.logging_utils import sanitize_log_message
from app.core.timeutils import utcnow
from app.services.access_link_service import AccessLinkService
from app.services.storage_service import LocalFileStorage
from app.services.workflow_service import WorkflowService

logger = logging.getLogger(__name__)

# Extension used when the client filename carries none we accept
MIME_EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
}
ALLOWED_EXTENSIONS = {'.pdf', '.jpg', '.jpeg', '.png', '.gif', '.doc', '.docx', '.xls', '.xlsx'}


def sanitize_display_name(original_filename: Optional[str]) -> str:
    """Strip path components and control characters from a client filename."""
    if not original_filename:
        return 'unnamed'
    clean_name = os.path.basename(original_filename.replace('\\', '/'))
    clean_name = re.sub(r'[<>:"/\\|?*\x00-\x1f]', '_', clean_name)
    return clean_name[:255] or 'unnamed'


def owner_prefix(name: Optional[str]) -> str:
    """Filename-safe form of the submitter's name ("Jane Doe" -> "Jane_Doe")."""
    prefix = re.sub(r'\s+', '_', (name or '').strip())
    prefix = re.sub(r'[^A-Za-z0-9_]', '', prefix)
    return prefix or 'Unknown'


def extension_for(original_filename: Optional[str], mime_type: str) -> str:
    ext = Path(original_filename or '').suffix.lower()
    if ext in ALLOWED_EXTENSIONS:
        return ext
    return MIME_EXTENSIONS.get(mime_type, '')


def timestamp_ms() -> int:
    return int(utcnow().timestamp() * 1000)


async def read_validated_upload(file: UploadFile) -> bytes:
    """
    Read an uploaded file after checking its type, then check its size.

    Raises:
        DocumentUploadException if the type is not allowed or the file is empty or too large
    """
    if file.content_type not in settings.ALLOWED_FILE_TYPES:
        raise DocumentUploadException(
            detail=f"File type {file.content_type} is not allowed for {sanitize_display_name(file.filename)}"
        )

    content = await file.read()
    file_size = len(content)

    if file_size == 0:
        raise DocumentUploadException(detail=f"File {sanitize_display_name(file.filename)} is empty")

    if file_size > settings.MAX_FILE_SIZE:
        raise DocumentUploadException(
            detail=f"File size ({file_size} bytes) exceeds maximum allowed size ({settings.MAX_FILE_SIZE} bytes)"
        )
    return content


def parse_document_types(raw: Optional[str], count: int) -> List[DocumentType]:
    """
    Resolve the per-file document types sent alongside an upload.

    ``raw`` is a JSON array string or a comma-separated list, matched to the
    files by index. Missing or blank entries default to ``other``.

    Raises:
        InvalidParameterException for an unknown document type
    """
    values: List[str] = []
    if raw and raw.strip():
        text = raw.strip()
        if text.startswith('['):
            try:
                parsed = json.loads(text)
            except ValueError:
                raise InvalidParameterException(detail="document_types is not a valid JSON array")
            if not isinstance(parsed, list):
                raise InvalidParameterException(detail="document_types must be a list")
            values = [str(v) if v is not None else '' for v in parsed]
        else:
            values = text.split(',')

    types = []
    for i in range(count):
        value = values[i].strip().lower() if i < len(values) else ''
        if not value:
            types.append(DocumentType.OTHER)
            continue
        try:
            types.append(DocumentType(value))
        except ValueError:
            raise InvalidParameterException(detail=f"Unknown document type: {value}")
    return types


class DocumentService:
    """Service for document upload, storage, review and retrieval."""

    def __init__(self, storage: Optional[LocalFileStorage] = None):
        self.storage = storage or LocalFileStorage()
        self.max_files = settings.MAX_FILES_PER_UPLOAD

    async def upload_documents(
        self,
        db: AsyncSession,
        token: str,
        files: List[UploadFile],
        document_types: Optional[str] = None
    ) -> Tuple[AccessLink, List[Document]]:
        """
        Store files sent through a document link.

        The link uses, the stored files, the Document rows and the
        documents_uploaded stage are committed together; any failure rolls
        all of it back and removes the files written so far.

        Args:
            db: Database session
            token: Document link token
            files: Uploaded files (1 to MAX_FILES_PER_UPLOAD)
            document_types: JSON array or comma list of types, by file index

        Returns:
            Tuple of (link after the claim, created documents)

        Raises:
            Access link errors, InvalidTransitionException,
            DocumentUploadException, InvalidParameterException, StorageFailureException
        """
        link = await AccessLinkService.validate_link(db, token, LinkKind.DOCUMENT)
        submission = link.submission
        WorkflowService.ensure_upload_allowed(submission)

        if not files:
            raise DocumentUploadException(detail="No files were uploaded")
        if len(files) > self.max_files:
            raise DocumentUploadException(detail=f"At most {self.max_files} files can be uploaded at once")
        if len(files) > link.uses_remaining:
            raise AccessLinkExhaustedException(
                detail=f"Cannot upload {len(files)} files. Only {link.uses_remaining} upload(s) remaining on this link"
            )

        types = parse_document_types(document_types, len(files))
        contents = [await read_validated_upload(f) for f in files]

        await AccessLinkService.claim_uses(db, link, len(files))

        prefix = owner_prefix(submission.name)
        timestamp = timestamp_ms()
        saved_keys: List[str] = []
        documents: List[Document] = []
        try:
            for i, (file, content, doc_type) in enumerate(zip(files, contents, types)):
                file_name = f"{prefix}_{doc_type.value}_{timestamp}_{i}{extension_for(file.filename, file.content_type)}"
                storage_key = f"documents/{submission.id}/{file_name}"
                await self.storage.save(storage_key, content)
                saved_keys.append(storage_key)

                document = Document(
                    submission_id=submission.id,
                    access_link_id=link.id,
                    document_type=doc_type,
                    original_name=sanitize_display_name(file.filename),
                    file_name=file_name,
                    storage_key=storage_key,
                    file_size=len(content),
                    mime_type=file.content_type,
                    status=DocumentStatus.UNVERIFIED
                )
                db.add(document)
                documents.append(document)

            WorkflowService.record_upload(submission)
            await db.commit()
        except Exception:
            await db.rollback()
            self._remove_files(saved_keys)
            raise

        for document in documents:
            await db.refresh(document)

        logger.info(
            sanitize_log_message(
                "Documents uploaded",
                submission_id=submission.id,
                link_id=link.id,
                count=len(documents),
                uses_remaining=link.uses_remaining
            )
        )

        await WorkflowService.notify_documents_uploaded(db, submission, len(documents))
        return link, documents

    def _remove_files(self, storage_keys: List[str]) -> None:
        for key in storage_keys:
            try:
                self.storage.delete(key)
            except StorageFailureException:
                logger.error(sanitize_log_message("Could not remove file after failed upload", Key=key))

    async def get_document(self, db: AsyncSession, document_id: int) -> Document:
        """
        Get a document by ID.

        Raises:
            ResourceNotFoundException if it does not exist
        """
        document = await db.get(Document, document_id)
        if not document:
            raise ResourceNotFoundException(detail="Document not found")
        return document

    async def get_documents_by_submission(self, db: AsyncSession, submission_id: int) -> List[Document]:
        """Documents of a submission, newest first."""
        result = await db.execute(
            select(Document)
            .where(Document.submission_id == submission_id)
            .order_by(Document.uploaded_at.desc(), Document.id.desc())
        )
        return result.scalars().all()

    async def get_document_file_path(self, db: AsyncSession, document_id: int) -> Tuple[Document, Path]:
        """
        Resolve the stored file of a document.

        Raises:
            ResourceNotFoundException if the record or its file is missing
        """
        document = await self.get_document(db, document_id)
        if not self.storage.exists(document.storage_key):
            logger.warning(sanitize_log_message("Document file missing", document_id=document_id))
            raise ResourceNotFoundException(detail="File not found")
        return document, self.storage.path_for(document.storage_key)

    async def verify_document(
        self,
        db: AsyncSession,
        document_id: int,
        user_id: int,
        status: DocumentStatus,
        rejection_reason: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Tuple[Document, bool]:
        """
        Record a review decision on a document.

        Verifying the last unverified document of a submission in the
        documents_uploaded stage also moves it to documents_verified.

        Returns:
            Tuple of (document, whether the submission advanced)

        Raises:
            InvalidParameterException if ``status`` is unverified
        """
        if status == DocumentStatus.UNVERIFIED:
            raise InvalidParameterException(detail="A review must set verified, rejected or needs_replacement")

        document = await self.get_document(db, document_id)
        document.status = status
        document.verified_by = user_id
        document.verified_at = utcnow()
        document.rejection_reason = rejection_reason if status != DocumentStatus.VERIFIED else None
        if notes is not None:
            document.notes = notes
        await db.commit()
        await db.refresh(document)

        logger.info(
            sanitize_log_message(
                "Document reviewed",
                document_id=document.id,
                submission_id=document.submission_id,
                status=status.value
            )
        )

        advanced = False
        if status == DocumentStatus.VERIFIED:
            advanced = await WorkflowService.try_complete_verification(db, document.submission_id, user_id)
        return document, advanced

    async def delete_document(self, db: AsyncSession, document_id: int) -> None:
        """
        Permanently delete a document and its stored file.

        Raises:
            ResourceNotFoundException, StorageFailureException
        """
        document = await self.get_document(db, document_id)
        storage_key = document.storage_key
        await db.delete(document)
        await db.flush()
        self.storage.delete(storage_key)
        await db.commit()

        logger.info(sanitize_log_message("Document deleted", document_id=document_id))
