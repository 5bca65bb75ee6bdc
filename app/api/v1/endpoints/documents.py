from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Request, BackgroundTasks, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.api.deps import (
    AuditContext,
    get_audit_context,
    get_document_service,
    get_user_audit_context,
    get_whatsapp_client,
    require_admin,
    require_staff,
)
from app.config import settings
from app.external.whatsapp_client import WhatsAppClient
from app.middleware.rate_limit import limiter
from app.models.access_link import AccessLink, LinkKind
from app.models.audit_log import ActionType
from app.models.document import DocumentStatus, DocumentType
from app.models.user import User
from app.schemas.access_link import (
    AccessLinkResponse,
    DocumentLinkCreateRequest,
    DocumentLinkCreateResponse,
    LinkValidationResponse,
)
from app.schemas.common import MessageResponse
from app.schemas.document import (
    DocumentResponse,
    DocumentUploadResponse,
    DocumentVerifyRequest,
    DocumentVerifyResponse,
)
from app.schemas.submission import SubmissionResponse
from app.services.access_link_service import AccessLinkService
from app.services.document_service import DocumentService
from app.services.submission_service import SubmissionService
from app.services.workflow_service import WorkflowService

router = APIRouter()


def _link_response(link: AccessLink) -> AccessLinkResponse:
    response = AccessLinkResponse.model_validate(link)
    response.url = AccessLinkService.build_link_url(link)
    return response


@router.post("/generate-link", response_model=DocumentLinkCreateResponse, status_code=status.HTTP_201_CREATED)
async def generate_document_link(
    payload: DocumentLinkCreateRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    Issue a document upload link.

    From call_confirmed this moves the submission to documents_requested.
    Once documents were requested, a new link replaces the active one and
    the stage is left as is.
    """
    submission, link = await WorkflowService.request_documents(
        db,
        payload.submission_id,
        current_user.id,
        expires_in_days=payload.expires_in_days,
        max_uploads=payload.max_uploads,
        notes=payload.notes
    )
    link_response = _link_response(link)

    await audit.log_action(
        ActionType.DOCUMENT_LINK_GENERATED,
        resource_type="access_link",
        resource_id=link.id,
        request_data={
            "submission_id": submission.id,
            "expires_in_days": payload.expires_in_days,
            "max_uploads": payload.max_uploads
        }
    )
    background_tasks.add_task(
        whatsapp.notify_document_link,
        submission.name,
        submission.phone,
        link_response.url,
        link.expires_at
    )

    return DocumentLinkCreateResponse(
        link=link_response,
        submission=SubmissionResponse.model_validate(submission)
    )


@router.get("/links/{submission_id}", response_model=List[AccessLinkResponse])
async def list_document_links(
    submission_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    await SubmissionService.get_submission(db, submission_id)
    links = await AccessLinkService.list_links(db, submission_id, LinkKind.DOCUMENT)
    return [_link_response(link) for link in links]


@router.patch("/links/{link_id}/deactivate", response_model=AccessLinkResponse)
async def deactivate_document_link(
    link_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context)
):
    link = await AccessLinkService.deactivate_link(db, link_id, LinkKind.DOCUMENT)
    await audit.log_action(ActionType.DOCUMENT_LINK_DEACTIVATED, resource_type="access_link", resource_id=link.id)
    return _link_response(link)


@router.get("/validate-link/{token}", response_model=LinkValidationResponse)
@limiter.limit(settings.RATE_LIMIT_PUBLIC_LINKS)
async def validate_document_link(
    request: Request,
    token: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Public: check a document link before showing the upload page.
    """
    link = await AccessLinkService.validate_link(db, token, LinkKind.DOCUMENT)
    return LinkValidationResponse(
        kind=link.kind,
        submission_name=link.submission.name,
        service=link.submission.service,
        expires_at=link.expires_at,
        uses_remaining=link.uses_remaining,
        max_uses=link.max_uses,
        notes=link.notes,
        accepted_document_types=list(DocumentType)
    )


@router.post("/upload/{token}", response_model=DocumentUploadResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_PUBLIC_LINKS)
async def upload_documents(
    request: Request,
    token: str,
    documents: List[UploadFile] = File(...),
    document_types: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    audit: AuditContext = Depends(get_audit_context),
    document_service: DocumentService = Depends(get_document_service)
):
    """
    Public: upload files through a document link.

    ``document_types`` is a JSON array (or comma-separated list) giving the
    type of each file by position; missing entries default to ``other``.
    Each file takes one use from the link.
    """
    link, created = await document_service.upload_documents(db, token, documents, document_types)

    await audit.log_action(
        ActionType.DOCUMENT_UPLOADED,
        resource_type="submission",
        resource_id=link.submission_id,
        request_data={"link_id": link.id, "count": len(created)}
    )

    return DocumentUploadResponse(
        message=f"{len(created)} document(s) uploaded successfully",
        uploaded=len(created),
        uses_remaining=link.uses_remaining,
        documents=[DocumentResponse.model_validate(d) for d in created]
    )


@router.get("/submission/{submission_id}", response_model=List[DocumentResponse])
async def list_submission_documents(
    submission_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    document_service: DocumentService = Depends(get_document_service)
):
    await SubmissionService.get_submission(db, submission_id)
    documents = await document_service.get_documents_by_submission(db, submission_id)
    return [DocumentResponse.model_validate(d) for d in documents]


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    document_service: DocumentService = Depends(get_document_service)
):
    document = await document_service.get_document(db, document_id)
    return DocumentResponse.model_validate(document)


@router.get("/{document_id}/download")
async def download_document(
    document_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    document_service: DocumentService = Depends(get_document_service)
):
    """
    Download a stored document under its generated file name.
    """
    document, file_path = await document_service.get_document_file_path(db, document_id)

    await audit.log_action(ActionType.DOCUMENT_DOWNLOADED, resource_type="document", resource_id=document.id)

    return FileResponse(
        path=str(file_path),
        filename=document.file_name,
        media_type=document.mime_type
    )


@router.patch("/{document_id}/verify", response_model=DocumentVerifyResponse)
async def verify_document(
    document_id: int,
    payload: DocumentVerifyRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    document_service: DocumentService = Depends(get_document_service),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    Mark a document verified or rejected.

    When the last unverified document is verified the submission moves to
    documents_verified on its own.
    """
    document, advanced = await document_service.verify_document(
        db,
        document_id,
        current_user.id,
        payload.status,
        rejection_reason=payload.rejection_reason,
        notes=payload.notes
    )
    submission = await SubmissionService.get_submission(db, document.submission_id)

    action = (
        ActionType.DOCUMENT_VERIFIED
        if payload.status == DocumentStatus.VERIFIED
        else ActionType.DOCUMENT_REJECTED
    )
    await audit.log_action(
        action,
        resource_type="document",
        resource_id=document.id,
        request_data={"status": payload.status.value, "rejection_reason": payload.rejection_reason}
    )
    if advanced:
        background_tasks.add_task(
            whatsapp.notify_status_update,
            submission.name,
            submission.phone,
            submission.workflow_status.value
        )

    return DocumentVerifyResponse(
        document=DocumentResponse.model_validate(document),
        submission_advanced=advanced,
        workflow_status=submission.workflow_status
    )


@router.delete("/{document_id}", response_model=MessageResponse)
async def delete_document(
    document_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    audit: AuditContext = Depends(get_user_audit_context),
    document_service: DocumentService = Depends(get_document_service)
):
    await document_service.delete_document(db, document_id)
    await audit.log_action(ActionType.DOCUMENT_DELETED, resource_type="document", resource_id=document_id)
    return MessageResponse(message="Document deleted")
