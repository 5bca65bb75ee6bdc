from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, BackgroundTasks, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.api.deps import (
    AuditContext,
    get_audit_context,
    get_current_user,
    get_storage,
    get_user_audit_context,
    get_whatsapp_client,
    require_admin,
    require_staff,
)
from app.config import settings
from app.core.logging_utils import mask_email
from app.core.workflow import allowed_actions
from app.external.whatsapp_client import WhatsAppClient
from app.middleware.rate_limit import limiter
from app.models.audit_log import ActionType
from app.models.submission import Submission, ServiceType, SubmissionSource, SubmissionStatus, WorkflowStatus
from app.models.user import User
from app.services.storage_service import LocalFileStorage
from app.schemas.client import ClientResponse
from app.schemas.common import MessageResponse, total_pages
from app.schemas.submission import (
    CallConfirmRequest,
    ConvertToClientResponse,
    DocumentStats,
    RejectRequest,
    SubmissionCreateRequest,
    SubmissionCreateResponse,
    SubmissionDetailResponse,
    SubmissionListResponse,
    SubmissionNoteCreateRequest,
    SubmissionNoteResponse,
    SubmissionResponse,
    SubmissionStatsResponse,
    SubmissionUpdateRequest,
    TrackRequest,
    TrackResponse,
)
from app.services.submission_service import SubmissionService
from app.services.workflow_service import WorkflowService

router = APIRouter()


async def _detail(db: AsyncSession, submission_id: int) -> SubmissionDetailResponse:
    submission = await SubmissionService.get_submission(db, submission_id, with_notes=True)
    total, verified = await WorkflowService.document_stats(db, submission.id)
    actions = [] if submission.status == SubmissionStatus.REJECTED else allowed_actions(submission.workflow_status)
    return SubmissionDetailResponse(
        **SubmissionResponse.model_validate(submission).model_dump(),
        notes=[SubmissionNoteResponse.model_validate(n) for n in submission.notes],
        document_stats=DocumentStats(total=total, verified=verified),
        allowed_actions=[a.value for a in actions]
    )


def _notify_stage(background_tasks: BackgroundTasks, whatsapp: WhatsAppClient, submission: Submission) -> None:
    background_tasks.add_task(
        whatsapp.notify_status_update,
        submission.name,
        submission.phone,
        submission.workflow_status.value
    )


@router.post("", response_model=SubmissionCreateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_SUBMISSIONS)
async def create_submission(
    request: Request,
    payload: SubmissionCreateRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    audit: AuditContext = Depends(get_audit_context),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    Public contact form: record a new lead.
    """
    submission = await SubmissionService.create_submission(
        db,
        name=payload.name,
        phone=payload.phone,
        email=payload.email,
        service=payload.service,
        message=payload.message,
        source=SubmissionSource.WEBSITE,
        request_id=audit.request_id
    )

    await audit.log_action(
        ActionType.SUBMISSION_CREATED,
        resource_type="submission",
        resource_id=submission.id,
        request_data={"service": payload.service.value, "phone": payload.phone, "email": payload.email}
    )
    background_tasks.add_task(
        whatsapp.notify_new_submission,
        submission.name,
        submission.phone,
        submission.service.value
    )

    return SubmissionCreateResponse(
        id=submission.id,
        status=submission.status,
        workflow_status=submission.workflow_status
    )


@router.post("/track", response_model=TrackResponse)
@limiter.limit(settings.RATE_LIMIT_SUBMISSIONS)
async def track_submission(
    request: Request,
    payload: TrackRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Public status lookup by phone or email.
    Returns a redacted view: no documents, notes or staff identifiers.
    """
    submission, (total, verified) = await WorkflowService.track(db, phone=payload.phone, email=payload.email)
    return TrackResponse(
        name=submission.name,
        phone=submission.phone,
        email=mask_email(submission.email),
        service=submission.service,
        status=submission.status,
        workflow_status=submission.workflow_status,
        created_at=submission.created_at,
        updated_at=submission.updated_at,
        document_stats=DocumentStats(total=total, verified=verified)
    )


@router.get("", response_model=SubmissionListResponse)
async def list_submissions(
    search: Optional[str] = Query(None, max_length=100),
    service: Optional[ServiceType] = Query(None),
    status_filter: Optional[SubmissionStatus] = Query(None, alias="status"),
    source: Optional[SubmissionSource] = Query(None),
    workflow_status: Optional[WorkflowStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    List submissions with filters, newest first.
    """
    items, total = await SubmissionService.list_submissions(
        db,
        search=search,
        service=service,
        status=status_filter,
        source=source,
        workflow_status=workflow_status,
        page=page,
        limit=limit
    )
    return SubmissionListResponse(
        items=[SubmissionResponse.model_validate(s) for s in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit)
    )


@router.get("/stats/overview", response_model=SubmissionStatsResponse)
async def submission_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Submission counts by status, workflow stage and service.
    """
    return SubmissionStatsResponse(**await SubmissionService.get_stats(db))


@router.get("/{submission_id}", response_model=SubmissionDetailResponse)
async def get_submission(
    submission_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _detail(db, submission_id)


@router.put("/{submission_id}", response_model=SubmissionResponse)
async def update_submission(
    submission_id: int,
    payload: SubmissionUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context)
):
    """
    Edit the coarse submission fields. The workflow stage cannot be set here.
    """
    changes = payload.model_dump(exclude_unset=True)
    submission = await SubmissionService.update_submission(db, submission_id, changes)
    await audit.log_action(
        ActionType.SUBMISSION_UPDATED,
        resource_type="submission",
        resource_id=submission.id,
        request_data={"fields": sorted(changes)}
    )
    return SubmissionResponse.model_validate(submission)


@router.post("/{submission_id}/notes", response_model=SubmissionNoteResponse, status_code=status.HTTP_201_CREATED)
async def add_note(
    submission_id: int,
    payload: SubmissionNoteCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context)
):
    note = await SubmissionService.add_note(db, submission_id, current_user.id, payload.content)
    await audit.log_action(ActionType.SUBMISSION_NOTE_ADDED, resource_type="submission", resource_id=submission_id)
    return SubmissionNoteResponse.model_validate(note)


@router.post("/{submission_id}/validate", response_model=SubmissionDetailResponse)
async def validate_submission(
    submission_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    pending_validation -> validated.
    """
    submission = await WorkflowService.validate(db, submission_id, current_user.id)
    await audit.log_action(ActionType.SUBMISSION_VALIDATED, resource_type="submission", resource_id=submission.id)
    _notify_stage(background_tasks, whatsapp, submission)
    return await _detail(db, submission.id)


@router.post("/{submission_id}/confirm-call", response_model=SubmissionDetailResponse)
async def confirm_call(
    submission_id: int,
    background_tasks: BackgroundTasks,
    payload: Optional[CallConfirmRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    validated -> call_confirmed, optionally recording call notes.
    """
    call_notes = payload.call_notes if payload else None
    submission = await WorkflowService.confirm_call(db, submission_id, current_user.id, call_notes)
    await audit.log_action(ActionType.CALL_CONFIRMED, resource_type="submission", resource_id=submission.id)
    _notify_stage(background_tasks, whatsapp, submission)
    return await _detail(db, submission.id)


@router.post("/{submission_id}/verify-documents", response_model=SubmissionDetailResponse)
async def verify_documents(
    submission_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    documents_uploaded -> documents_verified. Every document must be verified.
    """
    submission = await WorkflowService.verify_documents(db, submission_id, current_user.id)
    await audit.log_action(ActionType.DOCUMENTS_VERIFIED, resource_type="submission", resource_id=submission.id)
    _notify_stage(background_tasks, whatsapp, submission)
    return await _detail(db, submission.id)


@router.post("/{submission_id}/convert", response_model=ConvertToClientResponse)
async def convert_to_client(
    submission_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    documents_verified -> converted_to_client, creating the client record.
    """
    submission, client = await WorkflowService.convert_to_client(db, submission_id, current_user.id)
    await audit.log_action(
        ActionType.CLIENT_CREATED,
        resource_type="client",
        resource_id=client.id,
        request_data={"submission_id": submission.id}
    )
    _notify_stage(background_tasks, whatsapp, submission)
    return ConvertToClientResponse(
        submission=SubmissionResponse.model_validate(submission),
        client=ClientResponse.model_validate(client)
    )


@router.post("/{submission_id}/reject", response_model=SubmissionDetailResponse)
async def reject_submission(
    submission_id: int,
    payload: Optional[RejectRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context)
):
    """
    Reject a submission from any stage; its active links stop working.
    """
    reason = payload.reason if payload else None
    submission = await WorkflowService.reject(db, submission_id, current_user.id, reason)
    await audit.log_action(
        ActionType.SUBMISSION_REJECTED,
        resource_type="submission",
        resource_id=submission.id,
        request_data={"reason": reason}
    )
    return await _detail(db, submission.id)


@router.delete("/{submission_id}", response_model=MessageResponse)
async def delete_submission(
    submission_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    storage: LocalFileStorage = Depends(get_storage),
    audit: AuditContext = Depends(get_user_audit_context)
):
    """
    Permanently delete a submission with its links, documents, receipts and files.
    """
    await SubmissionService.delete_submission(db, submission_id, storage=storage)
    await audit.log_action(ActionType.SUBMISSION_DELETED, resource_type="submission", resource_id=submission_id)
    return MessageResponse(message="Submission deleted")
