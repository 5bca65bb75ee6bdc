from typing import List
from fastapi import APIRouter, Depends, File, Request, BackgroundTasks, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.api.deps import (
    AuditContext,
    get_audit_context,
    get_payment_service,
    get_user_audit_context,
    get_whatsapp_client,
    require_staff,
)
from app.config import settings
from app.external.whatsapp_client import WhatsAppClient
from app.middleware.rate_limit import limiter
from app.models.access_link import AccessLink, LinkKind
from app.models.audit_log import ActionType
from app.models.payment_receipt import ReceiptStatus
from app.models.user import User
from app.schemas.access_link import AccessLinkResponse, LinkValidationResponse, PaymentLinkCreateRequest
from app.schemas.payment import (
    PaymentLinkResponse,
    PaymentReceiptResponse,
    ReceiptUploadResponse,
    ReceiptVerifyRequest,
    ReceiptVerifyResponse,
)
from app.services.access_link_service import AccessLinkService
from app.services.payment_service import PaymentService
from app.services.submission_service import SubmissionService

router = APIRouter()


def _link_response(link: AccessLink) -> AccessLinkResponse:
    response = AccessLinkResponse.model_validate(link)
    response.url = AccessLinkService.build_link_url(link)
    return response


@router.post("/generate-link", response_model=AccessLinkResponse, status_code=status.HTTP_201_CREATED)
async def generate_payment_link(
    payload: PaymentLinkCreateRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    Issue a single-use payment link with the amount and bank details to pay to.
    The workflow stage is not affected.
    """
    link = await PaymentService.generate_link(
        db,
        payload.submission_id,
        payload.amount,
        current_user.id,
        currency=payload.currency,
        expires_in_days=payload.expires_in_days,
        bank_details=payload.bank_details,
        notes=payload.notes
    )
    submission = await SubmissionService.get_submission(db, payload.submission_id)
    link_response = _link_response(link)

    await audit.log_action(
        ActionType.PAYMENT_LINK_GENERATED,
        resource_type="access_link",
        resource_id=link.id,
        request_data={"submission_id": payload.submission_id, "amount": payload.amount, "currency": link.currency}
    )
    background_tasks.add_task(
        whatsapp.notify_payment_link,
        submission.name,
        submission.phone,
        link_response.url,
        link.amount,
        link.currency
    )
    return link_response


@router.get("/links/{submission_id}", response_model=List[PaymentLinkResponse])
async def list_payment_links(
    submission_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """
    Payment links of a submission, each with the receipts uploaded through it.
    """
    await SubmissionService.get_submission(db, submission_id)
    links = await AccessLinkService.list_links(db, submission_id, LinkKind.PAYMENT)
    receipts = await payment_service.list_receipts(db, submission_id)

    by_link = {}
    for receipt in receipts:
        by_link.setdefault(receipt.access_link_id, []).append(PaymentReceiptResponse.model_validate(receipt))

    return [
        PaymentLinkResponse(
            **_link_response(link).model_dump(),
            receipts=by_link.get(link.id, [])
        )
        for link in links
    ]


@router.patch("/links/{link_id}/deactivate", response_model=AccessLinkResponse)
async def deactivate_payment_link(
    link_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context)
):
    link = await AccessLinkService.deactivate_link(db, link_id, LinkKind.PAYMENT)
    await audit.log_action(ActionType.PAYMENT_LINK_DEACTIVATED, resource_type="access_link", resource_id=link.id)
    return _link_response(link)


@router.get("/validate-link/{token}", response_model=LinkValidationResponse)
@limiter.limit(settings.RATE_LIMIT_PUBLIC_LINKS)
async def validate_payment_link(
    request: Request,
    token: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Public: check a payment link and show what to pay.
    """
    link = await AccessLinkService.validate_link(db, token, LinkKind.PAYMENT)
    return LinkValidationResponse(
        kind=link.kind,
        submission_name=link.submission.name,
        service=link.submission.service,
        expires_at=link.expires_at,
        uses_remaining=link.uses_remaining,
        max_uses=link.max_uses,
        notes=link.notes,
        amount=link.amount,
        currency=link.currency,
        bank_details=link.bank_details,
        payment_status=link.payment_status
    )


@router.post("/upload-receipt/{token}", response_model=ReceiptUploadResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_PUBLIC_LINKS)
async def upload_receipt(
    request: Request,
    token: str,
    receipt: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    audit: AuditContext = Depends(get_audit_context),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """
    Public: upload a payment receipt through a payment link.
    """
    link, created = await payment_service.upload_receipt(db, token, receipt)

    await audit.log_action(
        ActionType.PAYMENT_RECEIPT_UPLOADED,
        resource_type="payment_receipt",
        resource_id=created.id,
        request_data={"link_id": link.id, "submission_id": link.submission_id}
    )

    return ReceiptUploadResponse(
        payment_status=link.payment_status,
        receipt=PaymentReceiptResponse.model_validate(created)
    )


@router.get("/receipts/{receipt_id}/download")
async def download_receipt(
    receipt_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    payment_service: PaymentService = Depends(get_payment_service)
):
    receipt, file_path = await payment_service.get_receipt_file_path(db, receipt_id)

    await audit.log_action(ActionType.DOCUMENT_DOWNLOADED, resource_type="payment_receipt", resource_id=receipt.id)

    return FileResponse(
        path=str(file_path),
        filename=receipt.file_name,
        media_type=receipt.mime_type
    )


@router.patch("/{receipt_id}/verify", response_model=ReceiptVerifyResponse)
async def verify_receipt(
    receipt_id: int,
    payload: ReceiptVerifyRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context),
    payment_service: PaymentService = Depends(get_payment_service),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    Confirm or reject a pending receipt. A rejection reopens the payment link
    so the client can upload a new receipt.
    """
    receipt, link = await payment_service.verify_receipt(
        db,
        receipt_id,
        current_user.id,
        payload.status,
        rejection_reason=payload.rejection_reason,
        notes=payload.notes
    )
    submission = await SubmissionService.get_submission(db, receipt.submission_id)
    confirmed = payload.status == ReceiptStatus.CONFIRMED

    await audit.log_action(
        ActionType.PAYMENT_CONFIRMED if confirmed else ActionType.PAYMENT_REJECTED,
        resource_type="payment_receipt",
        resource_id=receipt.id,
        request_data={"status": payload.status.value, "rejection_reason": payload.rejection_reason}
    )
    background_tasks.add_task(
        whatsapp.notify_payment_reviewed,
        submission.name,
        submission.phone,
        confirmed,
        payload.rejection_reason
    )

    return ReceiptVerifyResponse(
        receipt=PaymentReceiptResponse.model_validate(receipt),
        payment_status=link.payment_status if link else None,
        uses_remaining=link.uses_remaining if link else None
    )
