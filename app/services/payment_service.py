import logging
from typing import Any, Dict, List, Optional, Tuple
from pathlib import Path
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import UploadFile
from app.config import settings
from app.core.exceptions import (
    InvalidParameterException,
    InvalidTransitionException,
    ResourceNotFoundException,
    StorageFailureException,
)
from app.core.logging_utils import sanitize_log_message
from app.core.timeutils import utcnow
from app.models.access_link import AccessLink, LinkKind, PaymentStatus
from app.models.notification import NotificationType
from app.models.payment_receipt import PaymentReceipt, ReceiptStatus
from app.models.submission import Submission, SubmissionStatus
from app.services.access_link_service import AccessLinkService
from app.services.document_service import (
    extension_for,
    owner_prefix,
    read_validated_upload,
    sanitize_display_name,
    timestamp_ms,
)
from app.services.notification_service import NotificationService
from app.services.storage_service import LocalFileStorage

logger = logging.getLogger(__name__)

# Payment links accept a single receipt; a rejection gives the use back
PAYMENT_LINK_MAX_USES = 1


class PaymentService:
    """Service for payment links, receipt uploads and receipt review."""

    def __init__(self, storage: Optional[LocalFileStorage] = None):
        self.storage = storage or LocalFileStorage()

    @staticmethod
    async def generate_link(
        db: AsyncSession,
        submission_id: int,
        amount: float,
        user_id: int,
        currency: Optional[str] = None,
        expires_in_days: Optional[int] = None,
        bank_details: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None
    ) -> AccessLink:
        """
        Issue a single-use payment link.

        Raises:
            ResourceNotFoundException if the submission does not exist
            InvalidTransitionException if the submission was rejected
            InvalidParameterException for a non-positive amount or lifetime
        """
        submission = await db.get(Submission, submission_id)
        if not submission:
            raise ResourceNotFoundException(detail="Submission not found")
        if submission.status == SubmissionStatus.REJECTED:
            raise InvalidTransitionException(detail="Cannot request payment: submission has been rejected")

        return await AccessLinkService.issue_link(
            db,
            submission_id=submission_id,
            kind=LinkKind.PAYMENT,
            expires_in_days=expires_in_days if expires_in_days is not None else settings.PAYMENT_LINK_EXPIRE_DAYS,
            max_uses=PAYMENT_LINK_MAX_USES,
            created_by=user_id,
            notes=notes,
            amount=amount,
            currency=currency,
            bank_details=bank_details
        )

    async def upload_receipt(
        self,
        db: AsyncSession,
        token: str,
        file: UploadFile
    ) -> Tuple[AccessLink, PaymentReceipt]:
        """
        Store a payment receipt sent through a payment link.

        Returns:
            Tuple of (payment link, created receipt)

        Raises:
            Access link errors, InvalidTransitionException,
            DocumentUploadException, StorageFailureException
        """
        link = await AccessLinkService.validate_link(db, token, LinkKind.PAYMENT)
        submission = link.submission
        if submission.status == SubmissionStatus.REJECTED:
            raise InvalidTransitionException(detail="Cannot upload receipt: submission has been rejected")

        content = await read_validated_upload(file)
        await AccessLinkService.claim_uses(db, link, 1)

        file_name = (
            f"{owner_prefix(submission.name)}_payment_receipt_{timestamp_ms()}"
            f"{extension_for(file.filename, file.content_type)}"
        )
        storage_key = f"payments/{submission.id}/{file_name}"
        saved = False
        try:
            await self.storage.save(storage_key, content)
            saved = True
            receipt = PaymentReceipt(
                submission_id=submission.id,
                access_link_id=link.id,
                amount=link.amount,
                currency=link.currency,
                original_name=sanitize_display_name(file.filename),
                file_name=file_name,
                storage_key=storage_key,
                file_size=len(content),
                mime_type=file.content_type,
                status=ReceiptStatus.PENDING
            )
            db.add(receipt)
            link.payment_status = PaymentStatus.RECEIPT_UPLOADED
            await db.commit()
        except Exception:
            await db.rollback()
            if saved:
                try:
                    self.storage.delete(storage_key)
                except StorageFailureException:
                    logger.error(sanitize_log_message("Could not remove receipt after failed upload", Key=storage_key))
            raise

        await db.refresh(receipt)
        logger.info(
            sanitize_log_message(
                "Payment receipt uploaded",
                submission_id=submission.id,
                link_id=link.id,
                receipt_id=receipt.id
            )
        )

        await NotificationService.notify_admins(
            db,
            NotificationType.PAYMENT_RECEIPT_UPLOADED,
            title="Payment receipt uploaded",
            message=f"{submission.name} uploaded a receipt for {link.amount:g} {link.currency}",
            link=f"/admin/submissions/{submission.id}",
            data={"submission_id": submission.id, "receipt_id": receipt.id, "amount": link.amount}
        )
        return link, receipt

    async def get_receipt(self, db: AsyncSession, receipt_id: int) -> PaymentReceipt:
        receipt = await db.get(PaymentReceipt, receipt_id)
        if not receipt:
            raise ResourceNotFoundException(detail="Payment receipt not found")
        return receipt

    async def list_receipts(self, db: AsyncSession, submission_id: int) -> List[PaymentReceipt]:
        """Receipts of a submission, newest first."""
        result = await db.execute(
            select(PaymentReceipt)
            .where(PaymentReceipt.submission_id == submission_id)
            .order_by(PaymentReceipt.uploaded_at.desc(), PaymentReceipt.id.desc())
        )
        return result.scalars().all()

    async def get_receipt_file_path(self, db: AsyncSession, receipt_id: int) -> Tuple[PaymentReceipt, Path]:
        """
        Resolve the stored file of a receipt.

        Raises:
            ResourceNotFoundException if the record or its file is missing
        """
        receipt = await self.get_receipt(db, receipt_id)
        if not self.storage.exists(receipt.storage_key):
            logger.warning(sanitize_log_message("Receipt file missing", receipt_id=receipt_id))
            raise ResourceNotFoundException(detail="File not found")
        return receipt, self.storage.path_for(receipt.storage_key)

    async def verify_receipt(
        self,
        db: AsyncSession,
        receipt_id: int,
        user_id: int,
        status: ReceiptStatus,
        rejection_reason: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Tuple[PaymentReceipt, Optional[AccessLink]]:
        """
        Confirm or reject a pending receipt.

        Rejecting gives the payment link its use back so the client can
        upload a new receipt. The workflow stage is not touched.

        Returns:
            Tuple of (receipt, its payment link if it still exists)

        Raises:
            InvalidParameterException if ``status`` is pending
            InvalidTransitionException if the receipt was already reviewed
        """
        if status == ReceiptStatus.PENDING:
            raise InvalidParameterException(detail="A review must set confirmed or rejected")

        receipt = await self.get_receipt(db, receipt_id)
        if receipt.status != ReceiptStatus.PENDING:
            raise InvalidTransitionException(detail=f"Receipt has already been {receipt.status.value}")

        receipt.status = status
        receipt.reviewed_by = user_id
        receipt.reviewed_at = utcnow()
        receipt.rejection_reason = rejection_reason if status == ReceiptStatus.REJECTED else None
        if notes is not None:
            receipt.notes = notes

        link = await db.get(AccessLink, receipt.access_link_id) if receipt.access_link_id else None
        if link is not None:
            if status == ReceiptStatus.CONFIRMED:
                link.payment_status = PaymentStatus.CONFIRMED
            else:
                link.payment_status = PaymentStatus.REJECTED
                await AccessLinkService.restore_use(db, link)

        await db.commit()
        await db.refresh(receipt)

        logger.info(
            sanitize_log_message(
                "Payment receipt reviewed",
                receipt_id=receipt.id,
                submission_id=receipt.submission_id,
                status=status.value
            )
        )
        return receipt, link
