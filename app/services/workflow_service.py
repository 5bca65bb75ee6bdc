import logging
from typing import Optional, Tuple
from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.core.exceptions import (
    InvalidParameterException,
    InvalidTransitionException,
    ResourceNotFoundException,
)
from app.core.logging_utils import sanitize_log_message
from app.core.timeutils import utcnow
from app.core.workflow import WorkflowAction, next_status, is_allowed
from app.models.access_link import AccessLink, LinkKind
from app.models.client import Client, ClientStatus
from app.models.document import Document, DocumentStatus
from app.models.notification import NotificationType
from app.models.submission import Submission, SubmissionNote, SubmissionStatus, WorkflowStatus
from app.services.access_link_service import AccessLinkService
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

TRACKING_NOT_FOUND_MESSAGE = "No application found with the provided details"


def _admin_path(submission: Submission) -> str:
    return f"/admin/submissions/{submission.id}"


class WorkflowService:
    """
    Moves submissions through their workflow stages.

    Each operation commits the stage change before writing notifications, so
    a notification failure never undoes a transition.
    """

    @staticmethod
    async def _get_submission(db: AsyncSession, submission_id: int) -> Submission:
        submission = await db.get(Submission, submission_id)
        if not submission:
            raise ResourceNotFoundException(detail="Submission not found")
        return submission

    @staticmethod
    def _advance(submission: Submission, action: WorkflowAction) -> WorkflowStatus:
        previous = submission.workflow_status
        submission.workflow_status = next_status(previous, action, submission.status)
        logger.info(
            sanitize_log_message(
                "Workflow transition",
                submission_id=submission.id,
                action=action.value,
                from_stage=previous.value if previous else None,
                to_stage=submission.workflow_status.value
            )
        )
        return submission.workflow_status

    @staticmethod
    async def document_stats(db: AsyncSession, submission_id: int) -> Tuple[int, int]:
        """
        Count documents for a submission.

        Returns:
            Tuple of (total, verified)
        """
        row = (await db.execute(
            select(
                func.count(Document.id),
                func.coalesce(func.sum(case((Document.status == DocumentStatus.VERIFIED, 1), else_=0)), 0)
            ).where(Document.submission_id == submission_id)
        )).one()
        return int(row[0]), int(row[1])

    @staticmethod
    async def validate(db: AsyncSession, submission_id: int, user_id: int) -> Submission:
        """
        Mark a pending submission as validated.

        Raises:
            ResourceNotFoundException, InvalidTransitionException
        """
        submission = await WorkflowService._get_submission(db, submission_id)
        WorkflowService._advance(submission, WorkflowAction.VALIDATE)
        submission.validated_by = user_id
        submission.validated_at = utcnow()
        if submission.status == SubmissionStatus.NEW:
            submission.status = SubmissionStatus.IN_REVIEW
        await db.commit()
        await db.refresh(submission)

        await NotificationService.notify_admins(
            db,
            NotificationType.SUBMISSION_VALIDATED,
            title="Submission validated",
            message=f"The submission from {submission.name} was validated",
            link=_admin_path(submission),
            data={"submission_id": submission.id, "name": submission.name}
        )
        return submission

    @staticmethod
    async def confirm_call(
        db: AsyncSession,
        submission_id: int,
        user_id: int,
        call_notes: Optional[str] = None
    ) -> Submission:
        """
        Record that the qualification call took place.

        Raises:
            ResourceNotFoundException, InvalidTransitionException
        """
        submission = await WorkflowService._get_submission(db, submission_id)
        WorkflowService._advance(submission, WorkflowAction.CONFIRM_CALL)
        submission.call_confirmed_by = user_id
        submission.call_confirmed_at = utcnow()
        if call_notes:
            submission.call_notes = call_notes
            db.add(SubmissionNote(submission_id=submission.id, author_id=user_id, content=call_notes))
        await db.commit()
        await db.refresh(submission)

        await NotificationService.notify_admins(
            db,
            NotificationType.CALL_CONFIRMED,
            title="Call confirmed",
            message=f"The call with {submission.name} was confirmed",
            link=_admin_path(submission),
            data={"submission_id": submission.id, "name": submission.name}
        )
        return submission

    @staticmethod
    async def request_documents(
        db: AsyncSession,
        submission_id: int,
        user_id: int,
        expires_in_days: Optional[int] = None,
        max_uploads: Optional[int] = None,
        notes: Optional[str] = None
    ) -> Tuple[Submission, AccessLink]:
        """
        Issue a document upload link and move the submission to documents_requested.

        While documents are already requested or uploaded this reissues: older
        active document links are deactivated and the stage is left alone.

        Returns:
            Tuple of (submission, new document link)

        Raises:
            ResourceNotFoundException, InvalidTransitionException, InvalidParameterException
        """
        submission = await WorkflowService._get_submission(db, submission_id)

        if is_allowed(submission.workflow_status, WorkflowAction.REISSUE_DOCUMENT_LINK):
            action = WorkflowAction.REISSUE_DOCUMENT_LINK
        else:
            action = WorkflowAction.REQUEST_DOCUMENTS

        # Resolve the transition before any write so a refused call changes nothing
        next_status(submission.workflow_status, action, submission.status)

        if action == WorkflowAction.REISSUE_DOCUMENT_LINK:
            await AccessLinkService.deactivate_active_links(db, submission.id, LinkKind.DOCUMENT)

        link = await AccessLinkService.issue_link(
            db,
            submission_id=submission.id,
            kind=LinkKind.DOCUMENT,
            expires_in_days=expires_in_days if expires_in_days is not None else settings.DOCUMENT_LINK_EXPIRE_DAYS,
            max_uses=max_uploads if max_uploads is not None else settings.DOCUMENT_LINK_MAX_UPLOADS,
            created_by=user_id,
            notes=notes,
            commit=False
        )
        WorkflowService._advance(submission, action)
        await db.commit()
        await db.refresh(submission)
        await db.refresh(link)

        if action == WorkflowAction.REQUEST_DOCUMENTS:
            await NotificationService.notify_admins(
                db,
                NotificationType.DOCUMENTS_REQUESTED,
                title="Documents requested",
                message=f"An upload link was sent to {submission.name}",
                link=_admin_path(submission),
                data={"submission_id": submission.id, "link_id": link.id}
            )
        return submission, link

    @staticmethod
    def record_upload(submission: Submission) -> WorkflowStatus:
        """
        Advance a submission after a successful document upload.

        Runs inside the upload transaction; the caller commits and then
        calls ``notify_documents_uploaded``.
        """
        return WorkflowService._advance(submission, WorkflowAction.RECORD_UPLOAD)

    @staticmethod
    def ensure_upload_allowed(submission: Submission) -> None:
        """Raise InvalidTransitionException unless the submission accepts uploads."""
        next_status(submission.workflow_status, WorkflowAction.RECORD_UPLOAD, submission.status)

    @staticmethod
    async def notify_documents_uploaded(db: AsyncSession, submission: Submission, count: int) -> None:
        await NotificationService.notify_admins(
            db,
            NotificationType.DOCUMENTS_UPLOADED,
            title="Documents uploaded",
            message=f"{submission.name} uploaded {count} document(s)",
            link=_admin_path(submission),
            data={"submission_id": submission.id, "name": submission.name, "count": count}
        )

    @staticmethod
    async def verify_documents(db: AsyncSession, submission_id: int, user_id: int) -> Submission:
        """
        Move a submission to documents_verified.

        Requires at least one document and every document verified.

        Raises:
            ResourceNotFoundException, InvalidTransitionException
        """
        submission = await WorkflowService._get_submission(db, submission_id)
        next_status(submission.workflow_status, WorkflowAction.VERIFY_DOCUMENTS, submission.status)

        total, verified = await WorkflowService.document_stats(db, submission.id)
        if total == 0 or verified != total:
            raise InvalidTransitionException(
                detail=f"All documents must be verified first ({verified}/{total} verified)"
            )

        WorkflowService._advance(submission, WorkflowAction.VERIFY_DOCUMENTS)
        await db.commit()
        await db.refresh(submission)

        await NotificationService.notify_admins(
            db,
            NotificationType.DOCUMENTS_VERIFIED,
            title="Documents verified",
            message=f"All documents of {submission.name} are verified",
            link=_admin_path(submission),
            data={"submission_id": submission.id, "document_count": total}
        )
        return submission

    @staticmethod
    async def try_complete_verification(db: AsyncSession, submission_id: int, user_id: int) -> bool:
        """
        Advance to documents_verified when the last document was just verified.

        Returns:
            True if the submission advanced
        """
        submission = await WorkflowService._get_submission(db, submission_id)
        if submission.status == SubmissionStatus.REJECTED:
            return False
        if not is_allowed(submission.workflow_status, WorkflowAction.VERIFY_DOCUMENTS):
            return False
        total, verified = await WorkflowService.document_stats(db, submission.id)
        if total == 0 or verified != total:
            return False
        await WorkflowService.verify_documents(db, submission_id, user_id)
        return True

    @staticmethod
    async def convert_to_client(db: AsyncSession, submission_id: int, user_id: int) -> Tuple[Submission, Client]:
        """
        Convert a fully documented submission into a client.

        Returns:
            Tuple of (submission, created client)

        Raises:
            ResourceNotFoundException, InvalidTransitionException
        """
        submission = await WorkflowService._get_submission(db, submission_id)
        if submission.converted_to_client:
            raise InvalidTransitionException(detail="Submission has already been converted to a client")
        next_status(submission.workflow_status, WorkflowAction.CONVERT, submission.status)

        client = Client(
            name=submission.name,
            email=submission.email,
            phone=submission.phone,
            service=submission.service,
            message=submission.message,
            status=ClientStatus.NEW,
            assigned_to=submission.assigned_to
        )
        db.add(client)
        await db.flush()

        WorkflowService._advance(submission, WorkflowAction.CONVERT)
        submission.converted_to_client = True
        submission.client_id = client.id
        submission.status = SubmissionStatus.COMPLETED
        submission.reviewed_by = user_id
        submission.reviewed_at = utcnow()
        await db.commit()
        await db.refresh(submission)
        await db.refresh(client)

        await NotificationService.notify_admins(
            db,
            NotificationType.CONVERTED_TO_CLIENT,
            title="Converted to client",
            message=f"{submission.name} is now a client",
            link=_admin_path(submission),
            data={"submission_id": submission.id, "client_id": client.id}
        )
        await NotificationService.notify_admins(
            db,
            NotificationType.CLIENT_CREATED,
            title="New client",
            message=f"Client record created for {client.name}",
            link=f"/admin/clients/{client.id}",
            data={"client_id": client.id, "name": client.name}
        )
        return submission, client

    @staticmethod
    async def reject(
        db: AsyncSession,
        submission_id: int,
        user_id: int,
        reason: Optional[str] = None
    ) -> Submission:
        """
        Reject a submission from any stage that is not already terminal.

        Raises:
            ResourceNotFoundException, InvalidTransitionException
        """
        submission = await WorkflowService._get_submission(db, submission_id)
        if submission.status == SubmissionStatus.REJECTED:
            raise InvalidTransitionException(detail="Submission is already rejected")
        if submission.workflow_status == WorkflowStatus.CONVERTED_TO_CLIENT:
            raise InvalidTransitionException(detail="Converted submissions cannot be rejected")

        submission.status = SubmissionStatus.REJECTED
        submission.reviewed_by = user_id
        submission.reviewed_at = utcnow()
        submission.rejection_reason = reason
        await AccessLinkService.deactivate_active_links(db, submission.id, LinkKind.DOCUMENT)
        await AccessLinkService.deactivate_active_links(db, submission.id, LinkKind.PAYMENT)
        await db.commit()
        await db.refresh(submission)

        logger.info(sanitize_log_message("Submission rejected", submission_id=submission.id))

        await NotificationService.notify_admins(
            db,
            NotificationType.SUBMISSION_REJECTED,
            title="Submission rejected",
            message=f"The submission from {submission.name} was rejected",
            link=_admin_path(submission),
            data={"submission_id": submission.id, "reason": reason}
        )
        return submission

    @staticmethod
    async def track(
        db: AsyncSession,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> Tuple[Submission, Tuple[int, int]]:
        """
        Public lookup of the most recent submission matching a phone, an email, or both.

        When both are given, both must match the same submission.

        Returns:
            Tuple of (submission, (total documents, verified documents))

        Raises:
            InvalidParameterException if neither phone nor email is given
            ResourceNotFoundException with a generic message when nothing matches
        """
        phone = (phone or "").strip()
        email = (email or "").strip().lower()
        if not phone and not email:
            raise InvalidParameterException(detail="Phone number or email is required")

        conditions = []
        if phone:
            conditions.append(Submission.phone == phone)
        if email:
            conditions.append(Submission.email == email)

        query = (
            select(Submission)
            .where(*conditions)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .limit(1)
        )
        submission = (await db.execute(query)).scalar_one_or_none()
        if not submission:
            raise ResourceNotFoundException(detail=TRACKING_NOT_FOUND_MESSAGE)

        stats = await WorkflowService.document_stats(db, submission.id)
        return submission, stats
