import logging
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from app.core.exceptions import (
    InvalidParameterException,
    ResourceNotFoundException,
    StorageFailureException,
)
from app.core.logging_utils import mask_sensitive_data, sanitize_log_message
from app.models.notification import NotificationType
from app.models.submission import (
    ServiceType,
    Submission,
    SubmissionNote,
    SubmissionSource,
    SubmissionStatus,
    WorkflowStatus,
)
from app.models.user import User
from app.services.notification_service import NotificationService
from app.services.storage_service import LocalFileStorage

logger = logging.getLogger(__name__)

# Fields staff may edit directly; workflow columns only move through WorkflowService
EDITABLE_FIELDS = ("name", "email", "phone", "service", "message", "status", "assigned_to")


class SubmissionService:
    """Service for creating, querying and editing submissions."""

    @staticmethod
    async def create_submission(
        db: AsyncSession,
        name: str,
        phone: str,
        service: ServiceType,
        message: str,
        email: Optional[str] = None,
        source: SubmissionSource = SubmissionSource.WEBSITE,
        request_id: Optional[str] = None
    ) -> Submission:
        """
        Create a submission in the pending_validation stage.

        Args:
            db: Database session
            name: Lead name
            phone: Lead phone number
            service: Requested service
            message: Free-text message
            email: Optional email (stored lowercased)
            source: website for the public form, manual for staff entry
            request_id: Request ID (UUID) for request tracing

        Returns:
            Created Submission record
        """
        submission = Submission(
            name=name.strip(),
            phone=phone.strip(),
            email=email.strip().lower() if email else None,
            service=service,
            message=message,
            source=source,
            status=SubmissionStatus.NEW,
            workflow_status=WorkflowStatus.PENDING_VALIDATION
        )
        db.add(submission)
        await db.commit()
        await db.refresh(submission)

        logger.info(
            sanitize_log_message(
                "Submission created",
                RequestID=request_id,
                SubmissionID=submission.id,
                Data=mask_sensitive_data({
                    "phone": submission.phone,
                    "email": submission.email,
                    "service": service.value,
                    "source": source.value
                })
            )
        )

        await NotificationService.notify_admins(
            db,
            NotificationType.NEW_SUBMISSION,
            title="New submission",
            message=f"New {service.value.replace('_', ' ')} request from {submission.name}",
            link=f"/admin/submissions/{submission.id}",
            data={"submission_id": submission.id, "name": submission.name, "service": service.value}
        )
        return submission

    @staticmethod
    async def get_submission(db: AsyncSession, submission_id: int, with_notes: bool = False) -> Submission:
        """
        Get a submission by ID.

        Raises:
            ResourceNotFoundException if it does not exist
        """
        query = select(Submission).where(Submission.id == submission_id)
        if with_notes:
            query = query.options(selectinload(Submission.notes)).execution_options(populate_existing=True)
        submission = (await db.execute(query)).scalar_one_or_none()
        if not submission:
            raise ResourceNotFoundException(detail="Submission not found")
        return submission

    @staticmethod
    async def list_submissions(
        db: AsyncSession,
        search: Optional[str] = None,
        service: Optional[ServiceType] = None,
        status: Optional[SubmissionStatus] = None,
        source: Optional[SubmissionSource] = None,
        workflow_status: Optional[WorkflowStatus] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Submission], int]:
        """
        List submissions, newest first.

        Args:
            search: Case-insensitive match on name, email or phone

        Returns:
            Tuple of (submissions, total)
        """
        conditions = []
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(or_(
                Submission.name.ilike(pattern),
                Submission.email.ilike(pattern),
                Submission.phone.ilike(pattern)
            ))
        if service:
            conditions.append(Submission.service == service)
        if status:
            conditions.append(Submission.status == status)
        if source:
            conditions.append(Submission.source == source)
        if workflow_status:
            conditions.append(Submission.workflow_status == workflow_status)

        total = await db.scalar(select(func.count(Submission.id)).where(*conditions))
        result = await db.execute(
            select(Submission)
            .where(*conditions)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return result.scalars().all(), total or 0

    @staticmethod
    async def get_stats(db: AsyncSession) -> Dict[str, Any]:
        """Counts by coarse status, workflow stage and service."""
        total = await db.scalar(select(func.count(Submission.id))) or 0

        by_status = {s.value: 0 for s in SubmissionStatus}
        for value, count in (await db.execute(
            select(Submission.status, func.count(Submission.id)).group_by(Submission.status)
        )).all():
            by_status[value.value] = count

        by_workflow = {w.value: 0 for w in WorkflowStatus}
        for value, count in (await db.execute(
            select(Submission.workflow_status, func.count(Submission.id))
            .where(Submission.workflow_status.is_not(None))
            .group_by(Submission.workflow_status)
        )).all():
            by_workflow[value.value] = count

        by_service = {s.value: 0 for s in ServiceType}
        for value, count in (await db.execute(
            select(Submission.service, func.count(Submission.id)).group_by(Submission.service)
        )).all():
            by_service[value.value] = count

        converted = await db.scalar(
            select(func.count(Submission.id)).where(Submission.converted_to_client.is_(True))
        ) or 0

        return {
            "total": total,
            "by_status": by_status,
            "by_workflow_status": by_workflow,
            "by_service": by_service,
            "converted": converted
        }

    @staticmethod
    async def update_submission(db: AsyncSession, submission_id: int, changes: Dict[str, Any]) -> Submission:
        """
        Apply edits to the coarse submission fields.

        Raises:
            ResourceNotFoundException if the submission or assignee does not exist
            InvalidParameterException for fields outside EDITABLE_FIELDS
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidParameterException(detail=f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        submission = await SubmissionService.get_submission(db, submission_id)

        if changes.get("assigned_to") is not None:
            if await db.get(User, changes["assigned_to"]) is None:
                raise ResourceNotFoundException(detail="Assigned user not found")
        if changes.get("email"):
            changes["email"] = changes["email"].strip().lower()

        for field, value in changes.items():
            setattr(submission, field, value)
        await db.commit()
        await db.refresh(submission)

        logger.info(
            sanitize_log_message("Submission updated", SubmissionID=submission.id, Fields=sorted(changes))
        )
        return submission

    @staticmethod
    async def add_note(db: AsyncSession, submission_id: int, author_id: int, content: str) -> SubmissionNote:
        """Append a staff note to a submission."""
        content = (content or "").strip()
        if not content:
            raise InvalidParameterException(detail="Note content cannot be empty")
        await SubmissionService.get_submission(db, submission_id)

        note = SubmissionNote(submission_id=submission_id, author_id=author_id, content=content)
        db.add(note)
        await db.commit()
        await db.refresh(note)
        return note

    @staticmethod
    async def delete_submission(
        db: AsyncSession,
        submission_id: int,
        storage: Optional[LocalFileStorage] = None
    ) -> None:
        """
        Hard-delete a submission with its links, documents and receipts.

        Stored files are removed after the rows are gone; a file that cannot be
        removed is logged and left behind.
        """
        storage = storage or LocalFileStorage()
        submission = (await db.execute(
            select(Submission)
            .options(
                selectinload(Submission.notes),
                selectinload(Submission.access_links),
                selectinload(Submission.documents),
                selectinload(Submission.payment_receipts)
            )
            .where(Submission.id == submission_id)
        )).scalar_one_or_none()
        if not submission:
            raise ResourceNotFoundException(detail="Submission not found")

        storage_keys = [d.storage_key for d in submission.documents]
        storage_keys += [r.storage_key for r in submission.payment_receipts]

        await db.delete(submission)
        await db.commit()

        for key in storage_keys:
            try:
                storage.delete(key)
            except StorageFailureException:
                logger.warning(sanitize_log_message("Orphaned file left after delete", Key=key))

        logger.info(
            sanitize_log_message(
                "Submission deleted",
                SubmissionID=submission_id,
                FilesRemoved=len(storage_keys)
            )
        )
