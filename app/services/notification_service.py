import logging
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.notification import Notification, NotificationType
from app.models.user import User, UserRole
from app.core.exceptions import ResourceNotFoundException
from app.core.logging_utils import sanitize_log_message
from app.core.timeutils import utcnow

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for staff notifications raised by workflow events."""

    @staticmethod
    async def notify_admins(
        db: AsyncSession,
        notification_type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Create one notification per active admin.

        Best effort: callers commit their state change first. The rows are
        written inside a savepoint, so a failure only discards the
        notifications and leaves the caller's loaded objects usable.

        Returns:
            Number of notifications created (0 on failure)
        """
        try:
            async with db.begin_nested():
                result = await db.execute(
                    select(User.id).where(User.role == UserRole.ADMIN, User.is_active.is_(True))
                )
                admin_ids = result.scalars().all()
                db.add_all([
                    Notification(
                        recipient_id=admin_id,
                        type=notification_type,
                        title=title,
                        message=message,
                        link=link,
                        data=data
                    )
                    for admin_id in admin_ids
                ])
        except SQLAlchemyError as e:
            logger.exception(
                sanitize_log_message(
                    "Failed to create notifications",
                    Type=notification_type.value,
                    Error=str(e)
                )
            )
            return 0

        await db.commit()
        return len(admin_ids)

    @staticmethod
    async def list_notifications(
        db: AsyncSession,
        recipient_id: int,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Notification], int]:
        """
        List a user's notifications, newest first.

        Returns:
            Tuple of (notifications, total)
        """
        conditions = [Notification.recipient_id == recipient_id]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        total = await db.scalar(select(func.count(Notification.id)).where(*conditions))
        result = await db.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return result.scalars().all(), total or 0

    @staticmethod
    async def unread_count(db: AsyncSession, recipient_id: int) -> int:
        count = await db.scalar(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False)
            )
        )
        return count or 0

    @staticmethod
    async def _get_owned(db: AsyncSession, notification_id: int, recipient_id: int) -> Notification:
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id
            )
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise ResourceNotFoundException(detail="Notification not found")
        return notification

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, recipient_id: int) -> Notification:
        notification = await NotificationService._get_owned(db, notification_id, recipient_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await db.commit()
            await db.refresh(notification)
        return notification

    @staticmethod
    async def mark_all_read(db: AsyncSession, recipient_id: int) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete_notification(db: AsyncSession, notification_id: int, recipient_id: int) -> None:
        notification = await NotificationService._get_owned(db, notification_id, recipient_id)
        await db.delete(notification)
        await db.commit()

    @staticmethod
    async def clear_read(db: AsyncSession, recipient_id: int) -> int:
        """Delete every read notification of a user."""
        result = await db.execute(
            delete(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(True))
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount
