import logging
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fastapi import BackgroundTasks
from app.models.audit_log import AuditLog, ActionType, UserType
from app.core.logging_utils import mask_sensitive_data, sanitize_log_message

logger = logging.getLogger(__name__)


class AuditService:
    """Service for the activity log, written from background tasks."""

    @staticmethod
    async def log_action(
        db: AsyncSession,
        action_type: ActionType,
        user_type: UserType,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        request_data: Optional[Dict[str, Any]] = None,
        response_data: Optional[Dict[str, Any]] = None,
        status: str = "success",
        error_message: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> Optional[AuditLog]:
        """
        Write one activity log entry.

        Args:
            db: Database session
            action_type: Type of action
            user_type: Who acted (staff user, link holder, system)
            user_id: ID of the staff user
            resource_type: Type of resource affected (submission, document, access_link, ...)
            resource_id: ID of the resource
            ip_address: IP address of the request
            user_agent: User agent string
            request_data: Request payload, masked before storage
            response_data: Response payload, masked before storage
            status: "success" or "error"
            error_message: Error message if status is error
            request_id: Request ID (UUID) for request tracing

        Returns:
            Created AuditLog record, or None if the write failed
        """
        try:
            # Savepoint keeps a failed write from expiring the caller's objects
            async with db.begin_nested():
                audit_log = AuditLog(
                    action_type=action_type,
                    user_type=user_type,
                    user_id=user_id,
                    resource_type=resource_type,
                    resource_id=resource_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    request_data=mask_sensitive_data(request_data) if request_data else None,
                    response_data=mask_sensitive_data(response_data) if response_data else None,
                    status=status,
                    error_message=error_message,
                    request_id=request_id
                )
                db.add(audit_log)
        except SQLAlchemyError as e:
            logger.exception(
                sanitize_log_message(
                    "Failed to write audit log",
                    RequestID=request_id,
                    ActionType=action_type.value,
                    Error=str(e)
                )
            )
            return None

        await db.commit()
        await db.refresh(audit_log)

        if status == "error" and error_message:
            logger.error(
                sanitize_log_message(
                    f"Audit: {action_type.value} failed",
                    RequestID=request_id,
                    UserID=user_id,
                    Resource=f"{resource_type}:{resource_id}",
                    Error=error_message
                )
            )
        else:
            logger.debug(
                sanitize_log_message(
                    f"Audit: {action_type.value}",
                    RequestID=request_id,
                    UserType=user_type.value,
                    UserID=user_id,
                    Resource=f"{resource_type}:{resource_id}"
                )
            )
        return audit_log

    @staticmethod
    async def log_action_background(
        background_tasks: BackgroundTasks,
        db: AsyncSession,
        action_type: ActionType,
        user_type: UserType,
        **kwargs: Any
    ) -> None:
        """
        Schedule ``log_action`` as a background task (non-blocking).

        Keyword arguments are passed through to ``log_action``.
        """
        background_tasks.add_task(
            AuditService.log_action,
            db=db,
            action_type=action_type,
            user_type=user_type,
            **kwargs
        )

    @staticmethod
    async def get_audit_logs(
        db: AsyncSession,
        action_type: Optional[ActionType] = None,
        user_type: Optional[UserType] = None,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        status: Optional[str] = None,
        request_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[AuditLog], int]:
        """
        Query audit logs with filters, newest first.

        Returns:
            Tuple of (logs, total matching)
        """
        conditions = []
        if action_type:
            conditions.append(AuditLog.action_type == action_type)
        if user_type:
            conditions.append(AuditLog.user_type == user_type)
        if user_id:
            conditions.append(AuditLog.user_id == user_id)
        if resource_type:
            conditions.append(AuditLog.resource_type == resource_type)
        if resource_id:
            conditions.append(AuditLog.resource_id == resource_id)
        if status:
            conditions.append(AuditLog.status == status)
        if request_id:
            conditions.append(AuditLog.request_id == request_id)
        if start_date:
            conditions.append(AuditLog.created_at >= start_date)
        if end_date:
            conditions.append(AuditLog.created_at <= end_date)

        total = await db.scalar(select(func.count(AuditLog.id)).where(*conditions))
        result = await db.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return result.scalars().all(), total or 0
