from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.schemas.common import MessageResponse, total_pages
from app.schemas.notification import NotificationListResponse, NotificationResponse, UnreadCountResponse
from app.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Notifications of the current user, newest first.
    """
    items, total = await NotificationService.list_notifications(
        db, current_user.id, unread_only=unread_only, page=page, limit=limit
    )
    unread = await NotificationService.unread_count(db, current_user.id)
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
        unread_count=unread
    )


@router.get("/unread/count", response_model=UnreadCountResponse)
async def unread_count(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return UnreadCountResponse(count=await NotificationService.unread_count(db, current_user.id))


@router.put("/read-all", response_model=MessageResponse)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    count = await NotificationService.mark_all_read(db, current_user.id)
    return MessageResponse(message="Notifications marked as read", count=count)


@router.delete("/clear-read", response_model=MessageResponse)
async def clear_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    count = await NotificationService.clear_read(db, current_user.id)
    return MessageResponse(message="Read notifications deleted", count=count)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notification = await NotificationService.mark_read(db, notification_id, current_user.id)
    return NotificationResponse.model_validate(notification)


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await NotificationService.delete_notification(db, notification_id, current_user.id)
    return MessageResponse(message="Notification deleted")
