from typing import Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel
from app.models.notification import NotificationType
from app.schemas.common import PaginatedResponse


class NotificationResponse(BaseModel):
    """Response schema for a notification."""
    id: int
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(PaginatedResponse):
    items: list[NotificationResponse]
    unread_count: int


class UnreadCountResponse(BaseModel):
    count: int
