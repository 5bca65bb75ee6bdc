from typing import Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from app.models.client import ClientStatus
from app.models.submission import ServiceType
from app.schemas.common import PaginatedResponse


class ClientResponse(BaseModel):
    """Response schema for a client."""
    id: int
    name: str
    email: Optional[str] = None
    phone: str
    service: ServiceType
    message: str
    status: ClientStatus
    assigned_to: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClientUpdateRequest(BaseModel):
    """Request schema for editing a client."""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=6, max_length=30)
    service: Optional[ServiceType] = None
    message: Optional[str] = Field(None, max_length=5000)
    status: Optional[ClientStatus] = None
    assigned_to: Optional[int] = None


class ClientListResponse(PaginatedResponse):
    items: list[ClientResponse]
