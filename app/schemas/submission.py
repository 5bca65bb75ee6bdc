from typing import Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from app.models.submission import ServiceType, SubmissionSource, SubmissionStatus, WorkflowStatus
from app.schemas.client import ClientResponse
from app.schemas.common import PaginatedResponse


class SubmissionCreateRequest(BaseModel):
    """Request schema for the public contact form."""
    name: str = Field(..., min_length=2, max_length=100)
    phone: str = Field(..., min_length=6, max_length=30)
    email: Optional[EmailStr] = None
    service: ServiceType
    message: str = Field(..., min_length=1, max_length=5000)


class SubmissionUpdateRequest(BaseModel):
    """Request schema for editing the coarse submission fields."""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, min_length=6, max_length=30)
    email: Optional[EmailStr] = None
    service: Optional[ServiceType] = None
    message: Optional[str] = Field(None, min_length=1, max_length=5000)
    status: Optional[SubmissionStatus] = None
    assigned_to: Optional[int] = None


class SubmissionNoteCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class SubmissionNoteResponse(BaseModel):
    id: int
    author_id: Optional[int] = None
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class CallConfirmRequest(BaseModel):
    call_notes: Optional[str] = Field(None, max_length=5000)


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class DocumentStats(BaseModel):
    total: int
    verified: int


class SubmissionResponse(BaseModel):
    """Response schema for a submission (staff view)."""
    id: int
    name: str
    email: Optional[str] = None
    phone: str
    service: ServiceType
    message: str
    source: SubmissionSource
    status: SubmissionStatus
    workflow_status: Optional[WorkflowStatus] = None
    assigned_to: Optional[int] = None
    validated_by: Optional[int] = None
    validated_at: Optional[datetime] = None
    call_confirmed_by: Optional[int] = None
    call_confirmed_at: Optional[datetime] = None
    call_notes: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    converted_to_client: bool
    client_id: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubmissionDetailResponse(SubmissionResponse):
    """Submission with its notes, document counts and the actions available now."""
    notes: list[SubmissionNoteResponse] = []
    document_stats: DocumentStats
    allowed_actions: list[str] = []


class SubmissionListResponse(PaginatedResponse):
    items: list[SubmissionResponse]


class SubmissionStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_workflow_status: dict[str, int]
    by_service: dict[str, int]
    converted: int


class SubmissionCreateResponse(BaseModel):
    """Response schema for the public contact form."""
    id: int
    status: SubmissionStatus
    workflow_status: WorkflowStatus
    message: str = "Your request has been received"


class TrackRequest(BaseModel):
    """Public tracking lookup; at least one of phone or email is required."""
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=254)


class TrackResponse(BaseModel):
    """Redacted submission view for the public tracking page."""
    name: str
    phone: str
    email: Optional[str] = None  # Masked
    service: ServiceType
    status: SubmissionStatus
    workflow_status: Optional[WorkflowStatus] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    document_stats: DocumentStats


class ConvertToClientResponse(BaseModel):
    submission: SubmissionResponse
    client: ClientResponse
