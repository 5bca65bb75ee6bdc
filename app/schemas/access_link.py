from typing import Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field
from app.models.access_link import LinkKind, PaymentStatus
from app.models.document import DocumentType
from app.models.submission import ServiceType
from app.schemas.submission import SubmissionResponse


class AccessLinkResponse(BaseModel):
    """Response schema for an access link (staff view)."""
    id: int
    submission_id: int
    kind: LinkKind
    token: str
    url: Optional[str] = None
    expires_at: datetime
    is_active: bool
    max_uses: int
    uses_remaining: int
    last_used_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime
    amount: Optional[float] = None
    currency: Optional[str] = None
    bank_details: Optional[Dict[str, Any]] = None
    payment_status: Optional[PaymentStatus] = None

    class Config:
        from_attributes = True


class DocumentLinkCreateRequest(BaseModel):
    """Request schema for issuing (or reissuing) a document upload link."""
    submission_id: int
    expires_in_days: Optional[int] = None
    max_uploads: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)


class DocumentLinkCreateResponse(BaseModel):
    link: AccessLinkResponse
    submission: SubmissionResponse


class PaymentLinkCreateRequest(BaseModel):
    """Request schema for issuing a payment link."""
    submission_id: int
    amount: float
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    expires_in_days: Optional[int] = None
    bank_details: Optional[Dict[str, str]] = None
    notes: Optional[str] = Field(None, max_length=2000)


class LinkValidationResponse(BaseModel):
    """Minimal submission context shown to the holder of a valid link."""
    valid: bool = True
    kind: LinkKind
    submission_name: str
    service: ServiceType
    expires_at: datetime
    uses_remaining: int
    max_uses: int
    notes: Optional[str] = None
    accepted_document_types: list[DocumentType] = []
    amount: Optional[float] = None
    currency: Optional[str] = None
    bank_details: Optional[Dict[str, Any]] = None
    payment_status: Optional[PaymentStatus] = None
