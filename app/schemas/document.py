from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field
from app.models.document import DocumentType, DocumentStatus
from app.models.submission import WorkflowStatus


class DocumentResponse(BaseModel):
    """Response schema for document."""
    id: int
    submission_id: int
    access_link_id: Optional[int] = None
    document_type: DocumentType
    original_name: str
    file_name: str
    file_size: int
    mime_type: str
    status: DocumentStatus
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


class DocumentUploadResponse(BaseModel):
    """Response schema for an upload through a document link."""
    message: str
    uploaded: int
    uses_remaining: int
    documents: list[DocumentResponse]


class DocumentVerifyRequest(BaseModel):
    status: DocumentStatus
    rejection_reason: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=2000)


class DocumentVerifyResponse(BaseModel):
    document: DocumentResponse
    submission_advanced: bool
    workflow_status: Optional[WorkflowStatus] = None
