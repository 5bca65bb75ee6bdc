from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field
from app.models.access_link import PaymentStatus
from app.models.payment_receipt import ReceiptStatus
from app.schemas.access_link import AccessLinkResponse


class PaymentReceiptResponse(BaseModel):
    """Response schema for a payment receipt."""
    id: int
    submission_id: int
    access_link_id: Optional[int] = None
    amount: float
    currency: str
    original_name: str
    file_name: str
    file_size: int
    mime_type: str
    status: ReceiptStatus
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


class PaymentLinkResponse(AccessLinkResponse):
    """Payment link with the receipts uploaded through it."""
    receipts: list[PaymentReceiptResponse] = []


class ReceiptUploadResponse(BaseModel):
    message: str = "Receipt uploaded successfully"
    payment_status: PaymentStatus
    receipt: PaymentReceiptResponse


class ReceiptVerifyRequest(BaseModel):
    status: ReceiptStatus
    rejection_reason: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=2000)


class ReceiptVerifyResponse(BaseModel):
    receipt: PaymentReceiptResponse
    payment_status: Optional[PaymentStatus] = None
    uses_remaining: Optional[int] = None
