from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.sql import func
import enum
from app.database import Base


class NotificationType(str, enum.Enum):
    """Events that produce staff notifications."""
    NEW_SUBMISSION = "new_submission"
    SUBMISSION_VALIDATED = "submission_validated"
    CALL_CONFIRMED = "call_confirmed"
    DOCUMENTS_REQUESTED = "documents_requested"
    DOCUMENTS_UPLOADED = "documents_uploaded"
    DOCUMENTS_VERIFIED = "documents_verified"
    CONVERTED_TO_CLIENT = "converted_to_client"
    CLIENT_CREATED = "client_created"
    PAYMENT_RECEIPT_UPLOADED = "payment_receipt_uploaded"
    SUBMISSION_REJECTED = "submission_rejected"


class Notification(Base):
    """Notification model - one informational message for one admin user."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(NotificationType), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    link = Column(String, nullable=True)  # Admin UI path
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
