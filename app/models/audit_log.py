from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, JSON
from sqlalchemy.sql import func
import enum
from app.database import Base


class ActionType(str, enum.Enum):
    """Action type enumeration for the activity log."""
    USER_LOGIN = "user_login"
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    SUBMISSION_CREATED = "submission_created"
    SUBMISSION_UPDATED = "submission_updated"
    SUBMISSION_DELETED = "submission_deleted"
    SUBMISSION_NOTE_ADDED = "submission_note_added"
    SUBMISSION_VALIDATED = "submission_validated"
    CALL_CONFIRMED = "call_confirmed"
    DOCUMENTS_VERIFIED = "documents_verified"
    SUBMISSION_REJECTED = "submission_rejected"
    CLIENT_CREATED = "client_created"
    CLIENT_UPDATED = "client_updated"
    DOCUMENT_LINK_GENERATED = "document_link_generated"
    DOCUMENT_LINK_DEACTIVATED = "document_link_deactivated"
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_VERIFIED = "document_verified"
    DOCUMENT_REJECTED = "document_rejected"
    DOCUMENT_DOWNLOADED = "document_downloaded"
    DOCUMENT_DELETED = "document_deleted"
    PAYMENT_LINK_GENERATED = "payment_link_generated"
    PAYMENT_LINK_DEACTIVATED = "payment_link_deactivated"
    PAYMENT_RECEIPT_UPLOADED = "payment_receipt_uploaded"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_REJECTED = "payment_rejected"
    PERMISSION_DENIED = "permission_denied"


class UserType(str, enum.Enum):
    """Who performed an action."""
    USER = "user"  # Authenticated staff member
    LINK = "link"  # Anonymous client holding an access link
    SYSTEM = "system"


class AuditLog(Base):
    """Audit log model - activity trail for staff and link-holder actions."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action_type = Column(SQLEnum(ActionType), nullable=False, index=True)
    user_type = Column(SQLEnum(UserType), nullable=False, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    resource_type = Column(String, nullable=True, index=True)  # e.g., "submission", "document", "access_link"
    resource_id = Column(Integer, nullable=True, index=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    request_data = Column(JSON, nullable=True)
    response_data = Column(JSON, nullable=True)
    status = Column(String, nullable=False, index=True)  # "success" or "error"
    error_message = Column(String, nullable=True)
    request_id = Column(String, nullable=True, index=True)  # UUID for request tracing
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
