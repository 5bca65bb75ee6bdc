"""Database models."""
from app.models.user import User, UserRole
from app.models.client import Client, ClientStatus
from app.models.submission import (
    Submission,
    SubmissionNote,
    ServiceType,
    SubmissionSource,
    SubmissionStatus,
    WorkflowStatus,
)
from app.models.access_link import AccessLink, LinkKind, PaymentStatus
from app.models.document import Document, DocumentType, DocumentStatus
from app.models.payment_receipt import PaymentReceipt, ReceiptStatus
from app.models.notification import Notification, NotificationType
from app.models.audit_log import AuditLog, ActionType, UserType

__all__ = [
    "User",
    "UserRole",
    "Client",
    "ClientStatus",
    "Submission",
    "SubmissionNote",
    "ServiceType",
    "SubmissionSource",
    "SubmissionStatus",
    "WorkflowStatus",
    "AccessLink",
    "LinkKind",
    "PaymentStatus",
    "Document",
    "DocumentType",
    "DocumentStatus",
    "PaymentReceipt",
    "ReceiptStatus",
    "Notification",
    "NotificationType",
    "AuditLog",
    "ActionType",
    "UserType",
]
