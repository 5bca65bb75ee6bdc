"""Pydantic schemas for request/response contracts."""
from app.schemas.common import MessageResponse, PaginatedResponse, total_pages
from app.schemas.submission import (
    SubmissionCreateRequest,
    SubmissionCreateResponse,
    SubmissionUpdateRequest,
    SubmissionNoteCreateRequest,
    SubmissionNoteResponse,
    SubmissionResponse,
    SubmissionDetailResponse,
    SubmissionListResponse,
    SubmissionStatsResponse,
    CallConfirmRequest,
    RejectRequest,
    DocumentStats,
    TrackRequest,
    TrackResponse,
    ConvertToClientResponse,
)
from app.schemas.access_link import (
    AccessLinkResponse,
    DocumentLinkCreateRequest,
    DocumentLinkCreateResponse,
    PaymentLinkCreateRequest,
    LinkValidationResponse,
)
from app.schemas.document import (
    DocumentResponse,
    DocumentUploadResponse,
    DocumentVerifyRequest,
    DocumentVerifyResponse,
)
from app.schemas.payment import (
    PaymentReceiptResponse,
    PaymentLinkResponse,
    ReceiptUploadResponse,
    ReceiptVerifyRequest,
    ReceiptVerifyResponse,
)
from app.schemas.user import UserResponse, UserCreateRequest, UserUpdateRequest, UserListResponse
from app.schemas.auth import LoginRequest, LoginResponse
from app.schemas.client import ClientResponse, ClientUpdateRequest, ClientListResponse
from app.schemas.notification import NotificationResponse, NotificationListResponse, UnreadCountResponse
from app.schemas.audit import AuditLogResponse, AuditLogListResponse

__all__ = [
    "MessageResponse",
    "PaginatedResponse",
    "total_pages",
    "SubmissionCreateRequest",
    "SubmissionCreateResponse",
    "SubmissionUpdateRequest",
    "SubmissionNoteCreateRequest",
    "SubmissionNoteResponse",
    "SubmissionResponse",
    "SubmissionDetailResponse",
    "SubmissionListResponse",
    "SubmissionStatsResponse",
    "CallConfirmRequest",
    "RejectRequest",
    "DocumentStats",
    "TrackRequest",
    "TrackResponse",
    "AccessLinkResponse",
    "DocumentLinkCreateRequest",
    "DocumentLinkCreateResponse",
    "PaymentLinkCreateRequest",
    "LinkValidationResponse",
    "DocumentResponse",
    "DocumentUploadResponse",
    "DocumentVerifyRequest",
    "DocumentVerifyResponse",
    "PaymentReceiptResponse",
    "PaymentLinkResponse",
    "ReceiptUploadResponse",
    "ReceiptVerifyRequest",
    "ReceiptVerifyResponse",
    "UserResponse",
    "UserCreateRequest",
    "UserUpdateRequest",
    "UserListResponse",
    "LoginRequest",
    "LoginResponse",
    "ClientResponse",
    "ClientUpdateRequest",
    "ClientListResponse",
    "NotificationResponse",
    "NotificationListResponse",
    "UnreadCountResponse",
    "AuditLogResponse",
    "AuditLogListResponse",
]
