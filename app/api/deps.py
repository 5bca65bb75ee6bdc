import uuid
from typing import Optional, Dict, Any, Callable
from fastapi import Depends, HTTPException, status, Request, BackgroundTasks
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.models.user import User, UserRole
from app.core.exceptions import PermissionDeniedException
from app.core.security import decode_access_token
from app.external.whatsapp_client import WhatsAppClient
from app.services.user_service import UserService
from app.services.audit_service import AuditService
from app.services.document_service import DocumentService
from app.services.payment_service import PaymentService
from app.services.storage_service import LocalFileStorage
from app.models.audit_log import ActionType, UserType


# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Resolve the staff user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid, names no user
        or carries a role the account no longer has,
        403 if the account is inactive
    """
    if not credentials:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    try:
        user = await UserService.get_user_by_id(db, int(user_id))
    except ValueError:
        raise _unauthorized("Invalid user ID in token")

    if not user:
        raise _unauthorized("User not found")

    if payload.get("role") != user.role.value:
        raise _unauthorized("Token no longer matches the account role")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return user


def require_roles(*roles: UserRole) -> Callable:
    """
    Dependency factory restricting an endpoint to the given roles.

    Usage:
        @router.post("/x")
        async def x(user: User = Depends(require_roles(UserRole.ADMIN, UserRole.AGENT))):
            ...
    """
    async def dependency(
        request: Request,
        db: AsyncSession = Depends(get_db),
        user: User = Depends(get_current_user)
    ) -> User:
        if user.role not in roles:
            # Written inline: background tasks do not run for error responses
            await AuditService.log_action(
                db,
                ActionType.PERMISSION_DENIED,
                UserType.USER,
                user_id=user.id,
                ip_address=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
                request_id=getattr(request.state, "request_id", None),
                request_data={"path": request.url.path, "method": request.method, "role": user.role.value},
                status="error",
                error_message="Insufficient role"
            )
            raise PermissionDeniedException(
                detail=f"This action requires one of the roles: {', '.join(r.value for r in roles)}"
            )
        return user

    return dependency


require_admin = require_roles(UserRole.ADMIN)
require_staff = require_roles(UserRole.ADMIN, UserRole.AGENT)


# Service Dependencies for Dependency Injection
def get_storage() -> LocalFileStorage:
    """Get LocalFileStorage instance rooted at UPLOAD_DIR."""
    return LocalFileStorage()


def get_document_service(storage: LocalFileStorage = Depends(get_storage)) -> DocumentService:
    """Get DocumentService instance."""
    return DocumentService(storage)


def get_payment_service(storage: LocalFileStorage = Depends(get_storage)) -> PaymentService:
    """Get PaymentService instance."""
    return PaymentService(storage)


def get_whatsapp_client() -> WhatsAppClient:
    """Get WhatsAppClient instance."""
    return WhatsAppClient()


class AuditContext:
    """Request-scoped audit logging context with the acting user and request ID."""

    def __init__(
        self,
        request: Request,
        background_tasks: BackgroundTasks,
        db: AsyncSession,
        user_id: Optional[int] = None,
        user_type: Optional[UserType] = None
    ):
        """
        Initialize audit context with request-scoped information.

        Args:
            request: FastAPI Request object
            background_tasks: FastAPI BackgroundTasks instance
            db: Database session
            user_id: Staff user ID
            user_type: USER, LINK or SYSTEM
        """
        # Get or generate request ID from request state
        if not hasattr(request.state, "request_id"):
            request.state.request_id = str(uuid.uuid4())

        self.request_id = request.state.request_id
        self.request = request
        self.background_tasks = background_tasks
        self.db = db
        self.user_id = user_id
        self.user_type = user_type or UserType.SYSTEM
        self.ip_address = request.client.host if request.client else None
        self.user_agent = request.headers.get("user-agent")

    async def log_action(
        self,
        action_type: ActionType,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        request_data: Optional[Dict[str, Any]] = None,
        response_data: Optional[Dict[str, Any]] = None,
        status: str = "success",
        error_message: Optional[str] = None
    ) -> None:
        """Schedule an activity log entry with this request's context."""
        await AuditService.log_action_background(
            self.background_tasks,
            self.db,
            action_type,
            self.user_type,
            user_id=self.user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            request_data=request_data,
            response_data=response_data,
            status=status,
            error_message=error_message,
            request_id=self.request_id
        )


async def get_audit_context(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
) -> AuditContext:
    """
    Audit context for endpoints that may or may not be authenticated.

    A valid bearer token attributes the entry to that staff user; public
    link endpoints are attributed to the link holder, anything else to SYSTEM.
    """
    user_id: Optional[int] = None
    user_type: Optional[UserType] = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        payload = decode_access_token(auth_header.split(" ", 1)[1])
        sub = payload.get("sub") if payload else None
        if sub and str(sub).isdigit():
            user = await UserService.get_user_by_id(db, int(sub))
            if user and user.is_active:
                user_id = user.id
                user_type = UserType.USER

    if user_type is None and request.path_params.get("token"):
        user_type = UserType.LINK

    return AuditContext(
        request=request,
        background_tasks=background_tasks,
        db=db,
        user_id=user_id,
        user_type=user_type
    )


async def get_user_audit_context(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
) -> AuditContext:
    """Audit context for authenticated endpoints, attributed to the current user."""
    return AuditContext(
        request=request,
        background_tasks=background_tasks,
        db=db,
        user_id=user.id,
        user_type=UserType.USER
    )
