from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.api.deps import AuditContext, get_audit_context, get_current_user
from app.config import settings
from app.core.security import create_user_token
from app.middleware.rate_limit import limiter
from app.models.audit_log import ActionType, UserType
from app.models.user import User
from app.schemas.auth import LoginRequest, LoginResponse
from app.schemas.user import UserResponse
from app.services.audit_service import AuditService
from app.services.user_service import UserService

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def login(
    request: Request,
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    audit: AuditContext = Depends(get_audit_context)
):
    """
    Authenticate with email and password and return a JWT token.
    """
    user = await UserService.authenticate(db, payload.email, payload.password)
    if not user:
        # Failed attempts are logged inline since the error response skips background tasks
        await AuditService.log_action(
            db,
            ActionType.USER_LOGIN,
            UserType.SYSTEM,
            ip_address=audit.ip_address,
            user_agent=audit.user_agent,
            request_data={"email": payload.email},
            status="error",
            error_message="Invalid credentials",
            request_id=audit.request_id
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"}
        )

    access_token = create_user_token(
        user, expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    audit.user_id = user.id
    audit.user_type = UserType.USER
    await audit.log_action(ActionType.USER_LOGIN, resource_type="user", resource_id=user.id)

    return LoginResponse(
        access_token=access_token,
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """
    Get the current user from the JWT token.
    """
    return UserResponse.model_validate(current_user)
