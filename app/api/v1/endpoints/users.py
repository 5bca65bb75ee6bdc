from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.api.deps import AuditContext, get_user_audit_context, require_admin
from app.core.exceptions import InvalidParameterException, ResourceNotFoundException
from app.models.audit_log import ActionType
from app.models.user import User, UserRole
from app.schemas.common import total_pages
from app.schemas.user import UserCreateRequest, UserListResponse, UserResponse, UserUpdateRequest
from app.services.user_service import UserService

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    items, total = await UserService.list_users(db, role=role, page=page, limit=limit)
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit)
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    audit: AuditContext = Depends(get_user_audit_context)
):
    """
    Create a staff account.
    """
    user = await UserService.create_user(
        db,
        email=payload.email,
        name=payload.name,
        password=payload.password,
        role=payload.role
    )
    await audit.log_action(
        ActionType.USER_CREATED,
        resource_type="user",
        resource_id=user.id,
        request_data={"email": user.email, "role": user.role.value}
    )
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    user = await UserService.get_user_by_id(db, user_id)
    if not user:
        raise ResourceNotFoundException(detail="User not found")
    return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    audit: AuditContext = Depends(get_user_audit_context)
):
    """
    Update a staff account. Admins cannot deactivate or demote themselves.
    """
    if user_id == current_user.id and (
        payload.is_active is False or (payload.role is not None and payload.role != UserRole.ADMIN)
    ):
        raise InvalidParameterException(detail="You cannot deactivate or demote your own account")

    user = await UserService.update_user(
        db,
        user_id,
        name=payload.name,
        role=payload.role,
        is_active=payload.is_active,
        password=payload.password
    )
    changed = sorted(payload.model_dump(exclude_unset=True, exclude={"password"}))
    await audit.log_action(
        ActionType.USER_UPDATED,
        resource_type="user",
        resource_id=user.id,
        request_data={"fields": changed, "password_changed": payload.password is not None}
    )
    return UserResponse.model_validate(user)
