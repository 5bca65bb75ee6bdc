import logging
from typing import List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.exceptions import InvalidParameterException, ResourceNotFoundException
from app.core.logging_utils import sanitize_log_message
from app.core.security import get_password_hash, verify_password
from app.core.timeutils import utcnow
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class UserService:
    """Service for staff accounts and password authentication."""

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        """
        Get user by email (case-insensitive).

        Args:
            db: Database session
            email: Email address

        Returns:
            User record or None
        """
        result = await db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        """
        Get user by ID.

        Args:
            db: Database session
            user_id: User ID

        Returns:
            User record or None
        """
        return await db.get(User, user_id)

    @staticmethod
    async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[User]:
        """
        Check an email/password pair and stamp ``last_login``.

        Returns:
            The active User, or None when the credentials are wrong or the account is inactive
        """
        user = await UserService.get_user_by_email(db, email)
        if not user or not verify_password(password, user.hashed_password):
            logger.warning(sanitize_log_message("Failed login attempt", email=email))
            return None
        if not user.is_active:
            logger.warning(sanitize_log_message("Login attempt on inactive account", user_id=user.id))
            return None

        user.last_login = utcnow()
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    def _check_password(password: str) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidParameterException(
                detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

    @staticmethod
    async def create_user(
        db: AsyncSession,
        email: str,
        name: str,
        password: str,
        role: UserRole = UserRole.AGENT
    ) -> User:
        """
        Create a staff account.

        Raises:
            InvalidParameterException if the email is taken or the password too short
        """
        UserService._check_password(password)
        if await UserService.get_user_by_email(db, email):
            raise InvalidParameterException(detail="A user with this email already exists")

        user = User(
            email=email.strip().lower(),
            name=name.strip(),
            hashed_password=get_password_hash(password),
            role=role,
            is_active=True
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)

        logger.info(sanitize_log_message("User created", user_id=user.id, role=role.value))
        return user

    @staticmethod
    async def update_user(
        db: AsyncSession,
        user_id: int,
        name: Optional[str] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        password: Optional[str] = None
    ) -> User:
        """
        Update name, role, active flag or password of a staff account.

        Raises:
            ResourceNotFoundException if the user does not exist
        """
        user = await UserService.get_user_by_id(db, user_id)
        if not user:
            raise ResourceNotFoundException(detail="User not found")

        if name is not None:
            user.name = name.strip()
        if role is not None:
            user.role = role
        if is_active is not None:
            user.is_active = is_active
        if password is not None:
            UserService._check_password(password)
            user.hashed_password = get_password_hash(password)

        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def list_users(
        db: AsyncSession,
        role: Optional[UserRole] = None,
        page: int = 1,
        limit: int = 50
    ) -> Tuple[List[User], int]:
        conditions = [User.role == role] if role else []
        total = await db.scalar(select(func.count(User.id)).where(*conditions))
        result = await db.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return result.scalars().all(), total or 0
