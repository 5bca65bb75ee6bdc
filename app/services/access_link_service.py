import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from app.config import settings
from app.models.access_link import AccessLink, LinkKind, PaymentStatus
from app.models.submission import Submission
from app.core.exceptions import (
    AccessLinkInvalidException,
    AccessLinkExpiredException,
    AccessLinkDeactivatedException,
    AccessLinkExhaustedException,
    InvalidParameterException,
    ResourceNotFoundException,
    StorageFailureException,
)
from app.core.logging_utils import sanitize_log_message
from app.core.timeutils import utcnow, ensure_utc

# Regeneration attempts when a freshly generated token already exists
TOKEN_GENERATION_ATTEMPTS = 5

# Columns touched by the conditional usage updates
LINK_USAGE_ATTRIBUTES = ["uses_remaining", "is_active", "expires_at", "last_used_at"]

logger = logging.getLogger(__name__)


class AccessLinkService:
    """Issues, validates, consumes and deactivates submission-scoped access links."""

    @staticmethod
    def _generate_token() -> str:
        """Generate an unguessable url-safe token."""
        return secrets.token_urlsafe(settings.LINK_TOKEN_BYTES)

    @staticmethod
    async def _generate_unique_token(db: AsyncSession) -> str:
        """
        Generate a token not used by any existing link.

        Raises:
            StorageFailureException if every attempt collided
        """
        for _ in range(TOKEN_GENERATION_ATTEMPTS):
            token = AccessLinkService._generate_token()
            existing = await db.scalar(select(AccessLink.id).where(AccessLink.token == token))
            if existing is None:
                return token
            logger.warning("Access link token collision, regenerating")
        raise StorageFailureException()

    @staticmethod
    async def issue_link(
        db: AsyncSession,
        submission_id: int,
        kind: LinkKind,
        expires_in_days: int,
        max_uses: int,
        created_by: Optional[int] = None,
        notes: Optional[str] = None,
        amount: Optional[float] = None,
        currency: Optional[str] = None,
        bank_details: Optional[Dict[str, Any]] = None,
        commit: bool = True
    ) -> AccessLink:
        """
        Create an access link for a submission.

        Args:
            db: Database session
            submission_id: Submission the link is scoped to
            kind: Document or payment link
            expires_in_days: Lifetime in days (> 0)
            max_uses: Number of allowed uses (> 0)
            created_by: Staff user issuing the link
            notes: Optional notes shown to the client
            amount: Requested amount (payment links, > 0)
            currency: ISO currency code (payment links)
            bank_details: Bank account snapshot (payment links)
            commit: Commit immediately; pass False to join a larger unit of work

        Returns:
            Created AccessLink record

        Raises:
            InvalidParameterException for non-positive limits or amount
            ResourceNotFoundException if the submission does not exist
        """
        if max_uses is None or max_uses <= 0:
            raise InvalidParameterException(detail="max_uses must be greater than zero")
        if expires_in_days is None or expires_in_days <= 0:
            raise InvalidParameterException(detail="expires_in_days must be greater than zero")
        if kind == LinkKind.PAYMENT and (amount is None or amount <= 0):
            raise InvalidParameterException(detail="amount must be greater than zero")

        submission_exists = await db.scalar(select(Submission.id).where(Submission.id == submission_id))
        if submission_exists is None:
            raise ResourceNotFoundException(detail="Submission not found")

        token = await AccessLinkService._generate_unique_token(db)

        link = AccessLink(
            submission_id=submission_id,
            kind=kind,
            token=token,
            expires_at=utcnow() + timedelta(days=expires_in_days),
            is_active=True,
            max_uses=max_uses,
            uses_remaining=max_uses,
            notes=notes,
            created_by=created_by,
        )
        if kind == LinkKind.PAYMENT:
            link.amount = amount
            link.currency = (currency or settings.PAYMENT_DEFAULT_CURRENCY).upper()
            link.bank_details = {**settings.get_bank_details(), **(bank_details or {})}
            link.payment_status = PaymentStatus.PENDING

        db.add(link)
        if commit:
            await db.commit()
            await db.refresh(link)
        else:
            await db.flush()

        logger.info(
            sanitize_log_message(
                "Access link issued",
                link_id=link.id,
                kind=kind.value,
                submission_id=submission_id,
                max_uses=max_uses,
                expires_in_days=expires_in_days
            )
        )
        return link

    @staticmethod
    def check_usable(link: AccessLink, now: Optional[datetime] = None) -> None:
        """
        Raise the specific error for a link that cannot be used.

        Order: deactivated, expired (``now >= expires_at``), exhausted.
        """
        now = now or utcnow()
        if not link.is_active:
            raise AccessLinkDeactivatedException()
        if now >= ensure_utc(link.expires_at):
            raise AccessLinkExpiredException()
        if link.uses_remaining <= 0:
            raise AccessLinkExhaustedException()

    @staticmethod
    async def get_link_by_token(
        db: AsyncSession,
        token: str,
        kind: Optional[LinkKind] = None
    ) -> AccessLink:
        """
        Look up a link by token with its submission loaded.

        Raises:
            AccessLinkInvalidException if no link matches (or it is of another kind)
        """
        result = await db.execute(
            select(AccessLink)
            .options(selectinload(AccessLink.submission))
            .where(AccessLink.token == token)
            .execution_options(populate_existing=True)
        )
        link = result.scalar_one_or_none()
        if not link or (kind is not None and link.kind != kind):
            raise AccessLinkInvalidException()
        return link

    @staticmethod
    async def validate_link(
        db: AsyncSession,
        token: str,
        kind: Optional[LinkKind] = None
    ) -> AccessLink:
        """
        Validate a token for anonymous use.

        Returns:
            The AccessLink, with ``submission`` loaded

        Raises:
            AccessLinkInvalidException, AccessLinkDeactivatedException,
            AccessLinkExpiredException or AccessLinkExhaustedException
        """
        link = await AccessLinkService.get_link_by_token(db, token, kind)
        AccessLinkService.check_usable(link)
        return link

    @staticmethod
    async def claim_uses(db: AsyncSession, link: AccessLink, count: int = 1) -> AccessLink:
        """
        Atomically take ``count`` uses from a link.

        The decrement is a single conditional UPDATE, so concurrent claims
        across workers cannot overspend the link. Nothing is committed here;
        the caller commits together with the records it creates.

        Raises:
            InvalidParameterException if count is not positive
            AccessLinkExhaustedException (or the deactivated/expired error)
            when the conditional update matches no row
        """
        if count <= 0:
            raise InvalidParameterException(detail="count must be greater than zero")

        now = utcnow()
        result = await db.execute(
            update(AccessLink)
            .where(
                AccessLink.id == link.id,
                AccessLink.is_active.is_(True),
                AccessLink.expires_at > now,
                AccessLink.uses_remaining >= count
            )
            .values(
                uses_remaining=AccessLink.uses_remaining - count,
                last_used_at=now
            )
            .execution_options(synchronize_session=False)
        )
        await db.refresh(link, attribute_names=LINK_USAGE_ATTRIBUTES)

        if result.rowcount != 1:
            logger.warning(
                sanitize_log_message(
                    "Access link claim lost",
                    link_id=link.id,
                    requested=count,
                    uses_remaining=link.uses_remaining
                )
            )
            AccessLinkService.check_usable(link, now)
            # Usable but short of the requested count
            raise AccessLinkExhaustedException(
                detail=f"Only {link.uses_remaining} upload(s) remaining on this link"
            )

        return link

    @staticmethod
    async def consume(
        db: AsyncSession,
        token: str,
        kind: LinkKind,
        count: int = 1
    ) -> AccessLink:
        """
        Re-validate a token and claim ``count`` uses in the current transaction.

        Returns:
            The claimed AccessLink with ``submission`` loaded
        """
        link = await AccessLinkService.validate_link(db, token, kind)
        return await AccessLinkService.claim_uses(db, link, count)

    @staticmethod
    async def restore_use(db: AsyncSession, link: AccessLink) -> None:
        """Give one use back to a link (after a rejected payment receipt)."""
        await db.execute(
            update(AccessLink)
            .where(AccessLink.id == link.id, AccessLink.uses_remaining < AccessLink.max_uses)
            .values(uses_remaining=AccessLink.uses_remaining + 1)
            .execution_options(synchronize_session=False)
        )
        await db.refresh(link, attribute_names=LINK_USAGE_ATTRIBUTES)

    @staticmethod
    async def get_link(db: AsyncSession, link_id: int, kind: Optional[LinkKind] = None) -> AccessLink:
        """
        Get a link by ID.

        Raises:
            ResourceNotFoundException if missing or of another kind
        """
        link = await db.get(AccessLink, link_id)
        if not link or (kind is not None and link.kind != kind):
            raise ResourceNotFoundException(detail="Access link not found")
        return link

    @staticmethod
    async def deactivate_link(db: AsyncSession, link_id: int, kind: Optional[LinkKind] = None) -> AccessLink:
        """
        Deactivate a link; every later validate or consume fails.

        Returns:
            The deactivated AccessLink
        """
        link = await AccessLinkService.get_link(db, link_id, kind)
        link.is_active = False
        await db.commit()
        await db.refresh(link)

        logger.info(sanitize_log_message("Access link deactivated", link_id=link.id, kind=link.kind.value))
        return link

    @staticmethod
    async def deactivate_active_links(
        db: AsyncSession,
        submission_id: int,
        kind: LinkKind
    ) -> int:
        """Deactivate every active link of one kind for a submission (no commit)."""
        result = await db.execute(
            update(AccessLink)
            .where(
                AccessLink.submission_id == submission_id,
                AccessLink.kind == kind,
                AccessLink.is_active.is_(True)
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    async def list_links(
        db: AsyncSession,
        submission_id: int,
        kind: LinkKind
    ) -> List[AccessLink]:
        """Links of one kind for a submission, newest first."""
        result = await db.execute(
            select(AccessLink)
            .where(AccessLink.submission_id == submission_id, AccessLink.kind == kind)
            .order_by(AccessLink.created_at.desc(), AccessLink.id.desc())
        )
        return result.scalars().all()

    @staticmethod
    def build_link_url(link: AccessLink) -> str:
        """Public URL the client opens to use the link."""
        base_url = settings.FRONTEND_URL.rstrip('/')
        path = "upload" if link.kind == LinkKind.DOCUMENT else "payment"
        return f"{base_url}/{path}/{link.token}"
