import logging
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.exceptions import InvalidParameterException, ResourceNotFoundException
from app.core.logging_utils import sanitize_log_message
from app.models.client import Client, ClientStatus
from app.models.submission import ServiceType
from app.models.user import User

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "email", "phone", "service", "message", "status", "assigned_to")


class ClientService:
    """Service for clients created by converting submissions."""

    @staticmethod
    async def get_client(db: AsyncSession, client_id: int) -> Client:
        client = await db.get(Client, client_id)
        if not client:
            raise ResourceNotFoundException(detail="Client not found")
        return client

    @staticmethod
    async def list_clients(
        db: AsyncSession,
        search: Optional[str] = None,
        service: Optional[ServiceType] = None,
        status: Optional[ClientStatus] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Client], int]:
        """
        List clients, newest first.

        Returns:
            Tuple of (clients, total)
        """
        conditions = []
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(or_(
                Client.name.ilike(pattern),
                Client.email.ilike(pattern),
                Client.phone.ilike(pattern)
            ))
        if service:
            conditions.append(Client.service == service)
        if status:
            conditions.append(Client.status == status)

        total = await db.scalar(select(func.count(Client.id)).where(*conditions))
        result = await db.execute(
            select(Client)
            .where(*conditions)
            .order_by(Client.created_at.desc(), Client.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return result.scalars().all(), total or 0

    @staticmethod
    async def update_client(db: AsyncSession, client_id: int, changes: Dict[str, Any]) -> Client:
        """
        Edit a client record.

        Raises:
            ResourceNotFoundException if the client or assignee does not exist
            InvalidParameterException for fields that cannot be edited
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidParameterException(detail=f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        client = await ClientService.get_client(db, client_id)
        if changes.get("assigned_to") is not None and await db.get(User, changes["assigned_to"]) is None:
            raise ResourceNotFoundException(detail="Assigned user not found")
        if changes.get("email"):
            changes["email"] = changes["email"].strip().lower()

        for field, value in changes.items():
            setattr(client, field, value)
        await db.commit()
        await db.refresh(client)

        logger.info(sanitize_log_message("Client updated", client_id=client.id, fields=sorted(changes)))
        return client
