from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.api.deps import AuditContext, get_current_user, get_user_audit_context, require_staff
from app.models.audit_log import ActionType
from app.models.client import ClientStatus
from app.models.submission import ServiceType
from app.models.user import User
from app.schemas.client import ClientListResponse, ClientResponse, ClientUpdateRequest
from app.schemas.common import total_pages
from app.services.client_service import ClientService

router = APIRouter()


@router.get("", response_model=ClientListResponse)
async def list_clients(
    search: Optional[str] = Query(None, max_length=100),
    service: Optional[ServiceType] = Query(None),
    status_filter: Optional[ClientStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    items, total = await ClientService.list_clients(
        db, search=search, service=service, status=status_filter, page=page, limit=limit
    )
    return ClientListResponse(
        items=[ClientResponse.model_validate(c) for c in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit)
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ClientResponse.model_validate(await ClientService.get_client(db, client_id))


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    payload: ClientUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
    audit: AuditContext = Depends(get_user_audit_context)
):
    changes = payload.model_dump(exclude_unset=True)
    client = await ClientService.update_client(db, client_id, changes)
    await audit.log_action(
        ActionType.CLIENT_UPDATED,
        resource_type="client",
        resource_id=client.id,
        request_data={"fields": sorted(changes)}
    )
    return ClientResponse.model_validate(client)
