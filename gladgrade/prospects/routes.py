"""Prospect API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gladgrade.audit.dependencies import (
    get_audit_logger,
    get_current_actor,
    get_request_provenance,
)
from gladgrade.audit.schemas import AuditActor, RequestProvenance
from gladgrade.audit.services import AuditLogger
from gladgrade.database import get_db
from gladgrade.prospects.schemas import (
    ProspectConvert,
    ProspectCreate,
    ProspectListResponse,
    ProspectMutationResponse,
    ProspectResponse,
    ProspectUpdate,
)
from gladgrade.prospects.services import (
    OwnershipChangeForbiddenError,
    ProspectAlreadyConvertedError,
    ProspectNotFoundError,
    ProspectService,
)

router = APIRouter()


def get_prospect_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
) -> ProspectService:
    return ProspectService(db, audit)


@router.get("/prospects", response_model=ProspectListResponse)
async def list_prospects(
    salesperson_id: Optional[int] = Query(None, description="Managers only: narrow to one salesperson"),
    actor: AuditActor = Depends(get_current_actor),
    service: ProspectService = Depends(get_prospect_service),
):
    """List prospects. Managers see the whole pipeline, everyone else their own."""
    prospects = await service.list_prospects(actor, salesperson_id)
    return ProspectListResponse(
        data=[ProspectResponse.model_validate(p) for p in prospects],
        total=len(prospects),
    )


@router.post("/prospects", response_model=ProspectMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_prospect(
    data: ProspectCreate,
    actor: AuditActor = Depends(get_current_actor),
    provenance: RequestProvenance = Depends(get_request_provenance),
    service: ProspectService = Depends(get_prospect_service),
):
    """Create a prospect owned by the calling salesperson."""
    prospect = await service.create_prospect(data, actor, provenance)
    return ProspectMutationResponse(
        data=ProspectResponse.model_validate(prospect),
        message="Prospect created successfully",
    )


@router.get("/prospects/{prospect_id}", response_model=ProspectResponse)
async def get_prospect(
    prospect_id: int,
    service: ProspectService = Depends(get_prospect_service),
):
    """Get a single prospect."""
    try:
        return await service.get_prospect(prospect_id)
    except ProspectNotFoundError:
        raise HTTPException(status_code=404, detail="Prospect not found")


@router.put("/prospects/{prospect_id}", response_model=ProspectMutationResponse)
async def update_prospect(
    prospect_id: int,
    data: ProspectUpdate,
    actor: AuditActor = Depends(get_current_actor),
    provenance: RequestProvenance = Depends(get_request_provenance),
    service: ProspectService = Depends(get_prospect_service),
):
    """Update a prospect. Changing its salesperson requires a manager role."""
    try:
        prospect, ownership_changed = await service.update_prospect(prospect_id, data, actor, provenance)
    except ProspectNotFoundError:
        raise HTTPException(status_code=404, detail="Prospect not found")
    except OwnershipChangeForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))

    message = (
        "Prospect ownership changed successfully"
        if ownership_changed
        else "Prospect updated successfully"
    )
    return ProspectMutationResponse(data=ProspectResponse.model_validate(prospect), message=message)


@router.post("/prospects/{prospect_id}/convert", response_model=ProspectMutationResponse)
async def convert_prospect(
    prospect_id: int,
    data: ProspectConvert,
    actor: AuditActor = Depends(get_current_actor),
    provenance: RequestProvenance = Depends(get_request_provenance),
    service: ProspectService = Depends(get_prospect_service),
):
    """Convert a prospect into an existing client."""
    try:
        prospect = await service.convert_prospect(prospect_id, data, actor, provenance)
    except ProspectNotFoundError:
        raise HTTPException(status_code=404, detail="Prospect not found")
    except ProspectAlreadyConvertedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return ProspectMutationResponse(
        data=ProspectResponse.model_validate(prospect),
        message="Prospect converted successfully",
    )
