"""Audit trail API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from gladgrade.audit.dependencies import get_audit_logger
from gladgrade.audit.schemas import (
    AuditRecordResponse,
    OwnershipChangeResponse,
    ProspectHistoryResponse,
    RecentActivityResponse,
    SeverityLevel,
)
from gladgrade.audit.services import AuditLogger

router = APIRouter()


@router.get("/recent", response_model=RecentActivityResponse)
async def get_recent_activity(
    limit: int = Query(default=100, ge=1, le=500),
    action_type: Optional[str] = Query(default=None, description="Only this action type, e.g. ASSIGN"),
    severity_level: Optional[SeverityLevel] = Query(default=None),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Recent audit activity for the audit dashboard, newest first."""
    records = await audit.get_recent_activity(
        limit,
        action_type=action_type,
        severity_level=severity_level,
    )
    data = [AuditRecordResponse.model_validate(record) for record in records]
    return RecentActivityResponse(data=data, total=len(data))


@router.get("/prospect-history", response_model=ProspectHistoryResponse)
async def get_prospect_history(
    prospect_id: int = Query(..., description="Prospect to show history for"),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Audit history and ownership changes of one prospect."""
    audit_history = await audit.get_entity_history("prospects", prospect_id)
    ownership_history = await audit.get_ownership_history(prospect_id)

    return ProspectHistoryResponse(
        prospect_id=prospect_id,
        audit_history=[AuditRecordResponse.model_validate(r) for r in audit_history],
        ownership_history=[OwnershipChangeResponse.model_validate(r) for r in ownership_history],
    )
