"""
Prospect pipeline operations.

Each operation commits its own change first and only then records it on the
audit trail. Audit results are never consulted: a failed audit write leaves
the business outcome unchanged.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from gladgrade.audit.schemas import AuditActor, RequestProvenance
from gladgrade.audit.services import AuditLogger, SALES_PIPELINE_CONTEXT
from gladgrade.models.prospect import Prospect, ProspectStatus
from gladgrade.prospects.schemas import ProspectConvert, ProspectCreate, ProspectUpdate

logger = logging.getLogger(__name__)

# Roles allowed to move a prospect to another salesperson
OWNERSHIP_MANAGER_ROLES = frozenset({"super_admin", "sales_manager"})

# Roles that see every prospect rather than only their own
PIPELINE_VIEW_ALL_ROLES = frozenset({"super_admin", "sales_manager", "admin"})

# Bookkeeping columns left out of update diffs
_UNAUDITED_FIELDS = ("updated_at",)


class ProspectNotFoundError(Exception):
    """No prospect with the given id."""


class OwnershipChangeForbiddenError(Exception):
    """The actor's role may not reassign prospect ownership."""


class ProspectAlreadyConvertedError(Exception):
    """The prospect was already converted to a client."""


def _audited_snapshot(prospect: Prospect) -> dict:
    snapshot = prospect.to_snapshot()
    for field in _UNAUDITED_FIELDS:
        snapshot.pop(field, None)
    return snapshot


class ProspectService:
    """List, create, update and convert prospects, recording each change on the audit trail."""

    def __init__(self, db: AsyncSession, audit: AuditLogger):
        self.db = db
        self.audit = audit

    async def get_prospect(self, prospect_id: int) -> Prospect:
        prospect = await self.db.get(Prospect, prospect_id)
        if prospect is None:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")
        return prospect

    async def list_prospects(
        self,
        actor: AuditActor,
        salesperson_id: Optional[int] = None,
    ) -> List[Prospect]:
        """
        Prospects visible to the actor, newest first.

        PIPELINE_VIEW_ALL_ROLES see the whole pipeline and may narrow it to
        one salesperson. Everyone else sees only the prospects assigned to
        them, whatever salesperson_id asks for.
        """
        query = select(Prospect)
        if actor.user_role in PIPELINE_VIEW_ALL_ROLES:
            if salesperson_id is not None:
                query = query.where(Prospect.assigned_salesperson_id == salesperson_id)
        else:
            query = query.where(Prospect.assigned_salesperson_id == actor.user_id)

        result = await self.db.execute(query.order_by(desc(Prospect.created_at), desc(Prospect.id)))
        prospects = list(result.scalars().all())
        logger.info(f"Listed {len(prospects)} prospects for user {actor.user_id} ({actor.user_role})")
        return prospects

    async def create_prospect(
        self,
        data: ProspectCreate,
        actor: AuditActor,
        provenance: Optional[RequestProvenance] = None,
    ) -> Prospect:
        """Create a prospect, owned by the creating employee unless assigned explicitly."""
        prospect = Prospect(
            business_name=data.business_name,
            contact_name=data.contact_name,
            contact_email=data.contact_email,
            contact_phone=data.contact_phone,
            estimated_value=data.estimated_value,
            notes=data.notes,
            status=ProspectStatus.NEW.value,
            assigned_salesperson_id=data.assigned_salesperson_id or actor.user_id,
            created_by_user_id=actor.user_id,
        )
        self.db.add(prospect)
        await self.db.commit()
        await self.db.refresh(prospect)

        logger.info(f"Prospect {prospect.id} created by user {actor.user_id}")

        await self.audit.log_entity_creation(
            actor,
            "prospects",
            prospect.id,
            prospect.to_snapshot(),
            entity_label="prospect",
            business_context=SALES_PIPELINE_CONTEXT,
            provenance=provenance,
        )
        return prospect

    async def update_prospect(
        self,
        prospect_id: int,
        data: ProspectUpdate,
        actor: AuditActor,
        provenance: Optional[RequestProvenance] = None,
    ) -> Tuple[Prospect, bool]:
        """
        Update a prospect.

        Moving the prospect to another salesperson is restricted to
        OWNERSHIP_MANAGER_ROLES and is rejected before anything is written.

        Returns:
            The updated prospect and whether its owner changed
        """
        prospect = await self.get_prospect(prospect_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True, exclude={"change_reason"})
        new_owner_id = changes.pop("assigned_salesperson_id", None)
        old_owner_id = prospect.assigned_salesperson_id
        is_ownership_change = new_owner_id is not None and new_owner_id != old_owner_id

        if is_ownership_change and actor.user_role not in OWNERSHIP_MANAGER_ROLES:
            raise OwnershipChangeForbiddenError(
                "Only Super Admin or Sales Manager can change prospect ownership"
            )

        before = _audited_snapshot(prospect)

        for field, value in changes.items():
            setattr(prospect, field, value)
        if is_ownership_change:
            prospect.assigned_salesperson_id = new_owner_id
        prospect.updated_at = datetime.now(timezone.utc)

        await self.db.commit()
        await self.db.refresh(prospect)

        if is_ownership_change:
            await self.audit.log_ownership_change(
                actor,
                prospect.id,
                old_owner_id,
                new_owner_id,
                data.change_reason,
                provenance=provenance,
            )

        await self.audit.log_update(
            actor,
            "prospects",
            prospect.id,
            before,
            _audited_snapshot(prospect),
            description=f"Updated prospect: {before['business_name']}",
            business_context=SALES_PIPELINE_CONTEXT,
            severity_level="warning" if is_ownership_change else "info",
            provenance=provenance,
        )
        return prospect, is_ownership_change

    async def convert_prospect(
        self,
        prospect_id: int,
        data: ProspectConvert,
        actor: AuditActor,
        provenance: Optional[RequestProvenance] = None,
    ) -> Prospect:
        """Mark a prospect as converted into the given client."""
        prospect = await self.get_prospect(prospect_id)
        if prospect.status == ProspectStatus.CONVERTED.value:
            raise ProspectAlreadyConvertedError(
                f"Prospect {prospect_id} was already converted to client {prospect.converted_client_id}"
            )

        now = datetime.now(timezone.utc)
        prospect.status = ProspectStatus.CONVERTED.value
        prospect.converted_client_id = data.client_id
        prospect.conversion_value = data.conversion_value
        prospect.converted_at = now
        prospect.updated_at = now

        await self.db.commit()
        await self.db.refresh(prospect)

        logger.info(f"Prospect {prospect.id} converted to client {data.client_id}")

        await self.audit.log_conversion(
            actor,
            prospect.id,
            data.client_id,
            data.conversion_value,
            provenance=provenance,
        )
        return prospect
