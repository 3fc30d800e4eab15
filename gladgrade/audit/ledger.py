"""
Prospect ownership ledger.

Appends one prospect_ownership_logs row per reassignment. The migration also
installs the PostgreSQL function log_prospect_ownership_change() with the
same contract for callers working inside the database.
"""
from typing import List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from gladgrade.models.audit import ProspectOwnershipLog


async def record_ownership_change(
    session: AsyncSession,
    prospect_id: int,
    old_owner_id: Optional[int],
    new_owner_id: int,
    changed_by: Optional[int],
    reason: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ProspectOwnershipLog:
    """
    Append an ownership change to the ledger.

    Owner ids are not checked against employees here; the caller decided the
    reassignment was legitimate. The row is flushed, not committed.
    """
    entry = ProspectOwnershipLog(
        prospect_id=prospect_id,
        old_owner_id=old_owner_id,
        new_owner_id=new_owner_id,
        changed_by_user_id=changed_by,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    session.add(entry)
    await session.flush()
    return entry


async def get_ownership_history(
    session: AsyncSession,
    prospect_id: int,
) -> List[ProspectOwnershipLog]:
    """Every recorded owner change of a prospect, newest first."""
    query = (
        select(ProspectOwnershipLog)
        .where(ProspectOwnershipLog.prospect_id == prospect_id)
        .order_by(desc(ProspectOwnershipLog.created_at), desc(ProspectOwnershipLog.id))
    )
    result = await session.execute(query)
    return list(result.scalars().all())
