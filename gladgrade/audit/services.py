"""
Audit Logger for recording data changes.

Audit logging is observability, not part of business correctness: every
write here is best-effort. A failed or slow write is reported on the module
logger and comes back as a "not logged" AuditWriteResult; it never raises
into the business operation that triggered it.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

from sqlalchemy import select, desc, and_

from gladgrade.audit.ledger import record_ownership_change, get_ownership_history
from gladgrade.audit.schemas import (
    AuditAction,
    AuditActor,
    AuditEntry,
    RequestProvenance,
    SeverityLevel,
)
from gladgrade.audit.snapshots import encode_snapshot
from gladgrade.config import settings
from gladgrade.database import Database
from gladgrade.models.audit import AuditLog, ProspectOwnershipLog

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_OWNERSHIP_REASON = "Ownership reassignment"
SALES_PIPELINE_CONTEXT = "sales_pipeline"

# Snapshot keys tried, in order, for the display name in creation descriptions
DISPLAY_NAME_FIELDS = ("business_name", "name", "full_name", "title", "email")


@dataclass(frozen=True)
class AuditWriteResult:
    """
    Outcome of one best-effort audit write.

    Callers may inspect it but must never branch business logic on it.
    """
    record_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def logged(self) -> bool:
        return self.record_id is not None

    @classmethod
    def not_logged(cls, error: str) -> "AuditWriteResult":
        return cls(record_id=None, error=error)


@dataclass(frozen=True)
class OwnershipChangeOutcome:
    """Results of the ledger write and the generic audit write."""
    ledger: AuditWriteResult
    audit: AuditWriteResult

    @property
    def logged(self) -> bool:
        return self.ledger.logged and self.audit.logged


def _actor_fields(actor: Optional[AuditActor]) -> Dict[str, Any]:
    return {"actor": actor} if actor is not None else {}


def _string_keys(values: Mapping[Any, Any]) -> Dict[str, Any]:
    return {str(key): value for key, value in values.items()}


def _display_name(snapshot: Mapping[str, Any], entity_id: Any) -> str:
    for key in DISPLAY_NAME_FIELDS:
        value = snapshot.get(key)
        if value:
            return str(value)
    return f"#{entity_id}"


class AuditLogger:
    """
    Writes audit events and reads them back for dashboards.

    Usage:
        audit = AuditLogger(database)
        await audit.log(AuditEntry(action_type="LOGIN", action_description="Signed in"))
        await audit.log_entity_creation(actor, "prospects", 42, {"business_name": "Acme"})
        await audit.log_ownership_change(actor, 42, 7, 9, "Territory realignment")
        recent = await audit.get_recent_activity(20)
    """

    def __init__(
        self,
        database: Database,
        timeout: Optional[float] = None,
        snapshot_max_bytes: Optional[int] = None,
    ):
        self.database = database
        self.timeout = settings.AUDIT_LOG_TIMEOUT_SECONDS if timeout is None else timeout
        self.snapshot_max_bytes = (
            settings.AUDIT_SNAPSHOT_MAX_BYTES if snapshot_max_bytes is None else snapshot_max_bytes
        )

    # ==========================================================================
    # Core Logging Methods
    # ==========================================================================

    async def log(self, entry: AuditEntry) -> AuditWriteResult:
        """
        Persist one audit event.

        Args:
            entry: The event; id and created_at are assigned by the database

        Returns:
            AuditWriteResult carrying the new id, or a not-logged result
            when the write failed or timed out
        """
        async def write() -> int:
            return await self._insert_audit_log(entry)

        result = await self._best_effort(write, "audit log")
        if result.logged:
            logger.info(f"Audit log created: {entry.action_type} - {entry.action_description}")
        return result

    async def _insert_audit_log(self, entry: AuditEntry) -> int:
        actor = entry.actor or AuditActor()
        row = AuditLog(
            user_id=actor.user_id,
            user_email=actor.user_email,
            user_name=actor.user_name,
            user_role=actor.user_role,
            action_type=entry.action_type,
            table_name=entry.table_name,
            record_id=entry.record_id,
            action_description=entry.action_description,
            old_values=encode_snapshot(entry.old_values, self.snapshot_max_bytes),
            new_values=encode_snapshot(entry.new_values, self.snapshot_max_bytes),
            changed_fields=entry.changed_fields,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            business_context=entry.business_context,
            severity_level=entry.severity_level,
        )
        async with self.database.transaction() as session:
            session.add(row)
            await session.flush()
            return row.id

    async def _best_effort(
        self,
        write: Callable[[], Awaitable[T]],
        what: str,
    ) -> AuditWriteResult:
        """Run a write under the timeout; turn any failure into a not-logged result."""
        try:
            record_id = await asyncio.wait_for(write(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Failed to create {what}: timed out after {self.timeout}s")
            return AuditWriteResult.not_logged(f"timed out after {self.timeout}s")
        except Exception as e:
            logger.error(f"Failed to create {what}: {e}")
            return AuditWriteResult.not_logged(str(e))
        return AuditWriteResult(record_id=record_id)

    # ==========================================================================
    # Convenience Methods
    # ==========================================================================

    async def _log_built(
        self,
        build: Callable[[], Optional[AuditEntry]],
        provenance: Optional[RequestProvenance],
    ) -> AuditWriteResult:
        """Build an entry and log it. A malformed entry is reported, never raised."""
        try:
            entry = build()
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"Failed to build audit entry: {e}")
            return AuditWriteResult.not_logged(f"invalid audit entry: {e}")
        if entry is None:
            return AuditWriteResult.not_logged("no changes")
        return await self.log(entry.with_provenance(provenance))

    async def log_entity_creation(
        self,
        actor: Optional[AuditActor],
        entity_kind: str,
        entity_id: int,
        snapshot: Mapping[str, Any],
        *,
        entity_label: Optional[str] = None,
        business_context: str = "general",
        provenance: Optional[RequestProvenance] = None,
    ) -> AuditWriteResult:
        """Log a create operation, e.g. "Created new prospect: Acme Corp"."""
        def build() -> AuditEntry:
            label = entity_label or entity_kind
            return AuditEntry(
                **_actor_fields(actor),
                action_type=AuditAction.CREATE.value,
                table_name=entity_kind,
                record_id=entity_id,
                action_description=f"Created new {label}: {_display_name(snapshot, entity_id)}",
                new_values=_string_keys(snapshot),
                business_context=business_context,
                severity_level="info",
            )

        return await self._log_built(build, provenance)

    async def log_update(
        self,
        actor: Optional[AuditActor],
        table_name: str,
        record_id: int,
        old_values: Mapping[str, Any],
        new_values: Mapping[str, Any],
        *,
        description: str,
        business_context: str = "general",
        severity_level: SeverityLevel = "info",
        provenance: Optional[RequestProvenance] = None,
    ) -> AuditWriteResult:
        """
        Log an update operation.

        Only fields of new_values whose value differs from old_values are
        recorded, in new_values order. Nothing is written when no field
        changed.
        """
        def build() -> Optional[AuditEntry]:
            old = _string_keys(old_values)
            new = _string_keys(new_values)
            changed_fields = [
                key for key, value in new.items()
                if key not in old or old[key] != value
            ]
            if not changed_fields:
                return None

            return AuditEntry(
                **_actor_fields(actor),
                action_type=AuditAction.UPDATE.value,
                table_name=table_name,
                record_id=record_id,
                action_description=description,
                old_values={key: old.get(key) for key in changed_fields},
                new_values={key: new[key] for key in changed_fields},
                changed_fields=changed_fields,
                business_context=business_context,
                severity_level=severity_level,
            )

        return await self._log_built(build, provenance)

    async def log_ownership_change(
        self,
        actor: Optional[AuditActor],
        prospect_id: int,
        old_owner_id: Optional[int],
        new_owner_id: int,
        reason: Optional[str] = None,
        provenance: Optional[RequestProvenance] = None,
    ) -> OwnershipChangeOutcome:
        """
        Record a prospect ownership reassignment in both the ledger and audit_logs.

        The two writes run in separate transactions. A failure of one is
        logged and does not stop or undo the other.
        """
        reason = str(reason).strip() if reason is not None else ""
        reason = reason or DEFAULT_OWNERSHIP_REASON
        provenance = provenance or RequestProvenance()
        changed_by = actor.user_id if actor else None

        async def write_ledger() -> int:
            async with self.database.transaction() as session:
                row = await record_ownership_change(
                    session,
                    prospect_id,
                    old_owner_id,
                    new_owner_id,
                    changed_by,
                    reason,
                    ip_address=provenance.ip_address,
                    user_agent=provenance.user_agent,
                )
                return row.id

        ledger_result = await self._best_effort(write_ledger, "prospect ownership log")

        def build() -> AuditEntry:
            previous = old_owner_id if old_owner_id is not None else "unassigned"
            return AuditEntry(
                **_actor_fields(actor),
                action_type=AuditAction.ASSIGN.value,
                table_name="prospects",
                record_id=prospect_id,
                action_description=(
                    f"Changed prospect ownership from employee {previous} "
                    f"to employee {new_owner_id}. Reason: {reason}"
                ),
                old_values={"assigned_salesperson_id": old_owner_id},
                new_values={"assigned_salesperson_id": new_owner_id},
                changed_fields=["assigned_salesperson_id"],
                business_context=SALES_PIPELINE_CONTEXT,
                severity_level="warning",
            )

        audit_result = await self._log_built(build, provenance)

        return OwnershipChangeOutcome(ledger=ledger_result, audit=audit_result)

    async def log_conversion(
        self,
        actor: Optional[AuditActor],
        prospect_id: int,
        client_id: int,
        conversion_value: Any,
        provenance: Optional[RequestProvenance] = None,
    ) -> AuditWriteResult:
        """Log a prospect becoming a client."""
        def build() -> AuditEntry:
            return AuditEntry(
                **_actor_fields(actor),
                action_type=AuditAction.CONVERT.value,
                table_name="prospects",
                record_id=prospect_id,
                action_description=(
                    f"Converted prospect {prospect_id} to client {client_id} "
                    f"with value ${conversion_value}"
                ),
                new_values={"client_id": client_id, "conversion_value": conversion_value},
                business_context=SALES_PIPELINE_CONTEXT,
                severity_level="info",
            )

        return await self._log_built(build, provenance)

    # ==========================================================================
    # Query Methods
    # ==========================================================================

    def _clamp_limit(self, limit: Optional[int]) -> int:
        """None means the default; anything above the maximum is capped."""
        if limit is None:
            return settings.AUDIT_RECENT_DEFAULT_LIMIT
        return min(limit, settings.AUDIT_RECENT_MAX_LIMIT)

    async def get_recent_activity(
        self,
        limit: Optional[int] = 50,
        *,
        action_type: Optional[str] = None,
        severity_level: Optional[str] = None,
    ) -> List[AuditLog]:
        """
        Most recent audit events, newest first.

        Ties on created_at are broken by id. A limit below 1 asks for
        nothing and returns an empty list, as does a failed read.
        """
        if limit is not None and limit < 1:
            return []

        conditions = []
        if action_type:
            conditions.append(AuditLog.action_type == action_type)
        if severity_level:
            conditions.append(AuditLog.severity_level == severity_level)

        query = select(AuditLog)
        if conditions:
            query = query.where(and_(*conditions))
        query = (
            query
            .order_by(desc(AuditLog.created_at), desc(AuditLog.id))
            .limit(self._clamp_limit(limit))
        )

        try:
            async with self.database.session() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Error fetching recent activity: {e}")
            return []

    async def get_entity_history(
        self,
        table_name: str,
        record_id: int,
        limit: int = 100,
    ) -> List[AuditLog]:
        """Audit history for one entity, newest first."""
        if limit is not None and limit < 1:
            return []

        query = (
            select(AuditLog)
            .where(
                and_(
                    AuditLog.table_name == table_name,
                    AuditLog.record_id == record_id,
                )
            )
            .order_by(desc(AuditLog.created_at), desc(AuditLog.id))
            .limit(self._clamp_limit(limit))
        )

        try:
            async with self.database.session() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Error fetching history for {table_name}/{record_id}: {e}")
            return []

    async def get_ownership_history(self, prospect_id: int) -> List[ProspectOwnershipLog]:
        """Ownership ledger of one prospect, newest first."""
        try:
            async with self.database.session() as session:
                return await get_ownership_history(session, prospect_id)
        except Exception as e:
            logger.error(f"Error fetching ownership history for prospect {prospect_id}: {e}")
            return []


def create_audit_logger(database: Database) -> AuditLogger:
    """Factory function for creating AuditLogger instances."""
    return AuditLogger(database)
