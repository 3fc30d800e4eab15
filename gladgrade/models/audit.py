"""
Audit trail models.

Two append-only tables:
- audit_logs: the generic, cross-entity record of every audited change
- prospect_ownership_logs: the prospect-specific ledger of salesperson
  reassignments, queryable by prospect without scanning audit_logs

Rows in either table are never updated or deleted by the application.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Index, JSON, CheckConstraint
from sqlalchemy.sql import func

from gladgrade.database import Base


class AuditLog(Base):
    """
    Audit Log - one immutable event describing a state change.

    The actor columns are all null for system-initiated events, and the
    table_name/record_id pair is null for events not tied to an entity
    (e.g. LOGIN).
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Who did it?
    user_id = Column(Integer, nullable=True)
    user_email = Column(String, nullable=True)
    user_name = Column(String, nullable=True)
    user_role = Column(String, nullable=True)

    # What kind of change?
    action_type = Column(String(50), nullable=False, index=True)
    # Known values: CREATE, UPDATE, DELETE, ASSIGN, CONVERT, LOGIN, LOGOUT, STATUS_CHANGE

    # What changed?
    table_name = Column(String, nullable=True)
    record_id = Column(Integer, nullable=True)
    action_description = Column(Text, nullable=False)

    # JSON-encoded snapshots (see gladgrade.audit.snapshots)
    old_values = Column(Text, nullable=True)
    new_values = Column(Text, nullable=True)
    changed_fields = Column(JSON, nullable=True)

    # Request provenance
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)

    business_context = Column(String, nullable=False, default="general")
    # e.g. "sales_pipeline", "client_management"

    severity_level = Column(String(20), nullable=False, default="info", index=True)
    # Options: "info", "warning", "error", "critical"

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index("ix_audit_logs_entity", "table_name", "record_id"),
        Index("ix_audit_logs_user_time", "user_id", "created_at"),
        CheckConstraint(
            "severity_level IN ('info', 'warning', 'error', 'critical')",
            name="ck_audit_logs_severity_level",
        ),
        CheckConstraint("action_description <> ''", name="ck_audit_logs_description_not_empty"),
    )

    def __repr__(self):
        return (
            f"<AuditLog {self.id}: "
            f"{self.action_type} on {self.table_name}/{self.record_id} "
            f"at {self.created_at}>"
        )


class ProspectOwnershipLog(Base):
    """Prospect Ownership Log - one row per salesperson reassignment."""

    __tablename__ = "prospect_ownership_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    prospect_id = Column(Integer, nullable=False, index=True)

    # Null when the prospect had no owner before the change
    old_owner_id = Column(Integer, nullable=True)
    new_owner_id = Column(Integer, nullable=False)

    changed_by_user_id = Column(Integer, nullable=True)
    reason = Column(Text, nullable=False)

    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_prospect_ownership_logs_prospect_time", "prospect_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<ProspectOwnershipLog {self.id}: prospect {self.prospect_id} "
            f"{self.old_owner_id} -> {self.new_owner_id}>"
        )
