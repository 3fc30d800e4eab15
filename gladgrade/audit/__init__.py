"""Audit trail system for tracking data changes."""
from gladgrade.audit.schemas import AuditAction, AuditActor, AuditEntry, RequestProvenance
from gladgrade.audit.services import AuditLogger, AuditWriteResult, OwnershipChangeOutcome

__all__ = [
    "AuditAction",
    "AuditActor",
    "AuditEntry",
    "RequestProvenance",
    "AuditLogger",
    "AuditWriteResult",
    "OwnershipChangeOutcome",
]
