"""
Consolidated models package.

IMPORTANT: Explicit imports only - no wildcards to prevent circular imports.
"""

# Audit models
from gladgrade.models.audit import AuditLog, ProspectOwnershipLog

# Sales pipeline models
from gladgrade.models.prospect import ProspectStatus, Prospect


__all__ = [
    # Audit
    "AuditLog",
    "ProspectOwnershipLog",
    # Sales pipeline
    "ProspectStatus",
    "Prospect",
]
