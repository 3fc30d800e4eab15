"""
FastAPI dependencies for audit attribution.

Authentication happens upstream: the authenticating gateway forwards the
signed-in employee in X-User-* headers, and these dependencies turn them
into an AuditActor.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from gladgrade.audit.schemas import AuditActor, RequestProvenance
from gladgrade.audit.services import AuditLogger, create_audit_logger
from gladgrade.database import Database, get_database


def get_audit_logger(database: Database = Depends(get_database)) -> AuditLogger:
    """Dependency returning an AuditLogger bound to the app's Database."""
    return create_audit_logger(database)


def get_request_provenance(request: Request) -> RequestProvenance:
    """Dependency returning the caller's IP address and user agent."""
    return RequestProvenance.from_request(request)


async def get_optional_actor(
    x_user_id: Optional[int] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Optional[AuditActor]:
    """
    Dependency to optionally get the acting user.

    Returns None when the gateway forwarded no user id.
    """
    if x_user_id is None:
        return None
    return AuditActor(
        user_id=x_user_id,
        user_email=x_user_email,
        user_name=x_user_name,
        user_role=x_user_role,
    )


async def get_current_actor(
    actor: Optional[AuditActor] = Depends(get_optional_actor),
) -> AuditActor:
    """
    Dependency to get the acting user.

    Raises 401 if the request carries no user.
    """
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return actor
