"""Pydantic schemas for the audit trail."""
import enum
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import Request
from pydantic import BaseModel, Field, field_validator

from gladgrade.audit.snapshots import decode_snapshot


DEFAULT_BUSINESS_CONTEXT = "general"
DEFAULT_SEVERITY = "info"

SeverityLevel = Literal["info", "warning", "error", "critical"]


class AuditAction(str, enum.Enum):
    """Known action types. The column itself is open-ended."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ASSIGN = "ASSIGN"
    CONVERT = "CONVERT"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    STATUS_CHANGE = "STATUS_CHANGE"


class AuditActor(BaseModel):
    """The user an audited action is attributed to."""
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    user_role: Optional[str] = None


class RequestProvenance(BaseModel):
    """Where a request came from."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestProvenance":
        """
        Read provenance from request headers.

        The first x-forwarded-for hop wins, then x-real-ip, then the socket peer.
        """
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip_address = forwarded.split(",")[0].strip() or None
        else:
            ip_address = request.headers.get("x-real-ip")
        if not ip_address and request.client:
            ip_address = request.client.host

        return cls(ip_address=ip_address, user_agent=request.headers.get("user-agent"))


class AuditEntry(BaseModel):
    """
    One event to be written to audit_logs.

    action_type and action_description are mandatory and non-empty; every
    other field may be omitted. business_context and severity_level fall
    back to "general" and "info" when omitted, None or blank.
    """
    action_type: str = Field(..., max_length=50)
    action_description: str

    actor: Optional[AuditActor] = None

    table_name: Optional[str] = None
    record_id: Optional[int] = None

    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    changed_fields: Optional[List[str]] = None

    business_context: str = DEFAULT_BUSINESS_CONTEXT
    severity_level: SeverityLevel = DEFAULT_SEVERITY

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @field_validator("action_type", "action_description", mode="before")
    @classmethod
    def _require_text(cls, value: Any) -> Any:
        if isinstance(value, enum.Enum):
            value = value.value
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("must be a non-empty string")
        return value

    @field_validator("business_context", mode="before")
    @classmethod
    def _default_context(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_BUSINESS_CONTEXT
        return value

    @field_validator("severity_level", mode="before")
    @classmethod
    def _default_severity(cls, value: Any) -> Any:
        if value is None or value == "":
            return DEFAULT_SEVERITY
        return value

    def with_provenance(self, provenance: Optional[RequestProvenance]) -> "AuditEntry":
        """Copy of this entry with ip/user agent filled from provenance where unset."""
        if provenance is None:
            return self
        return self.model_copy(update={
            "ip_address": self.ip_address or provenance.ip_address,
            "user_agent": self.user_agent or provenance.user_agent,
        })


class AuditRecordResponse(BaseModel):
    """Schema for an audit_logs row."""
    id: int
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    action_type: str
    table_name: Optional[str] = None
    record_id: Optional[int] = None
    action_description: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    changed_fields: Optional[List[str]] = None
    business_context: str
    severity_level: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("old_values", "new_values", mode="before")
    @classmethod
    def _decode(cls, value: Any) -> Any:
        return decode_snapshot(value)


class OwnershipChangeResponse(BaseModel):
    """Schema for a prospect_ownership_logs row."""
    id: int
    prospect_id: int
    old_owner_id: Optional[int] = None
    new_owner_id: int
    changed_by_user_id: Optional[int] = None
    reason: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RecentActivityResponse(BaseModel):
    """Response for the recent activity feed."""
    data: List[AuditRecordResponse]
    total: int


class ProspectHistoryResponse(BaseModel):
    """Audit and ownership history of one prospect."""
    prospect_id: int
    audit_history: List[AuditRecordResponse]
    ownership_history: List[OwnershipChangeResponse]
