"""Pydantic schemas for prospect validation."""
from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Literal


ProspectStatusLiteral = Literal[
    "new", "contacted", "qualified", "proposal", "negotiation", "converted", "lost"
]


class ProspectCreate(BaseModel):
    """Schema for creating a prospect."""
    business_name: str = Field(..., min_length=1, max_length=255)
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    estimated_value: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None

    # Defaults to the creating employee
    assigned_salesperson_id: Optional[int] = None


class ProspectUpdate(BaseModel):
    """Schema for updating a prospect. Unset fields are left alone."""
    business_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    status: Optional[Literal["new", "contacted", "qualified", "proposal", "negotiation", "lost"]] = None
    estimated_value: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None

    assigned_salesperson_id: Optional[int] = None
    change_reason: Optional[str] = None  # Recorded with ownership changes


class ProspectConvert(BaseModel):
    """Schema for converting a prospect into a client."""
    client_id: int
    conversion_value: Decimal = Field(..., ge=0)


class ProspectResponse(BaseModel):
    """Schema for prospect response."""
    id: int
    business_name: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    status: ProspectStatusLiteral
    assigned_salesperson_id: Optional[int] = None
    created_by_user_id: Optional[int] = None
    estimated_value: Optional[Decimal] = None
    notes: Optional[str] = None
    converted_client_id: Optional[int] = None
    conversion_value: Optional[Decimal] = None
    converted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProspectMutationResponse(BaseModel):
    """Prospect plus a human-readable outcome message."""
    data: ProspectResponse
    message: str


class ProspectListResponse(BaseModel):
    """Prospects visible to the caller."""
    data: List[ProspectResponse]
    total: int
