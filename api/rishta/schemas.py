from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: str
    password: str
    full_name: str = Field(min_length=1, max_length=120)
    gender: str


class LoginRequest(BaseModel):
    email: str
    password: str


class SendProposalRequest(BaseModel):
    receiver_id: str


class RespondProposalRequest(BaseModel):
    accept: bool


class SendProposalResponse(BaseModel):
    success: bool
    remaining: int
    proposal: dict[str, Any]


class ProposalStatusResponse(BaseModel):
    status: str
    sender_id: str | None = None
    is_sender: bool = False
    can_respond: bool = False


class ContactResponse(BaseModel):
    contact: dict[str, Any] | None


class PackageResponse(BaseModel):
    id: str
    name: str
    price_pkr: int
    proposals_count: int
    validity_days: int
    is_active: bool
    created_at: datetime
