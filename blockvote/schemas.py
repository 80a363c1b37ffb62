from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Optional, List
from datetime import datetime

from .database import to_naive_utc


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Voting


class VoteRequest(CamelModel):
    election_id: Optional[Any] = None
    candidate_id: Optional[Any] = None
    voter_address: Optional[str] = None
    vote_data: Optional[Any] = Field(
        default=None,
        validation_alias=AliasChoices("vote_data", "voteData", "votePayload", "vote_payload"),
    )
    signature: Optional[str] = None


class Receipt(CamelModel):
    transaction_id: int
    transaction_hash: str
    timestamp: datetime
    election_id: int
    verification_code: str


class VoteResponse(CamelModel):
    success: bool = True
    message: str = "Vote submitted successfully"
    transaction_hash: str
    receipt: Receipt


class CandidateResult(CamelModel):
    id: int
    name: str
    party: Optional[str] = None
    photo_url: Optional[str] = None
    vote_count: int
    percentage: Optional[float] = None


class ElectionResults(CamelModel):
    election_id: int
    total_votes: int
    candidates: List[CandidateResult]


# Administration


class LoginRequest(BaseModel):
    username: str
    password: str


class AdminOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    role: str
    full_name: Optional[str] = None
    department: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    admin: AdminOut


class _ElectionDates(BaseModel):
    @field_validator("start_date", "end_date", mode="after", check_fields=False)
    @classmethod
    def _naive_utc(cls, value):
        return to_naive_utc(value) if value is not None else value


class ElectionCreate(_ElectionDates):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: Optional[str] = None
    start_date: datetime
    end_date: datetime
    voting_method: Optional[str] = None
    privacy_level: Optional[str] = None
    requires_verification: bool = False


class ElectionUpdate(ElectionCreate):
    status: str


class ElectionPatch(_ElectionDates):
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ElectionCreated(BaseModel):
    message: str
    id: int
    blockchain_address: str


class CandidateCreate(BaseModel):
    name: str = Field(..., min_length=1)
    party: Optional[str] = None
    platform: Optional[str] = None
    biography: Optional[str] = None
    photo_url: Optional[str] = None
    contact_email: Optional[str] = None
    display_order: int = 0


class CandidateUpdate(BaseModel):
    name: Optional[str] = None
    party: Optional[str] = None
    platform: Optional[str] = None
    biography: Optional[str] = None
    photo_url: Optional[str] = None
    contact_email: Optional[str] = None
    display_order: Optional[int] = None


class CandidateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    election_id: int
    name: str
    party: Optional[str] = None
    platform: Optional[str] = None
    biography: Optional[str] = None
    photo_url: Optional[str] = None
    contact_email: Optional[str] = None
    display_order: int
    is_active: bool
    vote_count: Optional[int] = None


class ElectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    type: Optional[str] = None
    status: str
    start_date: datetime
    end_date: datetime
    voting_method: Optional[str] = None
    privacy_level: Optional[str] = None
    requires_verification: bool
    blockchain_address: Optional[str] = None
    created_at: Optional[datetime] = None
    candidate_count: Optional[int] = None
    vote_count: Optional[int] = None


class ElectionDetail(ElectionOut):
    candidates: List[CandidateOut] = []


class MessageResponse(BaseModel):
    message: str


# Ledger and audit views


class TransactionItem(BaseModel):
    transaction_hash: str
    timestamp: datetime
    status: str
    election_title: str
    candidate_name: str


class LedgerStats(BaseModel):
    total_transactions: int
    verified_votes: int
    active_elections: int
    orphaned_transactions: int


class AuditLogItem(BaseModel):
    id: int
    username: Optional[str]
    user_type: str
    action: str
    resource_type: str
    details: Optional[Any]
    timestamp: datetime


class AuditLogPage(BaseModel):
    items: List[AuditLogItem]
    page: int
    page_size: int
    total: int


class DashboardStats(BaseModel):
    total_elections: int
    active_elections: int
    total_candidates: int
    total_votes: int


class Dashboard(BaseModel):
    stats: DashboardStats
    recent_activity: List[AuditLogItem]
