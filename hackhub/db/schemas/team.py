# db/schemas/team.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import Field, computed_field
from hackhub.db.schemas._base import OrmModel
from hackhub.db.schemas.submission import SubmissionRead
from hackhub.db.schemas.score import ScoreRead
from hackhub.db.enums import (
    ApprovalSource, MemberRole, MemberStatus, PaymentStatus,
    RegistrationStatus, SubmissionStatus, TeamState,
)
from hackhub.utils.sentinels import Missing

class TeamMemberRead(OrmModel):
    id: uuid.UUID
    team_id: uuid.UUID
    hackathon_id: uuid.UUID
    user_id: uuid.UUID
    role: MemberRole
    status: MemberStatus
    joined_at: datetime
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    checked_in_by_id: Optional[uuid.UUID] = None

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

class TeamCreate(OrmModel):
    hackathon_id: uuid.UUID
    team_name: str
    member_ids: list[uuid.UUID] = Field(default_factory=list)
    project_title: Optional[str] = None
    project_description: Optional[str] = None
    tech_stack: list[str] = Field(default_factory=list)

class TeamUpdate(OrmModel):
    id: uuid.UUID
    team_name: str | Missing = Missing()
    project_title: str | Missing | None = Missing()
    project_description: str | Missing | None = Missing()
    tech_stack: list[str] | Missing = Missing()

class TeamRead(OrmModel):
    id: uuid.UUID
    hackathon_id: uuid.UUID
    team_name: str
    leader_id: uuid.UUID
    project_title: Optional[str] = None
    project_description: Optional[str] = None
    tech_stack: list[str] = Field(default_factory=list)

    state: TeamState
    rejection_reason: Optional[str] = None
    submitted_for_approval_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by_id: Optional[uuid.UUID] = None
    approval_source: Optional[ApprovalSource] = None

    auto_approval_checked: bool = False
    auto_approval_eligible: Optional[bool] = None
    auto_approval_reason: Optional[str] = None

    payment_status: PaymentStatus
    payment_amount: float = 0.0
    payment_currency: str = "INR"

    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    checked_in_by_id: Optional[uuid.UUID] = None
    all_members_checked_in: bool = False
    table_number: Optional[str] = None
    team_number: Optional[str] = None

    is_eliminated: bool = False
    eliminated_at: Optional[datetime] = None
    eliminated_in_round_id: Optional[uuid.UUID] = None
    eliminated_by_id: Optional[uuid.UUID] = None
    elimination_reason: Optional[str] = None

    overall_score: float = 0.0
    created_at: datetime

    members: list[TeamMemberRead] = Field(default_factory=list)
    submissions: list[SubmissionRead] = Field(default_factory=list)
    scores: list[ScoreRead] = Field(default_factory=list)

    @computed_field
    @property
    def registration_status(self) -> RegistrationStatus:
        return self.state.registration_status

    @computed_field
    @property
    def submission_status(self) -> SubmissionStatus:
        return self.state.submission_status

    @computed_field
    @property
    def active_member_count(self) -> int:
        return len(self.active_members)

    @property
    def active_members(self) -> list[TeamMemberRead]:
        return [m for m in self.members if m.is_active]

    def member(self, user_id: uuid.UUID) -> Optional[TeamMemberRead]:
        """Active membership of ``user_id`` in this team, if any."""
        for m in self.members:
            if m.user_id == user_id and m.is_active:
                return m
        return None

    def submission_for(self, round_id: uuid.UUID) -> Optional[SubmissionRead]:
        for s in self.submissions:
            if s.round_id == round_id:
                return s
        return None

class TeamRegistration(OrmModel):
    team: TeamRead
    meets_requirements: bool
    members_needed: int
    requires_payment: bool

class AutoApprovalOutcome(OrmModel):
    eligible: bool
    reason: str
    approved: bool = False

class BulkFailure(OrmModel):
    team_id: uuid.UUID | str
    reason: str

class BulkResult(OrmModel):
    succeeded: list[uuid.UUID] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)
