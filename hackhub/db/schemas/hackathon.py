# db/schemas/hackathon.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import Field
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import HackathonMode, HackathonStatus
from hackhub.utils.sentinels import Missing

class LateRegistrationFee(OrmModel):
    enabled: bool = False
    amount: float = 0.0
    valid_until: Optional[datetime] = None

class AutoApprovalCriteria(OrmModel):
    min_team_size: Optional[int] = None
    max_team_size: Optional[int] = None
    required_institutions: list[str] = Field(default_factory=list)
    required_email_domains: list[str] = Field(default_factory=list)
    auto_approve_after_payment: bool = False

class HackathonSettings(OrmModel):
    allow_team_name_change: bool = True
    allow_team_member_change: bool = True
    allow_late_registration: bool = False
    enforce_registration_deadline: bool = True
    strict_deadline_enforcement: bool = False
    late_registration_fee: LateRegistrationFee = Field(default_factory=LateRegistrationFee)
    enable_check_in: bool = True
    enable_leaderboard: bool = True
    enable_auto_approval: bool = False
    auto_approval_criteria: AutoApprovalCriteria = Field(default_factory=AutoApprovalCriteria)
    # a rejected team may confirm again
    allow_resubmission_after_rejection: bool = True

class HackathonBase(OrmModel):
    title: str
    description: str = ""
    theme: Optional[str] = None
    mode: HackathonMode = HackathonMode.ONLINE
    status: HackathonStatus = HackathonStatus.DRAFT
    registration_start: datetime
    registration_end: datetime
    hackathon_start: datetime
    hackathon_end: datetime
    min_members: int = 1
    max_members: int = 4
    allow_solo_participation: bool = True
    max_teams: int = 100
    registration_fee: float = 0.0
    fee_currency: str = "INR"
    settings: HackathonSettings = Field(default_factory=HackathonSettings)

class HackathonCreate(HackathonBase):
    slug: Optional[str] = None

class HackathonUpdate(OrmModel):
    id: uuid.UUID
    title: str | Missing = Missing()
    description: str | Missing = Missing()
    theme: str | Missing | None = Missing()
    mode: HackathonMode | Missing = Missing()
    status: HackathonStatus | Missing = Missing()
    registration_start: datetime | Missing = Missing()
    registration_end: datetime | Missing = Missing()
    hackathon_start: datetime | Missing = Missing()
    hackathon_end: datetime | Missing = Missing()
    min_members: int | Missing = Missing()
    max_members: int | Missing = Missing()
    allow_solo_participation: bool | Missing = Missing()
    max_teams: int | Missing = Missing()
    registration_fee: float | Missing = Missing()
    fee_currency: str | Missing = Missing()
    settings: HackathonSettings | Missing = Missing()

class HackathonRead(HackathonBase):
    id: uuid.UUID
    slug: str
    organizer_id: uuid.UUID
    current_registrations: int = 0
    views: int = 0
    created_at: datetime

    def is_registration_open(self, now: datetime) -> bool:
        return (
            self.registration_start <= now <= self.registration_end
            and self.status == HackathonStatus.REGISTRATION_OPEN
            and self.current_registrations < self.max_teams
        )

    @property
    def is_full(self) -> bool:
        return self.current_registrations >= self.max_teams
