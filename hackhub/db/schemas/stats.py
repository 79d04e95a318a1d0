# db/schemas/stats.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import Field
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import RegistrationStatus, SubmissionStatus

class RoundSubmissionCount(OrmModel):
    round_id: uuid.UUID
    name: str
    order: int
    submissions: int

class HackathonStats(OrmModel):
    total_teams: int = 0
    pending_teams: int = 0
    approved_teams: int = 0
    rejected_teams: int = 0
    checked_in_teams: int = 0
    checked_in_members: int = 0
    eliminated_teams: int = 0
    active_teams: int = 0
    total_participants: int = 0
    revenue: float = 0.0
    max_teams: int = 0
    registration_fill_percentage: float = 0.0
    current_round_id: Optional[uuid.UUID] = None
    current_round_name: Optional[str] = None
    rounds: list[RoundSubmissionCount] = Field(default_factory=list)

class LeaderboardRow(OrmModel):
    rank: int
    team_id: uuid.UUID
    team_name: str
    score: float
    judge_count: int = 0

class ParticipantRow(OrmModel):
    user_id: uuid.UUID
    full_name: str
    email: str
    institution: Optional[str] = None
    team_id: uuid.UUID
    team_name: str
    member_role: str
    checked_in: bool
    team_checked_in: bool
    table_number: Optional[str] = None

class TeamExportRow(OrmModel):
    team_name: str
    submission_status: SubmissionStatus
    registration_status: RegistrationStatus
    leader_name: str
    leader_email: str
    leader_institution: Optional[str] = None
    total_members: int
    active_members: int
    project_title: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

class StaffCandidate(OrmModel):
    user_id: uuid.UUID
    username: str
    full_name: str
    email: str
    is_participant: bool = False
    team_name: Optional[str] = None
    is_coordinator: bool = False
    is_pending_coordinator: bool = False
    is_judge: bool = False
