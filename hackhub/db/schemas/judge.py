# db/schemas/judge.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import Field
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import InvitationStatus

class JudgeInvitationRead(OrmModel):
    id: uuid.UUID
    user_id: uuid.UUID
    hackathon_id: uuid.UUID
    invited_by_id: Optional[uuid.UUID] = None
    invited_at: datetime
    status: InvitationStatus
    assigned_rounds: list[str] = Field(default_factory=list)
    accepted_at: Optional[datetime] = None

class HackathonJudgeRead(OrmModel):
    id: uuid.UUID
    hackathon_id: uuid.UUID
    user_id: uuid.UUID
    name: str
    bio: Optional[str] = None
    photo: Optional[str] = None
    expertise: list[str] = Field(default_factory=list)
    assigned_rounds: list[str] = Field(default_factory=list)
    added_at: datetime
