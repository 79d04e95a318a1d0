# db/schemas/join_request.py
import uuid
from datetime import datetime
from typing import Optional
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import JoinRequestStatus

class JoinRequestRead(OrmModel):
    id: uuid.UUID
    team_id: uuid.UUID
    hackathon_id: uuid.UUID
    user_id: uuid.UUID
    sender_id: uuid.UUID
    message: Optional[str] = None
    status: JoinRequestStatus
    created_at: datetime
    responded_at: Optional[datetime] = None

class TeamCandidate(OrmModel):
    user_id: uuid.UUID
    username: str
    full_name: str
    email: str
    institution: Optional[str] = None
    has_pending_request: bool = False
