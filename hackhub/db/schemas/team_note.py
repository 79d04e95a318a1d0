# db/schemas/team_note.py
import uuid
from datetime import datetime
from typing import Optional
from hackhub.db.schemas._base import OrmModel

class TeamNoteCreate(OrmModel):
    content: str
    is_public: bool = False
    notify: bool = False

class TeamNoteRead(OrmModel):
    id: uuid.UUID
    team_id: uuid.UUID
    author_id: Optional[uuid.UUID] = None
    content: str
    is_public: bool
    is_organizer_note: bool
    created_at: datetime
    notified_at: Optional[datetime] = None
