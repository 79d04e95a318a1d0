# db/schemas/submission.py
import uuid
from datetime import datetime
from typing import Any, Optional
from pydantic import Field
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import ProjectStatus

class FileDescriptor(OrmModel):
    name: str
    url: str
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None

class SubmissionBase(OrmModel):
    project_link: Optional[str] = None
    demo_link: Optional[str] = None
    video_link: Optional[str] = None
    presentation_link: Optional[str] = None
    github_repo: Optional[str] = None
    description: Optional[str] = None
    tech_stack: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)

class SubmissionCreate(SubmissionBase): ...

class SubmissionRead(SubmissionBase):
    id: uuid.UUID
    team_id: uuid.UUID
    round_id: uuid.UUID
    submitted_by_id: uuid.UUID
    submitted_at: datetime
    files: list[FileDescriptor] = Field(default_factory=list)
    status: ProjectStatus
