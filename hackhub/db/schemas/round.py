# db/schemas/round.py
import uuid
from datetime import datetime
from typing import Any, Optional
from pydantic import Field
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import RoundMode, RoundStatus, RoundType
from hackhub.utils.sentinels import Missing

class SubmissionConfig(OrmModel):
    allowed_file_types: list[str] = Field(default_factory=list)
    max_file_size: Optional[int] = None
    max_files: Optional[int] = None
    require_project_link: bool = False
    require_demo_link: bool = False
    require_video_link: bool = False
    require_github_repo: bool = False
    require_presentation_link: bool = False
    custom_fields: list[dict[str, Any]] = Field(default_factory=list)

class JudgingCriterion(OrmModel):
    name: str
    description: Optional[str] = None
    max_points: int = 10

class RoundFields(OrmModel):
    description: Optional[str] = None
    max_score: int = 100
    is_elimination_round: bool = False
    elimination_count: int = 0
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    instructions: Optional[str] = None
    submission_config: SubmissionConfig = Field(default_factory=SubmissionConfig)
    judging_criteria: list[JudgingCriterion] = Field(default_factory=list)

class RoundCreate(RoundFields):
    # required fields are checked by RoundService so the caller gets a domain error
    name: Optional[str] = None
    type: Optional[RoundType] = None
    mode: Optional[RoundMode] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

class RoundUpdate(OrmModel):
    id: uuid.UUID
    name: str | Missing = Missing()
    description: str | Missing | None = Missing()
    type: RoundType | Missing = Missing()
    mode: RoundMode | Missing = Missing()
    start_time: datetime | Missing = Missing()
    end_time: datetime | Missing = Missing()
    max_score: int | Missing = Missing()
    is_elimination_round: bool | Missing = Missing()
    elimination_count: int | Missing = Missing()
    location: str | Missing | None = Missing()
    meeting_link: str | Missing | None = Missing()
    instructions: str | Missing | None = Missing()
    submission_config: SubmissionConfig | Missing = Missing()
    judging_criteria: list[JudgingCriterion] | Missing = Missing()

class RoundRead(RoundFields):
    id: uuid.UUID
    hackathon_id: uuid.UUID
    name: str
    type: RoundType
    mode: RoundMode
    start_time: datetime
    end_time: datetime
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    status: RoundStatus
    current_round: bool
    order: int
