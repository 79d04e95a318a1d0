# db/schemas/score.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import Field
from hackhub.db.schemas._base import OrmModel

class CriterionScore(OrmModel):
    criterion: str
    score: float
    max_score: float

class ScoreCreate(OrmModel):
    criteria_scores: list[CriterionScore]
    remarks: Optional[str] = None
    feedback: Optional[str] = None

class ScoreRead(OrmModel):
    id: uuid.UUID
    team_id: uuid.UUID
    round_id: uuid.UUID
    judge_id: uuid.UUID
    criteria_scores: list[CriterionScore] = Field(default_factory=list)
    total_score: float
    max_possible_score: float
    remarks: Optional[str] = None
    feedback: Optional[str] = None
    is_finalized: bool
    created_at: datetime
