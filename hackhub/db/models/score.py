# db/models/score.py
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, Float, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from hackhub.db.models._base import Base, JSONType
from hackhub.utils.clock import utcnow

class Score(Base):
    __tablename__ = "score"
    __table_args__ = (
        UniqueConstraint("team_id", "round_id", "judge_id", name="uq_score_team_round_judge"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("team.id", ondelete="CASCADE"), nullable=False)
    round_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("round.id", ondelete="CASCADE"), nullable=False, index=True)
    judge_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    criteria_scores: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    total_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_possible_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_finalized: Mapped[bool] = mapped_column(nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    team = relationship("Team", back_populates="scores")
