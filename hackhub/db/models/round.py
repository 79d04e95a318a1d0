# db/models/round.py
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from hackhub.db.models._base import Base, JSONType, enum_type
from hackhub.db.enums import RoundMode, RoundStatus, RoundType

class Round(Base):
    __tablename__ = "round"
    __table_args__ = (
        # at most one current round per hackathon
        Index(
            "uq_round_current_per_hackathon",
            "hackathon_id",
            unique=True,
            postgresql_where=text("current_round IS TRUE"),
            sqlite_where=text("current_round = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("hackathon.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[RoundType] = mapped_column(enum_type(RoundType, "round_type"), nullable=False)
    mode: Mapped[RoundMode] = mapped_column(enum_type(RoundMode, "round_mode"), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    actual_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    actual_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    status: Mapped[RoundStatus] = mapped_column(enum_type(RoundStatus, "round_status"), nullable=False, default=RoundStatus.PENDING)
    current_round: Mapped[bool] = mapped_column(nullable=False, default=False)
    order: Mapped[int] = mapped_column("order", Integer, nullable=False)
    max_score: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_elimination_round: Mapped[bool] = mapped_column(nullable=False, default=False)
    elimination_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    location: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    meeting_link: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submission_config: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    judging_criteria: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
