# db/models/submission.py
import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from hackhub.db.models._base import Base, JSONType, enum_type
from hackhub.db.enums import ProjectStatus
from hackhub.utils.clock import utcnow

class Submission(Base):
    __tablename__ = "submission"
    __table_args__ = (
        UniqueConstraint("team_id", "round_id", name="uq_submission_team_round"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("team.id", ondelete="CASCADE"), nullable=False)
    round_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("round.id", ondelete="CASCADE"), nullable=False, index=True)
    submitted_by_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    project_link: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    demo_link: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    video_link: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    presentation_link: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    github_repo: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tech_stack: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    files: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    custom_fields: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    status: Mapped[ProjectStatus] = mapped_column(enum_type(ProjectStatus, "project_status"), nullable=False, default=ProjectStatus.SUBMITTED)

    team = relationship("Team", back_populates="submissions")
