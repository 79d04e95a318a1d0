# db/models/judge.py
import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from hackhub.db.models._base import Base, JSONType, enum_type
from hackhub.db.enums import InvitationStatus
from hackhub.utils.clock import utcnow

class JudgeInvitation(Base):
    __tablename__ = "judge_invitation"
    __table_args__ = (
        UniqueConstraint("user_id", "hackathon_id", name="uq_judge_invitation_user_hackathon"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("hackathon.id", ondelete="CASCADE"), nullable=False, index=True)
    invited_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    invited_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    status: Mapped[InvitationStatus] = mapped_column(enum_type(InvitationStatus, "invitation_status"), nullable=False, default=InvitationStatus.PENDING)
    assigned_rounds: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)


class HackathonJudge(Base):
    """Judge profile snapshot taken when the invitation was accepted."""
    __tablename__ = "hackathon_judge"
    __table_args__ = (
        UniqueConstraint("hackathon_id", "user_id", name="uq_hackathon_judge"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("hackathon.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photo: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    expertise: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    assigned_rounds: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
