# db/models/team_member.py
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from hackhub.db.models._base import Base, enum_type
from hackhub.db.enums import MemberRole, MemberStatus
from hackhub.utils.clock import utcnow

class TeamMember(Base):
    __tablename__ = "team_member"
    __table_args__ = (
        # a user is active in at most one team per hackathon
        Index(
            "uq_team_member_active_per_hackathon",
            "hackathon_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("team.id", ondelete="CASCADE"), nullable=False, index=True)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("hackathon.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    role: Mapped[MemberRole] = mapped_column(enum_type(MemberRole, "member_role"), nullable=False, default=MemberRole.MEMBER)
    status: Mapped[MemberStatus] = mapped_column(enum_type(MemberStatus, "member_status"), nullable=False, default=MemberStatus.ACTIVE)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    checked_in: Mapped[bool] = mapped_column(nullable=False, default=False)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    checked_in_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    team = relationship("Team", back_populates="members")
