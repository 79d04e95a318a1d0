# db/models/coordinator.py
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from hackhub.db.models._base import Base, JSONType, enum_type
from hackhub.db.enums import InvitationStatus
from hackhub.utils.clock import utcnow

class CoordinatorInvitation(Base):
    """The user's side of a coordinator role (``coordinatorFor``)."""
    __tablename__ = "coordinator_invitation"
    __table_args__ = (
        UniqueConstraint("user_id", "hackathon_id", name="uq_coordinator_invitation_user_hackathon"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("hackathon.id", ondelete="CASCADE"), nullable=False, index=True)
    permissions: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    invited_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    invited_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    status: Mapped[InvitationStatus] = mapped_column(enum_type(InvitationStatus, "invitation_status"), nullable=False, default=InvitationStatus.PENDING)
    invitation_token: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, unique=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)


class HackathonCoordinator(Base):
    """The hackathon's side of a coordinator role; authorization reads this table."""
    __tablename__ = "hackathon_coordinator"
    __table_args__ = (
        UniqueConstraint("hackathon_id", "user_id", name="uq_hackathon_coordinator"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("hackathon.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    permissions: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
