# db/models/team.py
import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy import DateTime, Float, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from hackhub.db.models._base import Base, JSONType, enum_type
from hackhub.db.enums import ApprovalSource, PaymentStatus, TeamState
from hackhub.utils.clock import utcnow

class Team(Base):
    __tablename__ = "team"
    __table_args__ = (
        UniqueConstraint("hackathon_id", "team_name", name="uq_team_name_per_hackathon"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("hackathon.id", ondelete="CASCADE"), nullable=False, index=True)
    team_name: Mapped[str] = mapped_column(String(256), nullable=False)
    leader_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    project_title: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    project_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tech_stack: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)

    state: Mapped[TeamState] = mapped_column(enum_type(TeamState, "team_state"), nullable=False, default=TeamState.DRAFT, index=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    submitted_for_approval_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    approval_source: Mapped[Optional[ApprovalSource]] = mapped_column(enum_type(ApprovalSource, "approval_source"), nullable=True)

    auto_approval_checked: Mapped[bool] = mapped_column(nullable=False, default=False)
    auto_approval_eligible: Mapped[Optional[bool]] = mapped_column(nullable=True)
    auto_approval_reason: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)

    payment_status: Mapped[PaymentStatus] = mapped_column(enum_type(PaymentStatus, "payment_status"), nullable=False, default=PaymentStatus.PENDING)
    payment_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    payment_currency: Mapped[str] = mapped_column(String(8), nullable=False, default="INR")

    checked_in: Mapped[bool] = mapped_column(nullable=False, default=False)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    checked_in_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    all_members_checked_in: Mapped[bool] = mapped_column(nullable=False, default=False)
    table_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    team_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    is_eliminated: Mapped[bool] = mapped_column(nullable=False, default=False)
    eliminated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    eliminated_in_round_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("round.id", ondelete="SET NULL"), nullable=True)
    eliminated_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    elimination_reason: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    overall_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    members: Mapped[List["TeamMember"]] = relationship(
        back_populates="team", lazy="selectin", cascade="all, delete-orphan", order_by="TeamMember.joined_at"
    )
    submissions: Mapped[List["Submission"]] = relationship(
        back_populates="team", lazy="selectin", cascade="all, delete-orphan", order_by="Submission.submitted_at"
    )
    scores: Mapped[List["Score"]] = relationship(
        back_populates="team", lazy="selectin", cascade="all, delete-orphan", order_by="Score.created_at"
    )
