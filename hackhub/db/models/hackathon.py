# db/models/hackathon.py
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from hackhub.db.models._base import Base, JSONType, enum_type
from hackhub.db.enums import HackathonStatus, HackathonMode
from hackhub.utils.clock import utcnow

class Hackathon(Base):
    __tablename__ = "hackathon"
    __table_args__ = (
        CheckConstraint("current_registrations <= max_teams", name="ck_hackathon_registrations_within_limit"),
        CheckConstraint("min_members >= 1 AND min_members <= max_members", name="ck_hackathon_team_bounds"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(160), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    theme: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    organizer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[HackathonStatus] = mapped_column(enum_type(HackathonStatus, "hackathon_status"), nullable=False, default=HackathonStatus.DRAFT)
    mode: Mapped[HackathonMode] = mapped_column(enum_type(HackathonMode, "hackathon_mode"), nullable=False, default=HackathonMode.ONLINE)

    registration_start: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    registration_end: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    hackathon_start: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    hackathon_end: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    min_members: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_members: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    allow_solo_participation: Mapped[bool] = mapped_column(default=True)

    max_teams: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    current_registrations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    registration_fee: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    fee_currency: Mapped[str] = mapped_column(String(8), nullable=False, default="INR")

    settings: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
