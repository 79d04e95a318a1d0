# db/models/user.py
import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from hackhub.db.models._base import Base, JSONType
from hackhub.utils.clock import utcnow

class User(Base):
    __tablename__ = "user"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    institution: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    skills: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    roles: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    tg_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    preferred_language: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
