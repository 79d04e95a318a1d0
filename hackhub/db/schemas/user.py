# db/schemas/user.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import UserRole
from hackhub.utils.sentinels import Missing

class UserBase(OrmModel):
    username: str
    email: EmailStr
    full_name: str = ""
    institution: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    roles: list[UserRole] = Field(default_factory=lambda: [UserRole.STUDENT])
    tg_id: Optional[int] = None
    preferred_language: Optional[str] = None

class UserCreate(UserBase): ...

class UserUpdate(OrmModel):
    id: uuid.UUID
    full_name: str | Missing = Missing()
    institution: str | Missing | None = Missing()
    phone: str | Missing | None = Missing()
    bio: str | Missing | None = Missing()
    avatar: str | Missing | None = Missing()
    skills: list[str] | Missing = Missing()
    roles: list[UserRole] | Missing = Missing()
    tg_id: int | Missing | None = Missing()
    preferred_language: str | Missing | None = Missing()

class UserRead(UserBase):
    id: uuid.UUID
    created_at: datetime

    def has_role(self, role: UserRole) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return UserRole.ADMIN in self.roles

    @property
    def email_domain(self) -> str:
        return self.email.rsplit("@", 1)[-1].lower()
