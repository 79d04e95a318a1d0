# db/schemas/coordinator.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import Field
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import InvitationStatus, Permission
from hackhub.utils.sentinels import Missing

class CoordinatorPermissions(OrmModel):
    can_view_teams: bool = True
    can_edit_teams: bool = False
    can_check_in: bool = True
    can_assign_tables: bool = False
    can_view_submissions: bool = True
    can_eliminate_teams: bool = False
    can_communicate: bool = True

    def allows(self, permission: Permission) -> bool:
        return bool(getattr(self, permission.value, False))

class CoordinatorPermissionsUpdate(OrmModel):
    can_view_teams: bool | Missing = Missing()
    can_edit_teams: bool | Missing = Missing()
    can_check_in: bool | Missing = Missing()
    can_assign_tables: bool | Missing = Missing()
    can_view_submissions: bool | Missing = Missing()
    can_eliminate_teams: bool | Missing = Missing()
    can_communicate: bool | Missing = Missing()

class CoordinatorInvitationRead(OrmModel):
    id: uuid.UUID
    user_id: uuid.UUID
    hackathon_id: uuid.UUID
    permissions: CoordinatorPermissions = Field(default_factory=CoordinatorPermissions)
    invited_by_id: Optional[uuid.UUID] = None
    invited_at: datetime
    status: InvitationStatus
    invitation_token: Optional[str] = None
    accepted_at: Optional[datetime] = None

class HackathonCoordinatorRead(OrmModel):
    id: uuid.UUID
    hackathon_id: uuid.UUID
    user_id: uuid.UUID
    permissions: CoordinatorPermissions = Field(default_factory=CoordinatorPermissions)
    added_at: datetime
