# services/access.py
import logging
from uuid import UUID
from typing import ClassVar, Optional, Self

from hackhub.db.database import DataBase
from hackhub.db.enums import Permission, UserRole
from hackhub.db.schemas.coordinator import CoordinatorPermissions
from hackhub.db.schemas.hackathon import HackathonRead
from hackhub.db.schemas.round import RoundRead
from hackhub.db.schemas.team import TeamRead
from hackhub.db.schemas.user import UserRead
from hackhub.errors import Conflict, Forbidden, NotFound

logger = logging.getLogger(__name__)


class RoleGuard:
	"""
	Authorization predicates and the participant/staff exclusivity checks.

	A user who accepted a coordinator or judge role in a hackathon may not be
	an active team member there, and the other way round. Every operation
	that could break that (registration, join requests, role invitations and
	their acceptance) asks this guard first.
	"""

	_instance: ClassVar[Optional["RoleGuard"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._initialized = True

	# --------------------
	# Lookups
	# --------------------
	async def load_hackathon(self, hackathon_id: UUID) -> HackathonRead:
		hackathon = await self._database.get_hackathon(hackathon_id)
		if hackathon is None:
			raise NotFound("Hackathon not found", hackathon_id=str(hackathon_id))
		return hackathon

	async def load_team(self, team_id: UUID) -> TeamRead:
		team = await self._database.get_team(team_id)
		if team is None:
			raise NotFound("Team not found", team_id=str(team_id))
		return team

	async def load_round(self, round_id: UUID) -> RoundRead:
		rnd = await self._database.get_round(round_id)
		if rnd is None:
			raise NotFound("Round not found", round_id=str(round_id))
		return rnd

	async def load_user(self, user_id: UUID) -> UserRead:
		user = await self._database.get_user_by_id(user_id)
		if user is None:
			raise NotFound("User not found", user_id=str(user_id))
		return user

	# --------------------
	# Predicates
	# --------------------
	@staticmethod
	def is_organizer(actor: UserRead, hackathon: HackathonRead) -> bool:
		"""Owner of the hackathon, or a platform admin."""
		return actor.is_admin or hackathon.organizer_id == actor.id

	def require_organizer(self, actor: UserRead, hackathon: HackathonRead, action: str = "manage this hackathon") -> None:
		if not self.is_organizer(actor, hackathon):
			raise Forbidden(f"Not authorized to {action}", hackathon_id=str(hackathon.id))

	async def coordinator_permissions(self, actor: UserRead, hackathon: HackathonRead) -> Optional[CoordinatorPermissions]:
		entry = await self._database.get_hackathon_coordinator(hackathon.id, actor.id)
		return entry.permissions if entry is not None else None

	async def has_permission(self, actor: UserRead, hackathon: HackathonRead, permission: Permission) -> bool:
		if self.is_organizer(actor, hackathon):
			return True
		permissions = await self.coordinator_permissions(actor, hackathon)
		return permissions is not None and permissions.allows(permission)

	async def require_permission(self, actor: UserRead, hackathon: HackathonRead, permission: Permission) -> None:
		if not await self.has_permission(actor, hackathon, permission):
			logger.debug("User %s lacks %s in hackathon %s", actor.id, permission, hackathon.id)
			raise Forbidden(
				"You do not have permission to perform this action",
				permission=permission.value,
				hackathon_id=str(hackathon.id),
			)

	async def is_coordinator(self, actor: UserRead, hackathon: HackathonRead) -> bool:
		return await self._database.get_hackathon_coordinator(hackathon.id, actor.id) is not None

	async def require_organizer_or_coordinator(self, actor: UserRead, hackathon: HackathonRead, action: str) -> None:
		if self.is_organizer(actor, hackathon) or await self.is_coordinator(actor, hackathon):
			return
		raise Forbidden(f"Not authorized to {action}", hackathon_id=str(hackathon.id))

	async def has_role(self, actor: UserRead, hackathon: HackathonRead, role: UserRole) -> bool:
		if role == UserRole.ORGANIZER:
			return hackathon.organizer_id == actor.id
		if role in (UserRole.COORDINATOR, UserRole.JUDGE):
			return role in await self._database.get_staff_roles(hackathon.id, actor.id)
		if role == UserRole.ADMIN:
			return actor.is_admin
		return await self._database.get_active_membership(hackathon.id, actor.id) is not None

	# --------------------
	# Exclusivity
	# --------------------
	async def ensure_can_participate(self, hackathon_id: UUID, user_id: UUID) -> None:
		"""Conflict when the user is an accepted coordinator or judge of the hackathon."""
		roles = await self._database.get_staff_roles(hackathon_id, user_id)
		if roles:
			role = UserRole.COORDINATOR if UserRole.COORDINATOR in roles else UserRole.JUDGE
			raise Conflict(
				f"User is a {role.value} of this hackathon and cannot join a team",
				user_id=str(user_id),
				role=role.value,
			)

	async def ensure_can_staff(self, hackathon_id: UUID, user_id: UUID, role: UserRole) -> None:
		"""Conflict when the user is an active team member of the hackathon."""
		membership = await self._database.get_active_membership(hackathon_id, user_id)
		if membership is not None:
			raise Conflict(
				f"User is participating in this hackathon and cannot be a {role.value}; they must leave their team first",
				user_id=str(user_id),
				team_id=str(membership.team_id),
			)
