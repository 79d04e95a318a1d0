# services/invitation.py
import logging
import secrets
from uuid import UUID
from typing import ClassVar, List, Optional, Self

from hackhub.db.database import DataBase
from hackhub.db.enums import NotificationKind, UserRole
from hackhub.db.schemas.coordinator import (
	CoordinatorInvitationRead,
	CoordinatorPermissions,
	CoordinatorPermissionsUpdate,
	HackathonCoordinatorRead,
)
from hackhub.db.schemas.hackathon import HackathonRead
from hackhub.db.schemas.judge import HackathonJudgeRead, JudgeInvitationRead
from hackhub.db.schemas.stats import StaffCandidate
from hackhub.db.schemas.user import UserRead
from hackhub.errors import BadRequest
from hackhub.services.access import RoleGuard
from hackhub.services.audit_log import instrument_service_class
from hackhub.services.notifications import NotificationService
from hackhub.services.user import UserService
from hackhub.utils.sentinels import provided

logger = logging.getLogger(__name__)

MIN_SEARCH_QUERY = 2


def new_invitation_token() -> str:
	return secrets.token_hex(32)


class InvitationService:
	"""
	Coordinator and judge invitations.

	Both roles follow the same shape: the organizer invites, the invitee
	accepts, the organizer may resend, cancel (pending only) or remove.
	Coordinators additionally carry a permission set and an invitation token.
	"""

	_instance: ClassVar[Optional["InvitationService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._guard = RoleGuard()
		self._notifier = NotificationService()
		self._users = UserService()
		self._initialized = True

	async def _resolve_target(self, target: UUID | str) -> UserRead:
		return await self._users.resolve_user(target)

	async def _organizer_hackathon(self, actor: UserRead, hackathon_id: UUID, action: str) -> HackathonRead:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		self._guard.require_organizer(actor, hackathon, action)
		return hackathon

	@staticmethod
	def _display_name(user: UserRead) -> str:
		return user.full_name or user.username

	# --------------------
	# Coordinators
	# --------------------
	async def invite_coordinator(
		self,
		actor: UserRead,
		hackathon_id: UUID,
		target: UUID | str,
		permissions: Optional[CoordinatorPermissions] = None,
	) -> CoordinatorInvitationRead:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "invite coordinators")
		user = await self._resolve_target(target)
		await self._guard.ensure_can_staff(hackathon.id, user.id, UserRole.COORDINATOR)

		invitation = await self._database.create_coordinator_invitation(
			hackathon_id=hackathon.id,
			user_id=user.id,
			permissions=permissions or CoordinatorPermissions(),
			invited_by_id=actor.id,
			token=new_invitation_token(),
		)
		self._notifier.enqueue(
			NotificationKind.COORDINATOR_INVITATION,
			user,
			hackathon_title=hackathon.title,
			inviter_name=self._display_name(actor),
			token=invitation.invitation_token,
		)
		logger.info("Coordinator invitation for user %s in hackathon %s", user.id, hackathon.id)
		return invitation

	async def accept_coordinator_invitation(self, actor: UserRead, hackathon_id: UUID) -> CoordinatorInvitationRead:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		await self._guard.ensure_can_staff(hackathon.id, actor.id, UserRole.COORDINATOR)
		return await self._database.accept_coordinator_invitation(hackathon.id, actor.id)

	async def resend_coordinator_invite(self, actor: UserRead, hackathon_id: UUID, user_id: UUID) -> CoordinatorInvitationRead:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "resend coordinator invitations")
		user = await self._guard.load_user(user_id)
		invitation = await self._database.refresh_coordinator_invitation(
			hackathon.id, user.id, token=new_invitation_token()
		)
		self._notifier.enqueue(
			NotificationKind.COORDINATOR_INVITATION,
			user,
			hackathon_title=hackathon.title,
			inviter_name=self._display_name(actor),
			token=invitation.invitation_token,
		)
		return invitation

	async def cancel_coordinator_invite(self, actor: UserRead, hackathon_id: UUID, user_id: UUID) -> None:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "cancel coordinator invitations")
		await self._database.delete_pending_coordinator_invitation(hackathon.id, user_id)

	async def remove_coordinator(self, actor: UserRead, hackathon_id: UUID, user_id: UUID) -> None:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "remove coordinators")
		await self._database.remove_coordinator(hackathon.id, user_id)
		logger.info("Coordinator %s removed from hackathon %s", user_id, hackathon.id)

	async def update_coordinator_permissions(
		self,
		actor: UserRead,
		hackathon_id: UUID,
		user_id: UUID,
		changes: CoordinatorPermissionsUpdate,
	) -> HackathonCoordinatorRead:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "change coordinator permissions")
		supplied = {
			name: value
			for name, value in ((name, getattr(changes, name)) for name in CoordinatorPermissionsUpdate.model_fields)
			if provided(value)
		}
		return await self._database.update_coordinator_permissions(hackathon.id, user_id, supplied)

	async def list_coordinators(self, actor: UserRead, hackathon_id: UUID) -> List[CoordinatorInvitationRead]:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "view coordinators")
		return await self._database.list_coordinator_invitations(hackathon.id)

	async def search_staff_candidates(self, actor: UserRead, hackathon_id: UUID, query: str) -> List[StaffCandidate]:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "search users")
		query = (query or "").strip()
		if len(query) < MIN_SEARCH_QUERY:
			raise BadRequest(f"Search query must be at least {MIN_SEARCH_QUERY} characters", query=query)
		return await self._database.search_staff_candidates(hackathon.id, query)

	# --------------------
	# Judges
	# --------------------
	async def invite_judge(
		self,
		actor: UserRead,
		hackathon_id: UUID,
		target: UUID | str,
		assigned_rounds: Optional[List[UUID]] = None,
	) -> JudgeInvitationRead:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "invite judges")
		user = await self._resolve_target(target)
		await self._guard.ensure_can_staff(hackathon.id, user.id, UserRole.JUDGE)

		invitation = await self._database.create_judge_invitation(
			hackathon_id=hackathon.id,
			user_id=user.id,
			invited_by_id=actor.id,
			assigned_rounds=[str(r) for r in assigned_rounds or []],
		)
		self._notifier.enqueue(
			NotificationKind.JUDGE_INVITATION,
			user,
			hackathon_title=hackathon.title,
			inviter_name=self._display_name(actor),
		)
		logger.info("Judge invitation for user %s in hackathon %s", user.id, hackathon.id)
		return invitation

	async def accept_judge_invitation(self, actor: UserRead, hackathon_id: UUID) -> JudgeInvitationRead:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		await self._guard.ensure_can_staff(hackathon.id, actor.id, UserRole.JUDGE)
		return await self._database.accept_judge_invitation(hackathon.id, actor.id)

	async def resend_judge_invite(self, actor: UserRead, hackathon_id: UUID, user_id: UUID) -> JudgeInvitationRead:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "resend judge invitations")
		user = await self._guard.load_user(user_id)
		invitation = await self._database.refresh_judge_invitation(hackathon.id, user.id)
		self._notifier.enqueue(
			NotificationKind.JUDGE_INVITATION,
			user,
			hackathon_title=hackathon.title,
			inviter_name=self._display_name(actor),
		)
		return invitation

	async def cancel_judge_invite(self, actor: UserRead, hackathon_id: UUID, user_id: UUID) -> None:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "cancel judge invitations")
		await self._database.delete_pending_judge_invitation(hackathon.id, user_id)

	async def remove_judge(self, actor: UserRead, hackathon_id: UUID, user_id: UUID) -> None:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "remove judges")
		await self._database.remove_judge(hackathon.id, user_id)
		logger.info("Judge %s removed from hackathon %s", user_id, hackathon.id)

	async def list_judge_invitations(self, actor: UserRead, hackathon_id: UUID) -> List[JudgeInvitationRead]:
		hackathon = await self._organizer_hackathon(actor, hackathon_id, "view judges")
		return await self._database.list_judge_invitations(hackathon.id)

	async def list_judges(self, hackathon_id: UUID) -> List[HackathonJudgeRead]:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		return await self._database.list_hackathon_judges(hackathon.id)


instrument_service_class(
	InvitationService,
	prefix="services.invitation",
	exclude={"list_coordinators", "search_staff_candidates", "list_judge_invitations", "list_judges"},
)
