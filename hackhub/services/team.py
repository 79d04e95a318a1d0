# services/team.py
import logging
from uuid import UUID
from datetime import datetime
from typing import ClassVar, Iterable, List, Optional, Self

from hackhub.db.database import DataBase, check_team_size
from hackhub.db.enums import (
	MemberStatus,
	NotificationKind,
	PaymentStatus,
	Permission,
	RegistrationStatus,
	TeamState,
)
from hackhub.db.schemas.hackathon import HackathonRead
from hackhub.db.schemas.team import (
	AutoApprovalOutcome,
	BulkFailure,
	BulkResult,
	TeamCreate,
	TeamRead,
	TeamRegistration,
	TeamUpdate,
)
from hackhub.db.schemas.team_note import TeamNoteCreate, TeamNoteRead
from hackhub.db.schemas.user import UserRead
from hackhub.errors import BadRequest, Conflict, Forbidden, HackhubError, NotFound, ValidationError
from hackhub.services.access import RoleGuard
from hackhub.services.audit_log import instrument_service_class
from hackhub.services.notifications import NotificationService
from hackhub.utils.clock import utcnow
from hackhub.utils.sentinels import provided

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "No reason provided"


def evaluate_auto_approval(hackathon: HackathonRead, team: TeamRead, leader: Optional[UserRead]) -> AutoApprovalOutcome:
	"""
	Check the team against the hackathon's auto-approval criteria.

	Clauses run in order (size bounds, leader institution, leader email
	domain, payment) and the first failing one gives the reason.
	"""
	criteria = hackathon.settings.auto_approval_criteria
	active = team.active_member_count

	if criteria.min_team_size and active < criteria.min_team_size:
		return AutoApprovalOutcome(eligible=False, reason=f"Team size below minimum ({criteria.min_team_size})")
	if criteria.max_team_size and active > criteria.max_team_size:
		return AutoApprovalOutcome(eligible=False, reason=f"Team size exceeds maximum ({criteria.max_team_size})")

	if criteria.required_institutions:
		if leader is None or leader.institution not in criteria.required_institutions:
			return AutoApprovalOutcome(eligible=False, reason="Leader institution not in approved list")

	if criteria.required_email_domains:
		domains = {d.lower() for d in criteria.required_email_domains}
		if leader is None or leader.email_domain not in domains:
			return AutoApprovalOutcome(eligible=False, reason="Leader email domain not in approved list")

	if criteria.auto_approve_after_payment and team.payment_status != PaymentStatus.COMPLETED:
		return AutoApprovalOutcome(eligible=False, reason="Payment not completed")

	return AutoApprovalOutcome(eligible=True, reason="Meets all criteria")


class TeamService:
	"""Team registration, the approval lifecycle, membership and on-site operations."""

	_instance: ClassVar[Optional["TeamService"]] = None

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
		self._initialized = True

	async def _team_and_hackathon(self, team_id: UUID) -> tuple[TeamRead, HackathonRead]:
		team = await self._guard.load_team(team_id)
		hackathon = await self._guard.load_hackathon(team.hackathon_id)
		return team, hackathon

	@staticmethod
	def _require_leader(actor: UserRead, team: TeamRead, action: str) -> None:
		if team.leader_id != actor.id:
			raise Forbidden(f"Only the team leader can {action}", team_id=str(team.id))

	async def _notify_leader(self, kind: NotificationKind, team: TeamRead, hackathon: HackathonRead, **context) -> None:
		leader = await self._database.get_user_by_id(team.leader_id)
		self._notifier.enqueue(
			kind,
			leader,
			team_name=team.team_name,
			hackathon_title=hackathon.title,
			**context,
		)

	# --------------------
	# Registration
	# --------------------
	async def register_team(self, actor: UserRead, payload: TeamCreate) -> TeamRegistration:
		hackathon = await self._guard.load_hackathon(payload.hackathon_id)

		if not hackathon.is_registration_open(utcnow()):
			if hackathon.is_full:
				raise Forbidden("Maximum team limit reached for this hackathon", hackathon_id=str(hackathon.id))
			raise Forbidden("Registration is not open for this hackathon", hackathon_id=str(hackathon.id))

		team_name = payload.team_name.strip()
		if not team_name:
			raise ValidationError("Team name is required")

		if await self._database.get_active_membership(hackathon.id, actor.id) is not None:
			raise Conflict("You already have an active team in this hackathon", user_id=str(actor.id))
		await self._guard.ensure_can_participate(hackathon.id, actor.id)

		member_ids = [m for m in dict.fromkeys(payload.member_ids) if m != actor.id]
		for member_id in member_ids:
			await self._guard.load_user(member_id)
			if await self._database.get_active_membership(hackathon.id, member_id) is not None:
				raise Conflict("A proposed member already has an active team in this hackathon", user_id=str(member_id))
			await self._guard.ensure_can_participate(hackathon.id, member_id)

		fee = float(hackathon.registration_fee or 0)
		team = await self._database.create_team(
			hackathon_id=hackathon.id,
			leader_id=actor.id,
			team_name=team_name,
			member_ids=member_ids,
			project_title=payload.project_title,
			project_description=payload.project_description,
			tech_stack=payload.tech_stack,
			payment_status=PaymentStatus.COMPLETED if fee == 0 else PaymentStatus.PENDING,
			payment_amount=fee,
			payment_currency=hackathon.fee_currency,
		)
		logger.info("Team %s registered for hackathon %s by %s", team.id, hackathon.id, actor.id)

		# size is only enforced on confirmation
		active = team.active_member_count
		members_needed = max(0, hackathon.min_members - active)
		return TeamRegistration(
			team=team,
			meets_requirements=hackathon.min_members <= active <= hackathon.max_members,
			members_needed=members_needed,
			requires_payment=fee > 0,
		)

	async def confirm_team(self, actor: UserRead, team_id: UUID, now: Optional[datetime] = None) -> TeamRead:
		"""
		Submit the team for organizer approval.

		Order of checks: leader, lifecycle state, team size, registration
		deadline. Auto-approval runs in the same transaction when enabled.
		"""
		team, hackathon = await self._team_and_hackathon(team_id)
		self._require_leader(actor, team, "confirm the team")
		settings = hackathon.settings
		now = now or utcnow()

		allowed = {TeamState.DRAFT}
		if settings.allow_resubmission_after_rejection:
			allowed.add(TeamState.REJECTED)
		if team.state not in allowed:
			raise Conflict(
				"Team cannot be confirmed in its current state",
				team_id=str(team.id),
				state=team.state.value,
			)

		check_team_size(team.active_member_count, hackathon.min_members, hackathon.max_members)

		late_fee: Optional[float] = None
		late_note: Optional[str] = None
		if settings.enforce_registration_deadline and now > hackathon.registration_end:
			if not settings.allow_late_registration:
				raise Forbidden("Registration deadline has passed", registration_end=hackathon.registration_end.isoformat())
			if settings.strict_deadline_enforcement:
				raise Forbidden(
					"Registration deadline has passed and is strictly enforced",
					registration_end=hackathon.registration_end.isoformat(),
				)
			fee = settings.late_registration_fee
			if fee.enabled:
				if fee.valid_until is not None and now > fee.valid_until:
					raise Forbidden("Late registration period has ended", valid_until=fee.valid_until.isoformat())
				late_fee = fee.amount
				late_note = f"Late registration fee of {fee.amount} {hackathon.fee_currency} applied at {now.isoformat()}"

		outcome = None
		if settings.enable_auto_approval:
			leader = await self._database.get_user_by_id(team.leader_id)
			outcome = evaluate_auto_approval(hackathon, team, leader)

		confirmed = await self._database.confirm_team(
			team.id,
			allowed_states=allowed,
			min_members=hackathon.min_members,
			max_members=hackathon.max_members,
			late_fee=late_fee,
			late_note=late_note,
			auto_approval=outcome,
			organizer_id=hackathon.organizer_id,
		)
		logger.info("Team %s submitted for approval (state=%s)", confirmed.id, confirmed.state)

		if confirmed.state == TeamState.APPROVED:
			await self._notify_leader(NotificationKind.TEAM_APPROVED, confirmed, hackathon)
		return confirmed

	async def check_auto_approval(self, actor: UserRead, team_id: UUID) -> AutoApprovalOutcome:
		"""On-demand auto-approval; approves the team when eligible and submitted."""
		team, hackathon = await self._team_and_hackathon(team_id)
		if team.leader_id != actor.id and not self._guard.is_organizer(actor, hackathon):
			raise Forbidden("Not authorized to check auto-approval for this team", team_id=str(team.id))
		if not hackathon.settings.enable_auto_approval:
			raise BadRequest("Auto-approval is not enabled for this hackathon", hackathon_id=str(hackathon.id))

		leader = await self._database.get_user_by_id(team.leader_id)
		outcome = evaluate_auto_approval(hackathon, team, leader)
		updated = await self._database.record_auto_approval(team.id, outcome, organizer_id=hackathon.organizer_id)

		approved = updated.state == TeamState.APPROVED and team.state != TeamState.APPROVED
		if approved:
			await self._notify_leader(NotificationKind.TEAM_APPROVED, updated, hackathon)
		return outcome.model_copy(update={"approved": approved})

	# --------------------
	# Approval
	# --------------------
	async def approve_team(self, actor: UserRead, team_id: UUID) -> TeamRead:
		team, hackathon = await self._team_and_hackathon(team_id)
		self._guard.require_organizer(actor, hackathon, "approve teams")

		approved = await self._database.approve_team(team.id, approver_id=actor.id)
		await self._notify_leader(NotificationKind.TEAM_APPROVED, approved, hackathon)
		return approved

	async def reject_team(self, actor: UserRead, team_id: UUID, reason: Optional[str] = None) -> TeamRead:
		team, hackathon = await self._team_and_hackathon(team_id)
		self._guard.require_organizer(actor, hackathon, "reject teams")

		reason = (reason or "").strip()
		rejected = await self._database.reject_team(
			team.id,
			reason=reason or DEFAULT_REJECTION_REASON,
			actor_id=actor.id,
			add_public_note=bool(reason),
		)
		await self._notify_leader(NotificationKind.TEAM_REJECTED, rejected, hackathon, reason=rejected.rejection_reason)
		return rejected

	@staticmethod
	def _bulk_ids(team_ids) -> list:
		if not isinstance(team_ids, (list, tuple)) or not team_ids:
			raise BadRequest("team_ids must be a non-empty list")
		return list(team_ids)

	async def bulk_approve_teams(self, actor: UserRead, hackathon_id: UUID, team_ids: Iterable[UUID]) -> BulkResult:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		await self._guard.require_organizer_or_coordinator(actor, hackathon, "approve teams")
		ids = self._bulk_ids(team_ids)

		result = BulkResult()
		for raw_id in ids:
			try:
				approved = await self._database.approve_team(
					_as_uuid(raw_id),
					approver_id=actor.id,
					hackathon_id=hackathon.id,
					require_submitted=True,
				)
			except HackhubError as exc:
				result.failed.append(BulkFailure(team_id=raw_id, reason=exc.message))
				continue
			result.succeeded.append(approved.id)
			await self._notify_leader(NotificationKind.TEAM_APPROVED, approved, hackathon)

		logger.info(
			"Bulk approval in hackathon %s: %d approved, %d failed",
			hackathon.id, len(result.succeeded), len(result.failed),
		)
		return result

	async def bulk_reject_teams(
		self,
		actor: UserRead,
		hackathon_id: UUID,
		team_ids: Iterable[UUID],
		reason: Optional[str],
	) -> BulkResult:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		await self._guard.require_organizer_or_coordinator(actor, hackathon, "reject teams")
		ids = self._bulk_ids(team_ids)
		reason = (reason or "").strip()
		if not reason:
			raise ValidationError("A rejection reason is required")

		result = BulkResult()
		for raw_id in ids:
			try:
				rejected = await self._database.reject_team(
					_as_uuid(raw_id),
					reason=reason,
					actor_id=actor.id,
					add_public_note=True,
					hackathon_id=hackathon.id,
					require_submitted=True,
				)
			except HackhubError as exc:
				result.failed.append(BulkFailure(team_id=raw_id, reason=exc.message))
				continue
			result.succeeded.append(rejected.id)
			await self._notify_leader(NotificationKind.TEAM_REJECTED, rejected, hackathon, reason=reason)

		logger.info(
			"Bulk rejection in hackathon %s: %d rejected, %d failed",
			hackathon.id, len(result.succeeded), len(result.failed),
		)
		return result

	# --------------------
	# Membership
	# --------------------
	async def leave_team(self, actor: UserRead, team_id: UUID) -> TeamRead:
		team = await self._guard.load_team(team_id)
		if team.leader_id == actor.id:
			raise Forbidden("The team leader cannot leave the team; transfer leadership first")
		return await self._database.set_member_status(team.id, actor.id, MemberStatus.LEFT)

	async def remove_member(self, actor: UserRead, team_id: UUID, user_id: UUID) -> TeamRead:
		team = await self._guard.load_team(team_id)
		self._require_leader(actor, team, "remove members")
		if user_id == team.leader_id:
			raise Forbidden("The team leader cannot be removed")
		return await self._database.set_member_status(team.id, user_id, MemberStatus.REMOVED)

	async def update_team(self, actor: UserRead, payload: TeamUpdate) -> TeamRead:
		team, hackathon = await self._team_and_hackathon(payload.id)
		self._require_leader(actor, team, "update the team")

		if provided(payload.team_name):
			name = payload.team_name.strip()
			if not name:
				raise ValidationError("Team name is required")
			if name != team.team_name and not hackathon.settings.allow_team_name_change:
				raise Forbidden("Team name changes are not allowed for this hackathon")
			payload = payload.model_copy(update={"team_name": name})

		return await self._database.update_team(payload)

	async def get_team(self, team_id: UUID) -> TeamRead:
		return await self._guard.load_team(team_id)

	async def get_user_team(self, hackathon_id: UUID, user_id: UUID) -> Optional[TeamRead]:
		return await self._database.get_user_team(hackathon_id, user_id)

	async def list_teams(
		self,
		hackathon_id: UUID,
		registration_status: Optional[RegistrationStatus] = None,
		eliminated: Optional[bool] = None,
	) -> List[TeamRead]:
		states = TeamState.with_registration_status(registration_status) if registration_status else None
		return await self._database.list_teams(hackathon_id, states=states, eliminated=eliminated)

	async def list_submitted_teams(self, actor: UserRead, hackathon_id: UUID) -> List[TeamRead]:
		"""Approval queue: submitted, approved and rejected teams, latest submission first."""
		hackathon = await self._guard.load_hackathon(hackathon_id)
		await self._guard.require_organizer_or_coordinator(actor, hackathon, "view submitted teams")
		return await self._database.list_submitted_teams(hackathon.id)

	async def list_my_teams(self, actor: UserRead) -> List[TeamRead]:
		return await self._database.list_teams_for_user(actor.id)

	# --------------------
	# On-site operations
	# --------------------
	async def check_in_team(self, actor: UserRead, team_id: UUID) -> TeamRead:
		team, hackathon = await self._team_and_hackathon(team_id)
		await self._guard.require_permission(actor, hackathon, Permission.CHECK_IN)
		return await self._database.check_in_team(team.id, actor_id=actor.id)

	async def check_in_member(self, actor: UserRead, team_id: UUID, user_id: UUID) -> TeamRead:
		team, hackathon = await self._team_and_hackathon(team_id)
		await self._guard.require_permission(actor, hackathon, Permission.CHECK_IN)
		return await self._database.check_in_member(team.id, user_id, actor_id=actor.id)

	async def assign_table(
		self,
		actor: UserRead,
		team_id: UUID,
		table_number: str,
		team_number: Optional[str] = None,
	) -> TeamRead:
		team, hackathon = await self._team_and_hackathon(team_id)
		await self._guard.require_permission(actor, hackathon, Permission.ASSIGN_TABLES)
		if not table_number or not str(table_number).strip():
			raise ValidationError("Table number is required")
		return await self._database.assign_table(team.id, table_number=str(table_number).strip(), team_number=team_number)

	async def eliminate_team(
		self,
		actor: UserRead,
		team_id: UUID,
		round_id: Optional[UUID] = None,
		reason: Optional[str] = None,
	) -> TeamRead:
		team, hackathon = await self._team_and_hackathon(team_id)
		await self._guard.require_permission(actor, hackathon, Permission.ELIMINATE_TEAMS)
		if round_id is not None:
			rnd = await self._guard.load_round(round_id)
			if rnd.hackathon_id != hackathon.id:
				raise NotFound("Round not found in this hackathon", round_id=str(round_id))

		eliminated = await self._database.eliminate_team(team.id, round_id=round_id, reason=reason, actor_id=actor.id)
		logger.info("Team %s eliminated by %s", team.id, actor.id)
		return eliminated

	# --------------------
	# Notes
	# --------------------
	async def add_note(self, actor: UserRead, team_id: UUID, payload: TeamNoteCreate) -> TeamNoteRead:
		team, hackathon = await self._team_and_hackathon(team_id)
		await self._guard.require_permission(actor, hackathon, Permission.COMMUNICATE)
		content = payload.content.strip()
		if not content:
			raise ValidationError("Note content is required")

		note = await self._database.add_team_note(
			team.id,
			author_id=actor.id,
			content=content,
			is_public=payload.is_public,
			is_organizer_note=self._guard.is_organizer(actor, hackathon),
		)
		if payload.notify:
			await self._notify_leader(NotificationKind.TEAM_NOTE, team, hackathon, content=content)
			note = await self._database.mark_note_notified(note.id)
		return note

	async def list_notes(self, actor: UserRead, team_id: UUID) -> List[TeamNoteRead]:
		team, hackathon = await self._team_and_hackathon(team_id)
		if await self._guard.has_permission(actor, hackathon, Permission.VIEW_TEAMS):
			return await self._database.list_team_notes(team.id)
		if team.member(actor.id) is not None:
			return await self._database.list_team_notes(team.id, public_only=True)
		raise Forbidden("Not authorized to view notes of this team", team_id=str(team.id))


def _as_uuid(value) -> UUID:
	if isinstance(value, UUID):
		return value
	try:
		return UUID(str(value))
	except ValueError:
		raise NotFound("Team not found or wrong hackathon", team_id=str(value)) from None


instrument_service_class(
	TeamService,
	prefix="services.team",
	exclude={"get_team", "get_user_team", "list_teams", "list_submitted_teams", "list_my_teams", "list_notes"},
)
