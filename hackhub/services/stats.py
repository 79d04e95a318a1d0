# services/stats.py
import csv
import io
import logging
from uuid import UUID
from typing import ClassVar, List, Optional, Self

from hackhub.db.database import DataBase
from hackhub.db.enums import PaymentStatus, RegistrationStatus, TeamState
from hackhub.db.schemas.hackathon import HackathonRead
from hackhub.db.schemas.stats import (
	HackathonStats,
	LeaderboardRow,
	ParticipantRow,
	RoundSubmissionCount,
	TeamExportRow,
)
from hackhub.db.schemas.user import UserRead
from hackhub.errors import NotFound
from hackhub.services.access import RoleGuard

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
	("team_name", "Team Name"),
	("submission_status", "Submission Status"),
	("registration_status", "Registration Status"),
	("leader_name", "Leader Name"),
	("leader_email", "Leader Email"),
	("leader_institution", "Leader Institution"),
	("total_members", "Total Members"),
	("active_members", "Active Members"),
	("project_title", "Project Title"),
	("submitted_at", "Submitted At"),
	("approved_at", "Approved At"),
	("rejection_reason", "Rejection Reason"),
)


class StatsService:
	"""Read-only aggregates over a hackathon: dashboard stats, leaderboard and exports."""

	_instance: ClassVar[Optional["StatsService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._guard = RoleGuard()
		self._initialized = True

	async def _staff_hackathon(self, actor: UserRead, hackathon_id: UUID, action: str) -> HackathonRead:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		await self._guard.require_organizer_or_coordinator(actor, hackathon, action)
		return hackathon

	async def get_hackathon_stats(self, actor: UserRead, hackathon_id: UUID) -> HackathonStats:
		hackathon = await self._staff_hackathon(actor, hackathon_id, "view hackathon statistics")
		teams = await self._database.list_teams(hackathon.id)
		rounds = await self._database.list_rounds(hackathon.id)
		per_round = await self._database.count_submissions_by_round(hackathon.id)

		stats = HackathonStats(total_teams=len(teams), max_teams=hackathon.max_teams)
		for team in teams:
			status = team.registration_status
			if status == RegistrationStatus.PENDING:
				stats.pending_teams += 1
			elif status == RegistrationStatus.APPROVED:
				stats.approved_teams += 1
				if not team.is_eliminated:
					stats.active_teams += 1
			else:
				stats.rejected_teams += 1

			if team.checked_in:
				stats.checked_in_teams += 1
			if team.is_eliminated:
				stats.eliminated_teams += 1
			if team.payment_status == PaymentStatus.COMPLETED:
				stats.revenue += float(team.payment_amount or 0)

			active = team.active_members
			stats.total_participants += len(active)
			stats.checked_in_members += sum(1 for m in active if m.checked_in)

		if hackathon.max_teams:
			stats.registration_fill_percentage = round(hackathon.current_registrations / hackathon.max_teams * 100, 2)

		current = next((r for r in rounds if r.current_round), None)
		if current is not None:
			stats.current_round_id = current.id
			stats.current_round_name = current.name

		stats.rounds = [
			RoundSubmissionCount(round_id=r.id, name=r.name, order=r.order, submissions=per_round.get(r.id, 0))
			for r in rounds
		]
		return stats

	async def get_leaderboard(
		self,
		actor: UserRead,
		hackathon_id: UUID,
		round_id: Optional[UUID] = None,
	) -> List[LeaderboardRow]:
		"""
		Approved, non-eliminated teams ranked by score, highest first.

		Without ``round_id`` the team's overall score is used; with it, the
		average finalized judge total for that round. Ties keep registration
		order.
		"""
		hackathon = await self._guard.load_hackathon(hackathon_id)
		if not hackathon.settings.enable_leaderboard:
			await self._guard.require_organizer_or_coordinator(actor, hackathon, "view the leaderboard")

		teams = await self._database.list_teams(
			hackathon.id,
			states=[TeamState.APPROVED],
			eliminated=False,
		)

		if round_id is not None:
			rnd = await self._guard.load_round(round_id)
			if rnd.hackathon_id != hackathon.id:
				raise NotFound("Round not found in this hackathon", round_id=str(round_id))
			averages = await self._database.round_score_averages(rnd.id)
			scored = [(team, *averages.get(team.id, (0.0, 0))) for team in teams]
		else:
			scored = [(team, team.overall_score, len(team.scores)) for team in teams]

		scored.sort(key=lambda item: item[1], reverse=True)
		return [
			LeaderboardRow(rank=pos + 1, team_id=team.id, team_name=team.team_name, score=score, judge_count=judges)
			for pos, (team, score, judges) in enumerate(scored)
		]

	async def get_participants(self, actor: UserRead, hackathon_id: UUID) -> List[ParticipantRow]:
		hackathon = await self._staff_hackathon(actor, hackathon_id, "view participants")
		return await self._database.list_participants(hackathon.id)

	async def export_teams(
		self,
		actor: UserRead,
		hackathon_id: UUID,
		status: Optional[RegistrationStatus] = None,
	) -> List[TeamExportRow]:
		hackathon = await self._staff_hackathon(actor, hackathon_id, "export teams")
		states = TeamState.with_registration_status(status) if status else None
		pairs = await self._database.list_teams_with_leaders(hackathon.id, states=states)

		return [
			TeamExportRow(
				team_name=team.team_name,
				submission_status=team.submission_status,
				registration_status=team.registration_status,
				leader_name=leader.full_name or leader.username,
				leader_email=leader.email,
				leader_institution=leader.institution,
				total_members=len(team.members),
				active_members=team.active_member_count,
				project_title=team.project_title,
				submitted_at=team.submitted_for_approval_at,
				approved_at=team.approved_at,
				rejection_reason=team.rejection_reason,
			)
			for team, leader in pairs
		]

	async def export_teams_csv(
		self,
		actor: UserRead,
		hackathon_id: UUID,
		status: Optional[RegistrationStatus] = None,
	) -> str:
		rows = await self.export_teams(actor, hackathon_id, status)

		output = io.StringIO()
		writer = csv.writer(output)
		writer.writerow([title for _field, title in EXPORT_COLUMNS])
		for row in rows:
			data = row.model_dump(mode="json")
			writer.writerow(["" if data[field] is None else data[field] for field, _title in EXPORT_COLUMNS])
		logger.info("Exported %d teams of hackathon %s", len(rows), hackathon_id)
		return output.getvalue()
