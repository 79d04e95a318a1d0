# services/submission.py
import logging
from uuid import UUID
from typing import ClassVar, Iterable, List, Optional, Self

from hackhub.db.database import DataBase
from hackhub.db.enums import Permission, UserRole
from hackhub.db.schemas.hackathon import HackathonRead
from hackhub.db.schemas.round import RoundRead
from hackhub.db.schemas.score import ScoreCreate
from hackhub.db.schemas.submission import FileDescriptor, SubmissionCreate, SubmissionRead
from hackhub.db.schemas.team import TeamRead
from hackhub.db.schemas.user import UserRead
from hackhub.errors import Forbidden, NotFound, ValidationError
from hackhub.services.access import RoleGuard
from hackhub.services.audit_log import instrument_service_class

logger = logging.getLogger(__name__)


class SubmissionService:
	"""Round submissions by team members and judge scoring."""

	_instance: ClassVar[Optional["SubmissionService"]] = None

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

	async def _team_round(self, team_id: UUID, round_id: UUID) -> tuple[TeamRead, RoundRead]:
		team = await self._guard.load_team(team_id)
		rnd = await self._guard.load_round(round_id)
		if rnd.hackathon_id != team.hackathon_id:
			raise NotFound("Round not found in this hackathon", round_id=str(round_id))
		return team, rnd

	async def _is_judge(self, actor: UserRead, hackathon: HackathonRead) -> bool:
		return actor.is_admin or await self._guard.has_role(actor, hackathon, UserRole.JUDGE)

	async def submit_project(
		self,
		actor: UserRead,
		team_id: UUID,
		round_id: UUID,
		payload: SubmissionCreate,
		files: Optional[Iterable[FileDescriptor]] = None,
	) -> SubmissionRead:
		team, rnd = await self._team_round(team_id, round_id)
		if team.member(actor.id) is None:
			raise Forbidden("Only active team members can submit", team_id=str(team.id))

		submission = await self._database.create_submission(
			team_id=team.id,
			round_id=rnd.id,
			submitted_by_id=actor.id,
			payload=payload,
			files=list(files or []),
		)
		logger.info("Team %s submitted for round %s", team.id, rnd.id)
		return submission

	async def score_team(self, actor: UserRead, team_id: UUID, round_id: UUID, payload: ScoreCreate) -> TeamRead:
		"""
		Record one judge's finalized score for (team, round).

		Every criterion score must lie in [0, max_score]. The team's overall
		score becomes the mean total over all its scores.
		"""
		team, rnd = await self._team_round(team_id, round_id)
		hackathon = await self._guard.load_hackathon(team.hackathon_id)
		if not await self._is_judge(actor, hackathon):
			raise Forbidden("Only judges of this hackathon can score teams", hackathon_id=str(hackathon.id))

		if not payload.criteria_scores:
			raise ValidationError("At least one criterion score is required")
		for item in payload.criteria_scores:
			if item.max_score < 0 or not 0 <= item.score <= item.max_score:
				raise ValidationError(
					f"Score for '{item.criterion}' must be between 0 and {item.max_score}",
					criterion=item.criterion,
					score=item.score,
					max_score=item.max_score,
				)

		scored = await self._database.create_score(
			team_id=team.id,
			round_id=rnd.id,
			judge_id=actor.id,
			criteria_scores=payload.criteria_scores,
			remarks=payload.remarks,
			feedback=payload.feedback,
		)
		logger.info("Judge %s scored team %s in round %s", actor.id, team.id, rnd.id)
		return scored

	async def list_round_submissions(self, actor: UserRead, round_id: UUID) -> List[SubmissionRead]:
		rnd = await self._guard.load_round(round_id)
		hackathon = await self._guard.load_hackathon(rnd.hackathon_id)
		allowed = (
			await self._guard.has_permission(actor, hackathon, Permission.VIEW_SUBMISSIONS)
			or await self._is_judge(actor, hackathon)
		)
		if not allowed:
			raise Forbidden("Not authorized to view submissions", hackathon_id=str(hackathon.id))
		return await self._database.list_round_submissions(rnd.id)


instrument_service_class(SubmissionService, prefix="services.submission", exclude={"list_round_submissions"})
