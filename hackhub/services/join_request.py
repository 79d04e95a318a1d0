# services/join_request.py
import logging
from uuid import UUID
from typing import ClassVar, List, Optional, Self

from hackhub.db.database import DataBase
from hackhub.db.enums import JoinRequestStatus, NotificationKind
from hackhub.db.schemas.join_request import JoinRequestRead, TeamCandidate
from hackhub.db.schemas.team import TeamRead
from hackhub.db.schemas.user import UserRead
from hackhub.errors import BadRequest, Forbidden, NotFound
from hackhub.services.access import RoleGuard
from hackhub.services.audit_log import instrument_service_class
from hackhub.services.notifications import NotificationService

logger = logging.getLogger(__name__)


class JoinRequestService:
	"""
	Leader-initiated invitations into a team.

	The leader sends, the invited user accepts or rejects, the leader (or the
	original sender) may cancel. Accepting rejects every other pending
	request of that user in the same hackathon.
	"""

	_instance: ClassVar[Optional["JoinRequestService"]] = None

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

	async def _load_request(self, request_id: UUID) -> JoinRequestRead:
		request = await self._database.get_join_request(request_id)
		if request is None:
			raise NotFound("Join request not found", request_id=str(request_id))
		return request

	async def send_join_request(
		self,
		actor: UserRead,
		team_id: UUID,
		user_id: UUID,
		message: Optional[str] = None,
	) -> JoinRequestRead:
		team = await self._guard.load_team(team_id)
		if team.leader_id != actor.id:
			raise Forbidden("Only the team leader can send join requests", team_id=str(team.id))

		hackathon = await self._guard.load_hackathon(team.hackathon_id)
		target = await self._guard.load_user(user_id)
		await self._guard.ensure_can_participate(hackathon.id, target.id)

		request = await self._database.create_join_request(
			team_id=team.id,
			user_id=target.id,
			sender_id=actor.id,
			message=message,
			max_members=hackathon.max_members,
		)
		self._notifier.enqueue(
			NotificationKind.JOIN_REQUEST,
			target,
			team_name=team.team_name,
			sender_name=actor.full_name or actor.username,
			hackathon_title=hackathon.title,
			message=message or "",
		)
		logger.info("Join request %s sent to %s for team %s", request.id, target.id, team.id)
		return request

	async def accept_join_request(self, actor: UserRead, request_id: UUID) -> TeamRead:
		request = await self._load_request(request_id)
		if request.user_id != actor.id:
			raise NotFound("Join request not found or no longer pending", request_id=str(request_id))

		hackathon = await self._guard.load_hackathon(request.hackathon_id)
		await self._guard.ensure_can_participate(hackathon.id, actor.id)

		_accepted, team = await self._database.accept_join_request(
			request.id,
			user_id=actor.id,
			max_members=hackathon.max_members,
		)
		logger.info("User %s joined team %s", actor.id, team.id)
		return team

	async def reject_join_request(self, actor: UserRead, request_id: UUID) -> JoinRequestRead:
		request = await self._load_request(request_id)
		if request.user_id != actor.id:
			raise Forbidden("Only the invited user can reject this request", request_id=str(request_id))
		return await self._database.close_join_request(request.id, JoinRequestStatus.REJECTED)

	async def cancel_join_request(self, actor: UserRead, request_id: UUID) -> JoinRequestRead:
		request = await self._load_request(request_id)
		team = await self._guard.load_team(request.team_id)
		if actor.id not in (team.leader_id, request.sender_id):
			raise Forbidden("Only the team leader or the sender can cancel this request", request_id=str(request_id))
		return await self._database.close_join_request(request.id, JoinRequestStatus.CANCELLED)

	async def search_team_candidates(self, actor: UserRead, team_id: UUID, query: str) -> List[TeamCandidate]:
		team = await self._guard.load_team(team_id)
		if team.leader_id != actor.id:
			raise Forbidden("Only the team leader can search for members", team_id=str(team.id))
		query = (query or "").strip()
		if len(query) < 2:
			raise BadRequest("Query must be at least 2 characters")
		return await self._database.search_team_candidates(
			team.hackathon_id, query, exclude_user_id=actor.id, team_id=team.id
		)

	async def list_team_join_requests(
		self,
		actor: UserRead,
		team_id: UUID,
		status: Optional[JoinRequestStatus] = None,
	) -> List[JoinRequestRead]:
		team = await self._guard.load_team(team_id)
		if team.leader_id != actor.id:
			raise Forbidden("Only the team leader can view join requests", team_id=str(team.id))
		return await self._database.list_join_requests(team_id=team.id, status=status)

	async def list_my_join_requests(
		self,
		actor: UserRead,
		status: Optional[JoinRequestStatus] = JoinRequestStatus.PENDING,
	) -> List[JoinRequestRead]:
		return await self._database.list_join_requests(user_id=actor.id, status=status)


instrument_service_class(
	JoinRequestService,
	prefix="services.join_request",
	exclude={"search_team_candidates", "list_team_join_requests", "list_my_join_requests"},
)
