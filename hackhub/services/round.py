# services/round.py
import logging
from uuid import UUID
from datetime import datetime
from typing import ClassVar, List, Optional, Self

from hackhub.db.database import DataBase
from hackhub.db.enums import RoundStatus
from hackhub.db.schemas.round import RoundCreate, RoundRead, RoundUpdate
from hackhub.db.schemas.user import UserRead
from hackhub.errors import BadRequest, ValidationError
from hackhub.services.access import RoleGuard
from hackhub.services.audit_log import instrument_service_class
from hackhub.utils.sentinels import provided

logger = logging.getLogger(__name__)

REQUIRED_ROUND_FIELDS = ("name", "type", "mode", "start_time", "end_time")


class RoundService:
	_instance: ClassVar[Optional["RoundService"]] = None

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

	@staticmethod
	def _check_window(start_time: datetime, end_time: datetime) -> None:
		if end_time <= start_time:
			raise ValidationError(
				"Round end time must be after its start time",
				start_time=start_time.isoformat(),
				end_time=end_time.isoformat(),
			)

	async def create_round(self, actor: UserRead, hackathon_id: UUID, payload: RoundCreate) -> RoundRead:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		self._guard.require_organizer(actor, hackathon, "create rounds")

		missing = [name for name in REQUIRED_ROUND_FIELDS if not getattr(payload, name)]
		if missing:
			raise ValidationError(f"Missing required round fields: {', '.join(missing)}", missing=missing)
		self._check_window(payload.start_time, payload.end_time)

		rnd = await self._database.create_round(hackathon.id, payload)
		logger.info("Round %s (#%d) created in hackathon %s", rnd.id, rnd.order, hackathon.id)
		return rnd

	async def get_rounds(self, hackathon_id: UUID) -> List[RoundRead]:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		return await self._database.list_rounds(hackathon.id)

	async def get_round(self, round_id: UUID) -> RoundRead:
		return await self._guard.load_round(round_id)

	async def get_current_round(self, hackathon_id: UUID) -> Optional[RoundRead]:
		return await self._database.get_current_round(hackathon_id)

	async def update_round(self, actor: UserRead, payload: RoundUpdate) -> RoundRead:
		rnd = await self._guard.load_round(payload.id)
		hackathon = await self._guard.load_hackathon(rnd.hackathon_id)
		self._guard.require_organizer(actor, hackathon, "update rounds")

		start = payload.start_time if provided(payload.start_time) else rnd.start_time
		end = payload.end_time if provided(payload.end_time) else rnd.end_time
		self._check_window(start, end)

		return await self._database.update_round(payload)

	async def delete_round(self, actor: UserRead, round_id: UUID) -> None:
		rnd = await self._guard.load_round(round_id)
		hackathon = await self._guard.load_hackathon(rnd.hackathon_id)
		self._guard.require_organizer(actor, hackathon, "delete rounds")
		await self._database.delete_round(rnd.id)
		logger.info("Round %s deleted from hackathon %s", rnd.id, hackathon.id)

	async def reorder_rounds(self, actor: UserRead, hackathon_id: UUID, round_ids: List[UUID]) -> List[RoundRead]:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		self._guard.require_organizer(actor, hackathon, "reorder rounds")
		if not isinstance(round_ids, (list, tuple)):
			raise BadRequest("round_ids must be a list")

		ids: List[UUID] = []
		for raw in round_ids:
			try:
				ids.append(raw if isinstance(raw, UUID) else UUID(str(raw)))
			except ValueError:
				# unknown ids are ignored
				continue
		return await self._database.reorder_rounds(hackathon.id, ids)

	async def set_round_status(
		self,
		actor: UserRead,
		round_id: UUID,
		status: RoundStatus,
		actual_start_time: Optional[datetime] = None,
		actual_end_time: Optional[datetime] = None,
	) -> RoundRead:
		rnd = await self._guard.load_round(round_id)
		hackathon = await self._guard.load_hackathon(rnd.hackathon_id)
		self._guard.require_organizer(actor, hackathon, "change round status")

		updated = await self._database.set_round_status(
			rnd.id,
			RoundStatus(status),
			actual_start_time=actual_start_time,
			actual_end_time=actual_end_time,
		)
		logger.info("Round %s status %s -> %s", rnd.id, rnd.status, updated.status)
		return updated


instrument_service_class(
	RoundService,
	prefix="services.round",
	exclude={"get_rounds", "get_round", "get_current_round"},
)
