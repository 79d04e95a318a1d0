# services/hackathon.py
import logging
import re
from datetime import datetime
from uuid import UUID
from typing import ClassVar, Iterable, List, Optional, Self, Tuple

from hackhub.db.database import DataBase
from hackhub.db.enums import HackathonStatus, Permission, UserRole
from hackhub.db.schemas.hackathon import HackathonCreate, HackathonRead, HackathonUpdate
from hackhub.db.schemas.user import UserRead
from hackhub.errors import Forbidden, NotFound, ValidationError
from hackhub.services.access import RoleGuard
from hackhub.services.audit_log import instrument_service_class
from hackhub.utils.clock import utcnow
from hackhub.utils.sentinels import provided

logger = logging.getLogger(__name__)

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def make_slug(title: str, now: Optional[datetime] = None) -> str:
	"""``"AI Hack 2025!"`` -> ``"ai-hack-2025-<epoch millis>"``."""
	now = now or utcnow()
	base = _SLUG_STRIP.sub("-", title.lower()).strip("-") or "hackathon"
	return f"{base[:120]}-{int(now.timestamp() * 1000)}"


def validate_schedule(
	registration_start: datetime,
	registration_end: datetime,
	hackathon_start: datetime,
	hackathon_end: datetime,
	min_members: int,
	max_members: int,
	max_teams: int,
) -> None:
	if not (registration_start <= registration_end <= hackathon_start <= hackathon_end):
		raise ValidationError(
			"Dates must satisfy registration_start <= registration_end <= hackathon_start <= hackathon_end",
			registration_start=registration_start.isoformat(),
			registration_end=registration_end.isoformat(),
			hackathon_start=hackathon_start.isoformat(),
			hackathon_end=hackathon_end.isoformat(),
		)
	if min_members < 1 or min_members > max_members:
		raise ValidationError(
			"Team size bounds must satisfy 1 <= min_members <= max_members",
			min_members=min_members,
			max_members=max_members,
		)
	if max_teams < 1:
		raise ValidationError("max_teams must be at least 1", max_teams=max_teams)


class HackathonService:
	_instance: ClassVar[Optional["HackathonService"]] = None

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

	async def create_hackathon(self, actor: UserRead, payload: HackathonCreate) -> HackathonRead:
		if not (actor.has_role(UserRole.ORGANIZER) or actor.is_admin):
			raise Forbidden("Only organizers can create hackathons")

		validate_schedule(
			payload.registration_start, payload.registration_end,
			payload.hackathon_start, payload.hackathon_end,
			payload.min_members, payload.max_members, payload.max_teams,
		)
		slug = payload.slug or make_slug(payload.title)
		hackathon = await self._database.create_hackathon(payload, organizer_id=actor.id, slug=slug)
		logger.info("Hackathon %s (%s) created by %s", hackathon.id, hackathon.slug, actor.id)
		return hackathon

	async def get_hackathon(self, hackathon_id: UUID) -> HackathonRead:
		return await self._guard.load_hackathon(hackathon_id)

	async def get_hackathon_by_slug(self, slug: str) -> HackathonRead:
		hackathon = await self._database.get_hackathon_by_slug(slug)
		if hackathon is None:
			raise NotFound("Hackathon not found", slug=slug)
		return hackathon

	async def record_view(self, hackathon_id: UUID) -> None:
		await self._database.increment_views(hackathon_id)

	async def list_hackathons(
		self,
		*,
		status: Optional[Iterable[HackathonStatus]] = None,
		page: int = 0,
		page_size: int = 20,
	) -> Tuple[List[HackathonRead], int]:
		return await self._database.list_hackathons(
			status=[s.value for s in status] if status else None,
			limit=page_size,
			offset=max(page, 0) * page_size,
		)

	async def list_organized(self, actor: UserRead) -> List[HackathonRead]:
		items, _total = await self._database.list_hackathons(organizer_id=actor.id, limit=1000)
		return items

	async def list_coordinations(self, actor: UserRead) -> List[HackathonRead]:
		return await self._database.list_coordinated_hackathons(actor.id)

	async def update_hackathon(self, actor: UserRead, payload: HackathonUpdate) -> HackathonRead:
		current = await self._guard.load_hackathon(payload.id)
		self._guard.require_organizer(actor, current, "update this hackathon")

		def merged(field: str):
			value = getattr(payload, field)
			return value if provided(value) else getattr(current, field)

		validate_schedule(
			merged("registration_start"), merged("registration_end"),
			merged("hackathon_start"), merged("hackathon_end"),
			merged("min_members"), merged("max_members"), merged("max_teams"),
		)
		return await self._database.update_hackathon(payload)

	async def delete_hackathon(self, actor: UserRead, hackathon_id: UUID) -> None:
		hackathon = await self._guard.load_hackathon(hackathon_id)
		self._guard.require_organizer(actor, hackathon, "delete this hackathon")
		await self._database.delete_hackathon(hackathon_id)
		logger.info("Hackathon %s deleted by %s", hackathon_id, actor.id)

	@staticmethod
	def is_registration_open(hackathon: HackathonRead, now: Optional[datetime] = None) -> bool:
		return hackathon.is_registration_open(now or utcnow())

	async def has_permission(self, actor: UserRead, hackathon: HackathonRead, permission: Permission) -> bool:
		return await self._guard.has_permission(actor, hackathon, permission)

	async def has_role(self, actor: UserRead, hackathon: HackathonRead, role: UserRole) -> bool:
		return await self._guard.has_role(actor, hackathon, role)


instrument_service_class(
	HackathonService,
	prefix="services.hackathon",
	exclude={
		"get_hackathon", "get_hackathon_by_slug", "list_hackathons", "list_organized",
		"list_coordinations", "has_permission", "has_role",
	},
)
