# db/database.py
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional, ClassVar, Self, Any, List, Tuple, Iterable

from sqlalchemy import select, func, update, delete, or_
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.exc import IntegrityError

from hackhub.config import Settings
from hackhub.errors import AlreadyInvited, BadRequest, Conflict, Forbidden, NotFound, ValidationError
from hackhub.db.enums import (
    ApprovalSource, InvitationStatus, JoinRequestStatus, MemberRole, MemberStatus,
    PaymentStatus, RoundStatus, TeamState, UserRole,
)
from hackhub.db.models._base import Base
from hackhub.db.models.user import User
from hackhub.db.models.hackathon import Hackathon
from hackhub.db.models.round import Round
from hackhub.db.models.team import Team
from hackhub.db.models.team_member import TeamMember
from hackhub.db.models.team_note import TeamNote
from hackhub.db.models.submission import Submission
from hackhub.db.models.score import Score
from hackhub.db.models.join_request import JoinRequest
from hackhub.db.models.coordinator import CoordinatorInvitation, HackathonCoordinator
from hackhub.db.models.judge import JudgeInvitation, HackathonJudge
from hackhub.db.models.audit_log import AuditLog
from hackhub.db.schemas.user import UserCreate, UserRead, UserUpdate
from hackhub.db.schemas.hackathon import HackathonCreate, HackathonRead, HackathonUpdate
from hackhub.db.schemas.round import RoundCreate, RoundRead, RoundUpdate
from hackhub.db.schemas.team import AutoApprovalOutcome, TeamMemberRead, TeamRead, TeamUpdate
from hackhub.db.schemas.team_note import TeamNoteRead
from hackhub.db.schemas.submission import FileDescriptor, SubmissionCreate, SubmissionRead
from hackhub.db.schemas.score import CriterionScore
from hackhub.db.schemas.join_request import JoinRequestRead, TeamCandidate
from hackhub.db.schemas.coordinator import (
    CoordinatorInvitationRead, CoordinatorPermissions, HackathonCoordinatorRead,
)
from hackhub.db.schemas.judge import HackathonJudgeRead, JudgeInvitationRead
from hackhub.db.schemas.stats import ParticipantRow, StaffCandidate
from hackhub.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from hackhub.utils.clock import utcnow
from hackhub.utils.sentinels import provided


# round status -> statuses it may move to
ROUND_TRANSITIONS: dict[RoundStatus, set[RoundStatus]] = {
    RoundStatus.PENDING: {RoundStatus.ONGOING, RoundStatus.CANCELLED},
    RoundStatus.ONGOING: {RoundStatus.COMPLETED, RoundStatus.CANCELLED},
    RoundStatus.COMPLETED: set(),
    RoundStatus.CANCELLED: set(),
}


class DataBase():
    """
    Async SQLAlchemy database singleton.
    Usage:
        db = DataBase()  # same instance everywhere
        async with db.session() as s:
            ...

    Every domain method runs in exactly one session, so the checks it performs
    and the rows it writes commit or roll back together.
    """
    _instance: ClassVar[Optional["DataBase"]] = None

    def __new__(cls, *args: Any, **kwargs: Any) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)

        return cls._instance

    def __init__(self, echo: Optional[bool] = None) -> None:
        if getattr(self, "_initialized", False):
            return

        settings = Settings()
        self._engine: AsyncEngine = create_async_engine(
            settings.database_url,
            echo=settings.db_echo if echo is None else echo,
            pool_pre_ping=True,
        )
        self._sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=False,
        )

        self._initialized = True

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Provides an AsyncSession with safe commit/rollback semantics.
        """
        session: AsyncSession = self._sessionmaker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # --- schema management helpers ---

    async def create_all(self) -> None:
        """
        Create tables based on Base metadata. Use only in dev/tests; prefer migrations in prod.
        """
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    # --- internal helpers ---

    @staticmethod
    async def _flush(s: AsyncSession, message: str, **details: Any) -> None:
        """Flush pending writes, reporting unique/check violations as Conflict."""
        try:
            await s.flush()
        except IntegrityError as exc:
            raise Conflict(message, **details) from exc

    @staticmethod
    async def _load_team(s: AsyncSession, team_id: uuid.UUID, *, lock: bool = False) -> Team:
        stmt = select(Team).where(Team.id == team_id).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        team = (await s.execute(stmt)).scalar_one_or_none()
        if team is None:
            raise NotFound("Team not found", team_id=str(team_id))
        return team

    async def _team_snapshot(self, s: AsyncSession, team_id: uuid.UUID) -> TeamRead:
        return TeamRead.model_validate(await self._load_team(s, team_id))

    @staticmethod
    async def _load_hackathon(s: AsyncSession, hackathon_id: uuid.UUID, *, lock: bool = False) -> Hackathon:
        stmt = select(Hackathon).where(Hackathon.id == hackathon_id)
        if lock:
            stmt = stmt.with_for_update()
        hackathon = (await s.execute(stmt)).scalar_one_or_none()
        if hackathon is None:
            raise NotFound("Hackathon not found", hackathon_id=str(hackathon_id))
        return hackathon

    @staticmethod
    async def _load_user(s: AsyncSession, user_id: uuid.UUID) -> User:
        user = await s.get(User, user_id)
        if user is None:
            raise NotFound("User not found", user_id=str(user_id))
        return user

    @staticmethod
    async def _active_membership(s: AsyncSession, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> Optional[TeamMember]:
        stmt = select(TeamMember).where(
            TeamMember.hackathon_id == hackathon_id,
            TeamMember.user_id == user_id,
            TeamMember.status == MemberStatus.ACTIVE,
        )
        return (await s.execute(stmt)).scalars().first()

    @staticmethod
    async def _active_member_count(s: AsyncSession, team_id: uuid.UUID) -> int:
        stmt = select(func.count(TeamMember.id)).where(
            TeamMember.team_id == team_id,
            TeamMember.status == MemberStatus.ACTIVE,
        )
        return int((await s.execute(stmt)).scalar_one())

    @staticmethod
    def _grant_role(user: User, role: UserRole) -> None:
        roles = list(user.roles or [])
        if role.value not in roles:
            # reassign so the JSON column is marked dirty
            user.roles = [*roles, role.value]

    # ---------------------------------
    # Users
    # ---------------------------------

    async def create_user(self, data: UserCreate) -> UserRead:
        """
        Create a user from UserCreate schema and return UserRead object.

        Raises:
            Conflict: when the username or email is already taken.
        """
        user = User(
            username=data.username,
            email=str(data.email).lower(),
            full_name=data.full_name,
            institution=data.institution,
            phone=data.phone,
            bio=data.bio,
            avatar=data.avatar,
            skills=list(data.skills),
            roles=[r.value for r in data.roles],
            tg_id=data.tg_id,
            preferred_language=data.preferred_language,
        )

        async with self.session() as s:
            s.add(user)
            await self._flush(s, "User with this username or email already exists", username=data.username)
            await s.refresh(user)

        return UserRead.model_validate(user)

    async def get_user_by_id(self, uid: Optional[uuid.UUID] = None) -> Optional[UserRead]:
        """
        Fetch a user by internal UUID primary key.

        Args:
            uid: User UUID. If None, returns None immediately.

        Returns:
            Optional[UserRead]: Pydantic DTO of the user if found; otherwise None.
        """
        if uid is None:
            return None

        async with self.session() as s:
            user_row = await s.get(User, uid)

        return UserRead.model_validate(user_row) if user_row is not None else None

    async def get_user_by_login(self, login: str) -> Optional[UserRead]:
        """
        Fetch a user by email (case-insensitive) or username.

        Args:
            login: email address or username; a leading '@' is ignored.

        Returns:
            Optional[UserRead]: DTO if found; otherwise None.
        """
        if not login:
            return None

        login = login.strip()
        if login.startswith("@"):
            login = login[1:]

        async with self.session() as s:
            stmt = select(User).where(or_(func.lower(User.email) == login.lower(), User.username == login))
            user_row = (await s.execute(stmt)).scalars().first()

        return UserRead.model_validate(user_row) if user_row is not None else None

    async def update_user(self, data: UserUpdate) -> UserRead:
        """
        Partially update a user by id.
        Only fields explicitly provided (i.e., not Missing) are updated.
        Passing None for a provided optional field will NULL it in DB.

        Raises:
            NotFound: if the user with given id does not exist.
        """
        async with self.session() as s:
            db_user = await self._load_user(s, data.id)

            for field in ("full_name", "institution", "phone", "bio", "avatar", "tg_id", "preferred_language"):
                value = getattr(data, field)
                if provided(value):
                    setattr(db_user, field, value)

            if provided(data.skills):
                db_user.skills = list(data.skills)
            if provided(data.roles):
                db_user.roles = [r.value for r in data.roles]

            await self._flush(s, "User update violates a unique constraint", user_id=str(data.id))
            await s.refresh(db_user)

        return UserRead.model_validate(db_user)

    # ---------------------------------
    # Hackathons
    # ---------------------------------

    async def create_hackathon(self, payload: HackathonCreate, *, organizer_id: uuid.UUID, slug: str) -> HackathonRead:
        """
        Insert a hackathon owned by ``organizer_id``.

        Args:
            payload: validated HackathonCreate DTO.
            organizer_id: owner of the new hackathon.
            slug: unique slug chosen by the caller.

        Raises:
            Conflict: when the slug is already in use.
        """
        hackathon = Hackathon(
            slug=slug,
            title=payload.title,
            description=payload.description,
            theme=payload.theme,
            organizer_id=organizer_id,
            status=payload.status,
            mode=payload.mode,
            registration_start=payload.registration_start,
            registration_end=payload.registration_end,
            hackathon_start=payload.hackathon_start,
            hackathon_end=payload.hackathon_end,
            min_members=payload.min_members,
            max_members=payload.max_members,
            allow_solo_participation=payload.allow_solo_participation,
            max_teams=payload.max_teams,
            current_registrations=0,
            registration_fee=payload.registration_fee,
            fee_currency=payload.fee_currency,
            settings=payload.settings.model_dump(mode="json"),
        )

        async with self.session() as s:
            s.add(hackathon)
            await self._flush(s, "A hackathon with this slug already exists", slug=slug)
            await s.refresh(hackathon)

        return HackathonRead.model_validate(hackathon)

    async def get_hackathon(self, hackathon_id: uuid.UUID) -> Optional[HackathonRead]:
        if not hackathon_id:
            return None

        async with self.session() as s:
            row = await s.get(Hackathon, hackathon_id, populate_existing=True)

        return HackathonRead.model_validate(row) if row is not None else None

    async def get_hackathon_by_slug(self, slug: str) -> Optional[HackathonRead]:
        async with self.session() as s:
            row = (await s.execute(select(Hackathon).where(Hackathon.slug == slug))).scalar_one_or_none()

        return HackathonRead.model_validate(row) if row is not None else None

    async def list_hackathons(
        self,
        *,
        status: Optional[Iterable[str]] = None,
        organizer_id: Optional[uuid.UUID] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[list[HackathonRead], int]:
        """
        Deterministic paging by creation time (newest first), then id.
        Returns (items, total).
        """
        limit = max(0, int(limit))
        offset = max(0, int(offset))

        conditions = []
        if status:
            conditions.append(Hackathon.status.in_(list(status)))
        if organizer_id is not None:
            conditions.append(Hackathon.organizer_id == organizer_id)

        async with self.session() as s:
            total_stmt = select(func.count(Hackathon.id)).where(*conditions)
            total = int((await s.execute(total_stmt)).scalar_one())

            if limit == 0:
                return [], total

            items_stmt = (
                select(Hackathon)
                .where(*conditions)
                .order_by(Hackathon.created_at.desc(), Hackathon.id.asc())
                .limit(limit)
                .offset(offset)
            )
            rows: List[Hackathon] = (await s.execute(items_stmt)).scalars().all()

        return [HackathonRead.model_validate(r) for r in rows], total

    async def list_coordinated_hackathons(self, user_id: uuid.UUID) -> list[HackathonRead]:
        """Hackathons for which ``user_id`` holds an accepted coordinator record."""
        async with self.session() as s:
            stmt = (
                select(Hackathon)
                .join(CoordinatorInvitation, CoordinatorInvitation.hackathon_id == Hackathon.id)
                .where(
                    CoordinatorInvitation.user_id == user_id,
                    CoordinatorInvitation.status == InvitationStatus.ACCEPTED,
                )
                .order_by(Hackathon.hackathon_start.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()

        return [HackathonRead.model_validate(r) for r in rows]

    async def update_hackathon(self, payload: HackathonUpdate) -> HackathonRead:
        """
        Partially update a hackathon by id.

        Notes:
            Only fields explicitly provided (i.e., not Missing) are updated.
            max_teams is written by a conditional UPDATE against the live
            registration counter.

        Raises:
            NotFound: if the hackathon does not exist.
            ValidationError: if max_teams would drop below current_registrations.
        """
        async with self.session() as s:
            hackathon = await self._load_hackathon(s, payload.id, lock=True)

            if provided(payload.max_teams):
                resized = await s.execute(
                    update(Hackathon)
                    .where(Hackathon.id == payload.id, Hackathon.current_registrations <= payload.max_teams)
                    .values(max_teams=payload.max_teams)
                    .execution_options(synchronize_session=False)
                )
                if resized.rowcount == 0:
                    await s.refresh(hackathon)
                    raise ValidationError(
                        "max_teams cannot be lower than the number of registered teams",
                        max_teams=payload.max_teams,
                        current_registrations=hackathon.current_registrations,
                    )

            for field in (
                "title", "description", "theme", "mode", "status",
                "registration_start", "registration_end", "hackathon_start", "hackathon_end",
                "min_members", "max_members", "allow_solo_participation",
                "registration_fee", "fee_currency",
            ):
                value = getattr(payload, field)
                if provided(value):
                    setattr(hackathon, field, value)

            if provided(payload.settings):
                hackathon.settings = payload.settings.model_dump(mode="json")

            await self._flush(s, "Hackathon update violates a constraint", hackathon_id=str(payload.id))
            await s.refresh(hackathon)

        return HackathonRead.model_validate(hackathon)

    async def increment_views(self, hackathon_id: uuid.UUID) -> None:
        async with self.session() as s:
            await s.execute(
                update(Hackathon).where(Hackathon.id == hackathon_id).values(views=Hackathon.views + 1)
            )

    async def delete_hackathon(self, hackathon_id: uuid.UUID) -> None:
        """
        Delete a hackathon together with every record it owns.

        Children are removed with explicit bulk statements so the cascade does
        not depend on the backend enforcing foreign keys.

        Raises:
            NotFound: if the hackathon does not exist.
        """
        async with self.session() as s:
            await self._load_hackathon(s, hackathon_id, lock=True)

            team_ids = select(Team.id).where(Team.hackathon_id == hackathon_id).scalar_subquery()
            for model in (Score, Submission, TeamNote, JoinRequest, TeamMember):
                await s.execute(
                    delete(model).where(model.team_id.in_(team_ids)).execution_options(synchronize_session=False)
                )
            for model in (Team, Round, CoordinatorInvitation, HackathonCoordinator, JudgeInvitation, HackathonJudge):
                await s.execute(
                    delete(model).where(model.hackathon_id == hackathon_id).execution_options(synchronize_session=False)
                )
            await s.execute(delete(Hackathon).where(Hackathon.id == hackathon_id))

    # ---------------------------------
    # Coordinators
    # ---------------------------------

    async def list_coordinator_invitations(self, hackathon_id: uuid.UUID) -> list[CoordinatorInvitationRead]:
        async with self.session() as s:
            stmt = (
                select(CoordinatorInvitation)
                .where(CoordinatorInvitation.hackathon_id == hackathon_id)
                .order_by(CoordinatorInvitation.invited_at.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()

        return [CoordinatorInvitationRead.model_validate(r) for r in rows]

    async def get_hackathon_coordinator(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> Optional[HackathonCoordinatorRead]:
        async with self.session() as s:
            stmt = select(HackathonCoordinator).where(
                HackathonCoordinator.hackathon_id == hackathon_id,
                HackathonCoordinator.user_id == user_id,
            )
            row = (await s.execute(stmt)).scalar_one_or_none()

        return HackathonCoordinatorRead.model_validate(row) if row is not None else None

    async def create_coordinator_invitation(
        self,
        *,
        hackathon_id: uuid.UUID,
        user_id: uuid.UUID,
        permissions: CoordinatorPermissions,
        invited_by_id: uuid.UUID,
        token: str,
    ) -> CoordinatorInvitationRead:
        """
        Create a pending coordinator record for (user, hackathon).

        Raises:
            Conflict: the user is an active team participant of the hackathon.
            AlreadyInvited: a record already exists (carries its status).
        """
        async with self.session() as s:
            if await self._active_membership(s, hackathon_id, user_id) is not None:
                raise Conflict(
                    "User is participating in this hackathon and cannot be a coordinator",
                    user_id=str(user_id),
                )

            existing = (await s.execute(
                select(CoordinatorInvitation).where(
                    CoordinatorInvitation.hackathon_id == hackathon_id,
                    CoordinatorInvitation.user_id == user_id,
                )
            )).scalar_one_or_none()
            if existing is not None:
                raise _already_invited("coordinator", existing.status)

            invitation = CoordinatorInvitation(
                user_id=user_id,
                hackathon_id=hackathon_id,
                permissions=permissions.model_dump(),
                invited_by_id=invited_by_id,
                invited_at=utcnow(),
                status=InvitationStatus.PENDING,
                invitation_token=token,
            )
            s.add(invitation)
            try:
                await s.flush()
            except IntegrityError as exc:
                raise _already_invited("coordinator", InvitationStatus.PENDING) from exc
            await s.refresh(invitation)

        return CoordinatorInvitationRead.model_validate(invitation)

    async def accept_coordinator_invitation(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> CoordinatorInvitationRead:
        """
        Accept a pending coordinator invitation in one transaction: flip the
        record, grant the ``coordinator`` role tag and add the hackathon entry.

        Raises:
            NotFound: no pending invitation for (user, hackathon).
            Conflict: the user is an active team participant of the hackathon.
        """
        async with self.session() as s:
            invitation = (await s.execute(
                select(CoordinatorInvitation).where(
                    CoordinatorInvitation.hackathon_id == hackathon_id,
                    CoordinatorInvitation.user_id == user_id,
                    CoordinatorInvitation.status == InvitationStatus.PENDING,
                ).with_for_update()
            )).scalar_one_or_none()
            if invitation is None:
                raise NotFound("No pending coordinator invitation found")

            if await self._active_membership(s, hackathon_id, user_id) is not None:
                raise Conflict("Leave your team before accepting the coordinator invitation", user_id=str(user_id))

            now = utcnow()
            invitation.status = InvitationStatus.ACCEPTED
            invitation.accepted_at = now

            user = await self._load_user(s, user_id)
            self._grant_role(user, UserRole.COORDINATOR)

            entry = (await s.execute(
                select(HackathonCoordinator).where(
                    HackathonCoordinator.hackathon_id == hackathon_id,
                    HackathonCoordinator.user_id == user_id,
                )
            )).scalar_one_or_none()
            if entry is None:
                s.add(HackathonCoordinator(
                    hackathon_id=hackathon_id,
                    user_id=user_id,
                    permissions=dict(invitation.permissions or {}),
                    added_at=now,
                ))

            await self._flush(s, "Coordinator is already registered for this hackathon")
            await s.refresh(invitation)

        return CoordinatorInvitationRead.model_validate(invitation)

    async def refresh_coordinator_invitation(self, hackathon_id: uuid.UUID, user_id: uuid.UUID, *, token: str) -> CoordinatorInvitationRead:
        """
        Regenerate the token and invitation time of a non-accepted record.

        Raises:
            BadRequest: no record, or the record was already accepted.
        """
        async with self.session() as s:
            invitation = (await s.execute(
                select(CoordinatorInvitation).where(
                    CoordinatorInvitation.hackathon_id == hackathon_id,
                    CoordinatorInvitation.user_id == user_id,
                )
            )).scalar_one_or_none()
            if invitation is None or invitation.status == InvitationStatus.ACCEPTED:
                raise BadRequest("No pending coordinator invitation to resend", user_id=str(user_id))

            invitation.invitation_token = token
            invitation.invited_at = utcnow()
            await s.flush()
            await s.refresh(invitation)

        return CoordinatorInvitationRead.model_validate(invitation)

    async def delete_pending_coordinator_invitation(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Remove a pending record; accepted records are left untouched."""
        async with self.session() as s:
            result = await s.execute(
                delete(CoordinatorInvitation).where(
                    CoordinatorInvitation.hackathon_id == hackathon_id,
                    CoordinatorInvitation.user_id == user_id,
                    CoordinatorInvitation.status == InvitationStatus.PENDING,
                )
            )
            if result.rowcount == 0:
                raise NotFound("No pending coordinator invitation found", user_id=str(user_id))

    async def remove_coordinator(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Remove the user's record regardless of status together with the hackathon entry."""
        async with self.session() as s:
            removed = (await s.execute(
                delete(CoordinatorInvitation).where(
                    CoordinatorInvitation.hackathon_id == hackathon_id,
                    CoordinatorInvitation.user_id == user_id,
                )
            )).rowcount
            removed += (await s.execute(
                delete(HackathonCoordinator).where(
                    HackathonCoordinator.hackathon_id == hackathon_id,
                    HackathonCoordinator.user_id == user_id,
                )
            )).rowcount
            if removed == 0:
                raise NotFound("User is not a coordinator of this hackathon", user_id=str(user_id))

    async def update_coordinator_permissions(
        self,
        hackathon_id: uuid.UUID,
        user_id: uuid.UUID,
        changes: dict[str, bool],
    ) -> HackathonCoordinatorRead:
        """
        Merge ``changes`` into both permission copies (hackathon entry and the
        user's record) inside one transaction.

        Raises:
            NotFound: the user has no coordinator entry for the hackathon.
        """
        async with self.session() as s:
            entry = (await s.execute(
                select(HackathonCoordinator).where(
                    HackathonCoordinator.hackathon_id == hackathon_id,
                    HackathonCoordinator.user_id == user_id,
                ).with_for_update()
            )).scalar_one_or_none()
            if entry is None:
                raise NotFound("Coordinator not found for this hackathon", user_id=str(user_id))

            merged = {**CoordinatorPermissions().model_dump(), **(entry.permissions or {}), **changes}
            entry.permissions = merged

            invitation = (await s.execute(
                select(CoordinatorInvitation).where(
                    CoordinatorInvitation.hackathon_id == hackathon_id,
                    CoordinatorInvitation.user_id == user_id,
                )
            )).scalar_one_or_none()
            if invitation is not None:
                invitation.permissions = dict(merged)

            await s.flush()
            await s.refresh(entry)

        return HackathonCoordinatorRead.model_validate(entry)

    async def get_staff_roles(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> set[UserRole]:
        """Roles (coordinator/judge) the user has accepted for this hackathon."""
        roles: set[UserRole] = set()
        async with self.session() as s:
            coordinator = (await s.execute(
                select(CoordinatorInvitation.id).where(
                    CoordinatorInvitation.hackathon_id == hackathon_id,
                    CoordinatorInvitation.user_id == user_id,
                    CoordinatorInvitation.status == InvitationStatus.ACCEPTED,
                )
            )).first()
            if coordinator is not None:
                roles.add(UserRole.COORDINATOR)

            judge = (await s.execute(
                select(JudgeInvitation.id).where(
                    JudgeInvitation.hackathon_id == hackathon_id,
                    JudgeInvitation.user_id == user_id,
                    JudgeInvitation.status == InvitationStatus.ACCEPTED,
                )
            )).first()
            if judge is not None:
                roles.add(UserRole.JUDGE)

        return roles

    async def search_staff_candidates(self, hackathon_id: uuid.UUID, query: str, *, limit: int = 20) -> list[StaffCandidate]:
        """Users matching ``query`` annotated with their standing in the hackathon."""
        pattern = f"%{query.lower()}%"
        async with self.session() as s:
            users = (await s.execute(
                select(User)
                .where(or_(
                    func.lower(User.username).like(pattern),
                    func.lower(User.email).like(pattern),
                    func.lower(User.full_name).like(pattern),
                ))
                .order_by(User.username.asc())
                .limit(limit)
            )).scalars().all()
            if not users:
                return []

            user_ids = [u.id for u in users]
            memberships = (await s.execute(
                select(TeamMember.user_id, Team.team_name)
                .join(Team, Team.id == TeamMember.team_id)
                .where(
                    TeamMember.hackathon_id == hackathon_id,
                    TeamMember.user_id.in_(user_ids),
                    TeamMember.status == MemberStatus.ACTIVE,
                )
            )).all()
            coordinators = (await s.execute(
                select(CoordinatorInvitation.user_id, CoordinatorInvitation.status).where(
                    CoordinatorInvitation.hackathon_id == hackathon_id,
                    CoordinatorInvitation.user_id.in_(user_ids),
                )
            )).all()
            judges = (await s.execute(
                select(JudgeInvitation.user_id).where(
                    JudgeInvitation.hackathon_id == hackathon_id,
                    JudgeInvitation.user_id.in_(user_ids),
                    JudgeInvitation.status == InvitationStatus.ACCEPTED,
                )
            )).all()

        team_by_user = {row.user_id: row.team_name for row in memberships}
        coordinator_status = {row.user_id: row.status for row in coordinators}
        judge_ids = {row.user_id for row in judges}

        return [
            StaffCandidate(
                user_id=u.id,
                username=u.username,
                full_name=u.full_name,
                email=u.email,
                is_participant=u.id in team_by_user,
                team_name=team_by_user.get(u.id),
                is_coordinator=coordinator_status.get(u.id) == InvitationStatus.ACCEPTED,
                is_pending_coordinator=coordinator_status.get(u.id) == InvitationStatus.PENDING,
                is_judge=u.id in judge_ids,
            )
            for u in users
        ]

    # ---------------------------------
    # Judges
    # ---------------------------------

    async def list_judge_invitations(self, hackathon_id: uuid.UUID) -> list[JudgeInvitationRead]:
        async with self.session() as s:
            rows = (await s.execute(
                select(JudgeInvitation)
                .where(JudgeInvitation.hackathon_id == hackathon_id)
                .order_by(JudgeInvitation.invited_at.asc())
            )).scalars().all()

        return [JudgeInvitationRead.model_validate(r) for r in rows]

    async def list_hackathon_judges(self, hackathon_id: uuid.UUID) -> list[HackathonJudgeRead]:
        async with self.session() as s:
            rows = (await s.execute(
                select(HackathonJudge)
                .where(HackathonJudge.hackathon_id == hackathon_id)
                .order_by(HackathonJudge.added_at.asc())
            )).scalars().all()

        return [HackathonJudgeRead.model_validate(r) for r in rows]

    async def create_judge_invitation(
        self,
        *,
        hackathon_id: uuid.UUID,
        user_id: uuid.UUID,
        invited_by_id: uuid.UUID,
        assigned_rounds: list[str],
    ) -> JudgeInvitationRead:
        """
        Create a pending judge record for (user, hackathon).

        Raises:
            Conflict: the user is an active team participant of the hackathon.
            AlreadyInvited: a record already exists (carries its status).
        """
        async with self.session() as s:
            if await self._active_membership(s, hackathon_id, user_id) is not None:
                raise Conflict(
                    "User is participating in this hackathon and cannot be a judge",
                    user_id=str(user_id),
                )

            existing = (await s.execute(
                select(JudgeInvitation).where(
                    JudgeInvitation.hackathon_id == hackathon_id,
                    JudgeInvitation.user_id == user_id,
                )
            )).scalar_one_or_none()
            if existing is not None:
                raise _already_invited("judge", existing.status)

            invitation = JudgeInvitation(
                user_id=user_id,
                hackathon_id=hackathon_id,
                invited_by_id=invited_by_id,
                invited_at=utcnow(),
                status=InvitationStatus.PENDING,
                assigned_rounds=list(assigned_rounds),
            )
            s.add(invitation)
            try:
                await s.flush()
            except IntegrityError as exc:
                raise _already_invited("judge", InvitationStatus.PENDING) from exc
            await s.refresh(invitation)

        return JudgeInvitationRead.model_validate(invitation)

    async def accept_judge_invitation(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> JudgeInvitationRead:
        """
        Accept a pending judge invitation: flip the record, grant the ``judge``
        role tag and snapshot the user's profile into the judges list.

        Raises:
            NotFound: no pending invitation for (user, hackathon).
            Conflict: the user is an active team participant of the hackathon.
        """
        async with self.session() as s:
            invitation = (await s.execute(
                select(JudgeInvitation).where(
                    JudgeInvitation.hackathon_id == hackathon_id,
                    JudgeInvitation.user_id == user_id,
                    JudgeInvitation.status == InvitationStatus.PENDING,
                ).with_for_update()
            )).scalar_one_or_none()
            if invitation is None:
                raise NotFound("No pending judge invitation found")

            if await self._active_membership(s, hackathon_id, user_id) is not None:
                raise Conflict("Leave your team before accepting the judge invitation", user_id=str(user_id))

            now = utcnow()
            invitation.status = InvitationStatus.ACCEPTED
            invitation.accepted_at = now

            user = await self._load_user(s, user_id)
            self._grant_role(user, UserRole.JUDGE)

            entry = (await s.execute(
                select(HackathonJudge).where(
                    HackathonJudge.hackathon_id == hackathon_id,
                    HackathonJudge.user_id == user_id,
                )
            )).scalar_one_or_none()
            if entry is None:
                s.add(HackathonJudge(
                    hackathon_id=hackathon_id,
                    user_id=user_id,
                    name=user.full_name or user.username,
                    bio=user.bio,
                    photo=user.avatar,
                    expertise=list(user.skills or []),
                    assigned_rounds=list(invitation.assigned_rounds or []),
                    added_at=now,
                ))

            await self._flush(s, "Judge is already registered for this hackathon")
            await s.refresh(invitation)

        return JudgeInvitationRead.model_validate(invitation)

    async def refresh_judge_invitation(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> JudgeInvitationRead:
        """
        Re-stamp the invitation time of a non-accepted judge record.

        Raises:
            BadRequest: no record, or the record was already accepted.
        """
        async with self.session() as s:
            invitation = (await s.execute(
                select(JudgeInvitation).where(
                    JudgeInvitation.hackathon_id == hackathon_id,
                    JudgeInvitation.user_id == user_id,
                )
            )).scalar_one_or_none()
            if invitation is None or invitation.status == InvitationStatus.ACCEPTED:
                raise BadRequest("No pending judge invitation to resend", user_id=str(user_id))

            invitation.invited_at = utcnow()
            await s.flush()
            await s.refresh(invitation)

        return JudgeInvitationRead.model_validate(invitation)

    async def delete_pending_judge_invitation(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> None:
        async with self.session() as s:
            result = await s.execute(
                delete(JudgeInvitation).where(
                    JudgeInvitation.hackathon_id == hackathon_id,
                    JudgeInvitation.user_id == user_id,
                    JudgeInvitation.status == InvitationStatus.PENDING,
                )
            )
            if result.rowcount == 0:
                raise NotFound("No pending judge invitation found", user_id=str(user_id))

    async def remove_judge(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> None:
        async with self.session() as s:
            removed = (await s.execute(
                delete(JudgeInvitation).where(
                    JudgeInvitation.hackathon_id == hackathon_id,
                    JudgeInvitation.user_id == user_id,
                )
            )).rowcount
            removed += (await s.execute(
                delete(HackathonJudge).where(
                    HackathonJudge.hackathon_id == hackathon_id,
                    HackathonJudge.user_id == user_id,
                )
            )).rowcount
            if removed == 0:
                raise NotFound("User is not a judge of this hackathon", user_id=str(user_id))

    # ---------------------------------
    # Teams
    # ---------------------------------

    async def get_team(self, team_id: uuid.UUID) -> Optional[TeamRead]:
        """
        Fetch a team by its UUID with members, submissions and scores.

        Args:
            team_id: Team primary key.

        Returns:
            Optional[TeamRead]: DTO if found; otherwise None.
        """
        if not team_id:
            return None

        async with self.session() as s:
            stmt = select(Team).where(Team.id == team_id).execution_options(populate_existing=True)
            row = (await s.execute(stmt)).scalar_one_or_none()

        return TeamRead.model_validate(row) if row is not None else None

    async def get_active_membership(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> Optional[TeamMemberRead]:
        async with self.session() as s:
            row = await self._active_membership(s, hackathon_id, user_id)

        return TeamMemberRead.model_validate(row) if row is not None else None

    async def get_user_team(self, hackathon_id: uuid.UUID, user_id: uuid.UUID) -> Optional[TeamRead]:
        """The team in which ``user_id`` is currently active for the hackathon."""
        async with self.session() as s:
            membership = await self._active_membership(s, hackathon_id, user_id)
            if membership is None:
                return None
            return await self._team_snapshot(s, membership.team_id)

    async def list_teams(
        self,
        hackathon_id: uuid.UUID,
        *,
        states: Optional[Iterable[TeamState]] = None,
        eliminated: Optional[bool] = None,
    ) -> list[TeamRead]:
        """Teams of a hackathon in registration order, optionally filtered."""
        stmt = select(Team).where(Team.hackathon_id == hackathon_id)
        if states is not None:
            stmt = stmt.where(Team.state.in_(list(states)))
        if eliminated is not None:
            stmt = stmt.where(Team.is_eliminated.is_(eliminated))
        stmt = stmt.order_by(Team.created_at.asc(), Team.id.asc()).execution_options(populate_existing=True)

        async with self.session() as s:
            rows = (await s.execute(stmt)).scalars().all()

        return [TeamRead.model_validate(r) for r in rows]

    async def list_submitted_teams(self, hackathon_id: uuid.UUID) -> list[TeamRead]:
        """Teams past confirmation, most recently submitted first."""
        stmt = (
            select(Team)
            .where(
                Team.hackathon_id == hackathon_id,
                Team.state.in_([TeamState.SUBMITTED, TeamState.APPROVED, TeamState.REJECTED]),
            )
            .order_by(Team.submitted_for_approval_at.desc().nulls_last(), Team.created_at.desc())
            .execution_options(populate_existing=True)
        )
        async with self.session() as s:
            rows = (await s.execute(stmt)).scalars().all()

        return [TeamRead.model_validate(r) for r in rows]

    async def list_teams_for_user(self, user_id: uuid.UUID) -> list[TeamRead]:
        """Teams where the user is an active member or was removed by the leader."""
        async with self.session() as s:
            team_ids = (
                select(TeamMember.team_id)
                .where(
                    TeamMember.user_id == user_id,
                    TeamMember.status.in_([MemberStatus.ACTIVE, MemberStatus.REMOVED]),
                )
                .scalar_subquery()
            )
            rows = (await s.execute(
                select(Team)
                .where(Team.id.in_(team_ids))
                .order_by(Team.created_at.desc())
                .execution_options(populate_existing=True)
            )).scalars().all()

        return [TeamRead.model_validate(r) for r in rows]

    async def list_teams_with_leaders(
        self,
        hackathon_id: uuid.UUID,
        *,
        states: Optional[Iterable[TeamState]] = None,
    ) -> list[Tuple[TeamRead, UserRead]]:
        stmt = (
            select(Team, User)
            .join(User, User.id == Team.leader_id)
            .where(Team.hackathon_id == hackathon_id)
        )
        if states is not None:
            stmt = stmt.where(Team.state.in_(list(states)))
        stmt = stmt.order_by(Team.created_at.asc(), Team.id.asc())

        async with self.session() as s:
            rows = (await s.execute(stmt)).all()

        return [(TeamRead.model_validate(team), UserRead.model_validate(user)) for team, user in rows]

    async def create_team(
        self,
        *,
        hackathon_id: uuid.UUID,
        leader_id: uuid.UUID,
        team_name: str,
        member_ids: Iterable[uuid.UUID],
        project_title: Optional[str],
        project_description: Optional[str],
        tech_stack: list[str],
        payment_status: PaymentStatus,
        payment_amount: float,
        payment_currency: str,
    ) -> TeamRead:
        """
        Register a team and claim one registration slot atomically.

        The slot is claimed with a compare-and-increment on the hackathon row,
        so concurrent registrations can never push the counter past max_teams.
        The team rows and the counter commit or roll back together.

        Raises:
            Forbidden: the hackathon has no free registration slot.
            Conflict: the leader or a member is already active in another team,
                or the team name is taken.
        """
        member_ids = [m for m in dict.fromkeys(member_ids) if m != leader_id]

        async with self.session() as s:
            claimed = await s.execute(
                update(Hackathon)
                .where(Hackathon.id == hackathon_id, Hackathon.current_registrations < Hackathon.max_teams)
                .values(current_registrations=Hackathon.current_registrations + 1)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount == 0:
                raise Forbidden("Maximum team limit reached for this hackathon", hackathon_id=str(hackathon_id))

            if await self._active_membership(s, hackathon_id, leader_id) is not None:
                raise Conflict("You already have an active team in this hackathon", user_id=str(leader_id))
            for member_id in member_ids:
                if await self._active_membership(s, hackathon_id, member_id) is not None:
                    raise Conflict("A proposed member already has an active team in this hackathon", user_id=str(member_id))

            team = Team(
                hackathon_id=hackathon_id,
                team_name=team_name,
                leader_id=leader_id,
                project_title=project_title,
                project_description=project_description,
                tech_stack=list(tech_stack),
                state=TeamState.DRAFT,
                payment_status=payment_status,
                payment_amount=payment_amount,
                payment_currency=payment_currency,
            )
            s.add(team)
            await self._flush(s, "A team with this name already exists in this hackathon", team_name=team_name)

            now = utcnow()
            s.add(TeamMember(
                team_id=team.id, hackathon_id=hackathon_id, user_id=leader_id,
                role=MemberRole.LEADER, status=MemberStatus.ACTIVE, joined_at=now,
            ))
            for member_id in member_ids:
                s.add(TeamMember(
                    team_id=team.id, hackathon_id=hackathon_id, user_id=member_id,
                    role=MemberRole.MEMBER, status=MemberStatus.ACTIVE, joined_at=now,
                ))
            await self._flush(s, "A member already has an active team in this hackathon")

            return await self._team_snapshot(s, team.id)

    async def update_team(self, payload: TeamUpdate) -> TeamRead:
        """
        Partially update a team by id.

        Notes:
            Only fields explicitly provided (i.e., not Missing) are updated.

        Raises:
            NotFound: If the team does not exist.
            Conflict: On unique/constraint violations.
        """
        async with self.session() as s:
            db_team = await self._load_team(s, payload.id)

            if provided(payload.team_name):
                db_team.team_name = payload.team_name
            if provided(payload.project_title):
                db_team.project_title = payload.project_title
            if provided(payload.project_description):
                db_team.project_description = payload.project_description
            if provided(payload.tech_stack):
                db_team.tech_stack = list(payload.tech_stack)

            await self._flush(s, "A team with this name already exists in this hackathon")
            return await self._team_snapshot(s, payload.id)

    async def confirm_team(
        self,
        team_id: uuid.UUID,
        *,
        allowed_states: Iterable[TeamState],
        min_members: int,
        max_members: int,
        late_fee: Optional[float] = None,
        late_note: Optional[str] = None,
        auto_approval: Optional[AutoApprovalOutcome] = None,
        organizer_id: Optional[uuid.UUID] = None,
    ) -> TeamRead:
        """
        Submit a team for approval and apply the auto-approval outcome.

        Args:
            team_id: team to confirm.
            allowed_states: states from which confirmation is permitted.
            min_members / max_members: team size bounds re-checked under lock.
            late_fee: amount added to the payment when registering late.
            late_note: internal note recorded with the late fee.
            auto_approval: evaluated outcome, or None when auto-approval is off.
            organizer_id: recorded as approver when the outcome is eligible.

        Raises:
            NotFound: unknown team.
            Conflict: the team's state does not allow confirmation.
            ValidationError: active member count is outside the bounds.
        """
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)

            if team.state not in set(allowed_states):
                raise Conflict(
                    "Team cannot be confirmed in its current state",
                    team_id=str(team_id),
                    state=team.state.value,
                )

            active = await self._active_member_count(s, team_id)
            check_team_size(active, min_members, max_members)

            now = utcnow()
            if late_fee:
                team.payment_amount = float(team.payment_amount or 0) + float(late_fee)
                s.add(TeamNote(
                    team_id=team_id,
                    author_id=None,
                    content=late_note or f"Late registration fee applied: {late_fee}",
                    is_public=False,
                    is_organizer_note=False,
                    created_at=now,
                ))

            team.state = TeamState.SUBMITTED
            team.submitted_for_approval_at = now
            team.rejection_reason = None

            if auto_approval is not None:
                _apply_auto_approval(team, auto_approval, organizer_id, now)

            await s.flush()
            return await self._team_snapshot(s, team_id)

    async def record_auto_approval(
        self,
        team_id: uuid.UUID,
        outcome: AutoApprovalOutcome,
        *,
        organizer_id: uuid.UUID,
    ) -> TeamRead:
        """Store an on-demand auto-approval outcome, approving when eligible and submitted."""
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)
            _apply_auto_approval(team, outcome, organizer_id, utcnow())
            await s.flush()
            return await self._team_snapshot(s, team_id)

    async def approve_team(
        self,
        team_id: uuid.UUID,
        *,
        approver_id: uuid.UUID,
        hackathon_id: Optional[uuid.UUID] = None,
        require_submitted: bool = False,
    ) -> TeamRead:
        """
        Move a team to approved and stamp the approver.

        Raises:
            NotFound: unknown team, or a team of another hackathon when
                ``hackathon_id`` is given.
            Conflict: ``require_submitted`` is set and the team is not submitted.
        """
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)
            _check_bulk_target(team, hackathon_id, require_submitted)

            team.state = TeamState.APPROVED
            team.approved_at = utcnow()
            team.approved_by_id = approver_id
            team.approval_source = ApprovalSource.MANUAL
            team.rejection_reason = None

            await s.flush()
            return await self._team_snapshot(s, team_id)

    async def reject_team(
        self,
        team_id: uuid.UUID,
        *,
        reason: str,
        actor_id: uuid.UUID,
        add_public_note: bool,
        hackathon_id: Optional[uuid.UUID] = None,
        require_submitted: bool = False,
    ) -> TeamRead:
        """
        Move a team to rejected with ``reason``; the submission side re-opens as draft.

        Raises:
            NotFound / Conflict: see :meth:`approve_team`.
        """
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)
            _check_bulk_target(team, hackathon_id, require_submitted)

            team.state = TeamState.REJECTED
            team.rejection_reason = reason
            team.approved_at = None
            team.approved_by_id = None
            team.approval_source = None

            if add_public_note:
                s.add(TeamNote(
                    team_id=team_id,
                    author_id=actor_id,
                    content=f"Rejection reason: {reason}",
                    is_public=True,
                    is_organizer_note=True,
                    created_at=utcnow(),
                ))

            await s.flush()
            return await self._team_snapshot(s, team_id)

    async def set_member_status(
        self,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        status: MemberStatus,
    ) -> TeamRead:
        """
        Soft-remove an active non-leader member (status left or removed).

        Raises:
            NotFound: the user is not an active member of the team.
            Forbidden: the entry belongs to the leader.
        """
        async with self.session() as s:
            member = (await s.execute(
                select(TeamMember).where(
                    TeamMember.team_id == team_id,
                    TeamMember.user_id == user_id,
                    TeamMember.status == MemberStatus.ACTIVE,
                ).with_for_update()
            )).scalar_one_or_none()
            if member is None:
                raise NotFound("You are not an active member of this team", user_id=str(user_id))
            if member.role == MemberRole.LEADER:
                raise Forbidden("The team leader cannot leave or be removed; transfer leadership first")

            member.status = status
            await s.flush()
            return await self._team_snapshot(s, team_id)

    async def check_in_team(self, team_id: uuid.UUID, *, actor_id: uuid.UUID) -> TeamRead:
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)
            team.checked_in = True
            team.checked_in_at = utcnow()
            team.checked_in_by_id = actor_id
            await s.flush()
            return await self._team_snapshot(s, team_id)

    async def check_in_member(self, team_id: uuid.UUID, user_id: uuid.UUID, *, actor_id: uuid.UUID) -> TeamRead:
        """
        Check in one active member; the team flag ``all_members_checked_in``
        follows once every active member is checked in.

        Raises:
            NotFound: the user is not an active member of the team.
        """
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)
            member = next(
                (m for m in team.members if m.user_id == user_id and m.status == MemberStatus.ACTIVE),
                None,
            )
            if member is None:
                raise NotFound("Member not found in this team", user_id=str(user_id))

            member.checked_in = True
            member.checked_in_at = utcnow()
            member.checked_in_by_id = actor_id
            team.all_members_checked_in = all(
                m.checked_in for m in team.members if m.status == MemberStatus.ACTIVE
            )

            await s.flush()
            return await self._team_snapshot(s, team_id)

    async def assign_table(self, team_id: uuid.UUID, *, table_number: str, team_number: Optional[str] = None) -> TeamRead:
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)
            team.table_number = table_number
            if team_number is not None:
                team.team_number = team_number
            await s.flush()
            return await self._team_snapshot(s, team_id)

    async def eliminate_team(
        self,
        team_id: uuid.UUID,
        *,
        round_id: Optional[uuid.UUID],
        reason: Optional[str],
        actor_id: uuid.UUID,
    ) -> TeamRead:
        """
        Mark a team eliminated; there is no way back.

        Raises:
            NotFound: unknown team.
            Conflict: the team is already eliminated.
        """
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)
            if team.is_eliminated:
                raise Conflict("Team is already eliminated", team_id=str(team_id))

            team.is_eliminated = True
            team.eliminated_at = utcnow()
            team.eliminated_in_round_id = round_id
            team.eliminated_by_id = actor_id
            team.elimination_reason = reason

            await s.flush()
            return await self._team_snapshot(s, team_id)

    # ---------------------------------
    # Team notes
    # ---------------------------------

    async def add_team_note(
        self,
        team_id: uuid.UUID,
        *,
        author_id: uuid.UUID,
        content: str,
        is_public: bool,
        is_organizer_note: bool,
    ) -> TeamNoteRead:
        async with self.session() as s:
            await self._load_team(s, team_id)
            note = TeamNote(
                team_id=team_id,
                author_id=author_id,
                content=content,
                is_public=is_public,
                is_organizer_note=is_organizer_note,
                created_at=utcnow(),
            )
            s.add(note)
            await s.flush()
            await s.refresh(note)

        return TeamNoteRead.model_validate(note)

    async def mark_note_notified(self, note_id: uuid.UUID) -> TeamNoteRead:
        async with self.session() as s:
            note = await s.get(TeamNote, note_id)
            if note is None:
                raise NotFound("Note not found", note_id=str(note_id))
            note.notified_at = utcnow()
            await s.flush()
            await s.refresh(note)

        return TeamNoteRead.model_validate(note)

    async def list_team_notes(self, team_id: uuid.UUID, *, public_only: bool = False) -> list[TeamNoteRead]:
        stmt = select(TeamNote).where(TeamNote.team_id == team_id)
        if public_only:
            stmt = stmt.where(TeamNote.is_public.is_(True))
        stmt = stmt.order_by(TeamNote.created_at.asc())

        async with self.session() as s:
            rows = (await s.execute(stmt)).scalars().all()

        return [TeamNoteRead.model_validate(r) for r in rows]

    # ---------------------------------
    # Join requests
    # ---------------------------------

    async def get_join_request(self, request_id: uuid.UUID) -> Optional[JoinRequestRead]:
        async with self.session() as s:
            row = await s.get(JoinRequest, request_id)

        return JoinRequestRead.model_validate(row) if row is not None else None

    async def create_join_request(
        self,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        sender_id: uuid.UUID,
        message: Optional[str],
        max_members: int,
    ) -> JoinRequestRead:
        """
        Create a pending request inviting ``user_id`` into the team.

        Raises:
            NotFound: unknown team.
            Conflict: the team is full, the target is active in a team of the
                hackathon, or a pending request to the target already exists.
        """
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)

            if await self._active_member_count(s, team_id) >= max_members:
                raise Conflict("Team is full", team_id=str(team_id), max_members=max_members)

            if await self._active_membership(s, team.hackathon_id, user_id) is not None:
                raise Conflict("User already has an active team in this hackathon", user_id=str(user_id))

            pending = (await s.execute(
                select(JoinRequest.id).where(
                    JoinRequest.team_id == team_id,
                    JoinRequest.user_id == user_id,
                    JoinRequest.status == JoinRequestStatus.PENDING,
                )
            )).first()
            if pending is not None:
                raise Conflict("A pending request to this user already exists", user_id=str(user_id))

            request = JoinRequest(
                team_id=team_id,
                hackathon_id=team.hackathon_id,
                user_id=user_id,
                sender_id=sender_id,
                message=message,
                status=JoinRequestStatus.PENDING,
                created_at=utcnow(),
            )
            s.add(request)
            await self._flush(s, "A pending request to this user already exists", user_id=str(user_id))
            await s.refresh(request)

        return JoinRequestRead.model_validate(request)

    async def accept_join_request(
        self,
        request_id: uuid.UUID,
        *,
        user_id: uuid.UUID,
        max_members: int,
    ) -> Tuple[JoinRequestRead, TeamRead]:
        """
        Accept a pending request addressed to ``user_id``.

        In one transaction: add the active member, mark the request accepted
        and reject every other pending request for the user in the hackathon.
        Re-accepting an accepted request finds nothing pending and raises NotFound.

        Raises:
            NotFound: no pending request with this id for the caller.
            Conflict: the user became active elsewhere or the team is full.
        """
        async with self.session() as s:
            request = (await s.execute(
                select(JoinRequest).where(
                    JoinRequest.id == request_id,
                    JoinRequest.user_id == user_id,
                    JoinRequest.status == JoinRequestStatus.PENDING,
                ).with_for_update()
            )).scalar_one_or_none()
            if request is None:
                raise NotFound("Join request not found or no longer pending", request_id=str(request_id))

            if await self._active_membership(s, request.hackathon_id, user_id) is not None:
                raise Conflict("You already have an active team in this hackathon", user_id=str(user_id))

            await self._load_team(s, request.team_id, lock=True)
            if await self._active_member_count(s, request.team_id) >= max_members:
                raise Conflict("Team is full", team_id=str(request.team_id), max_members=max_members)

            now = utcnow()
            s.add(TeamMember(
                team_id=request.team_id,
                hackathon_id=request.hackathon_id,
                user_id=user_id,
                role=MemberRole.MEMBER,
                status=MemberStatus.ACTIVE,
                joined_at=now,
            ))
            request.status = JoinRequestStatus.ACCEPTED
            request.responded_at = now

            await s.execute(
                update(JoinRequest)
                .where(
                    JoinRequest.user_id == user_id,
                    JoinRequest.hackathon_id == request.hackathon_id,
                    JoinRequest.status == JoinRequestStatus.PENDING,
                    JoinRequest.id != request.id,
                )
                .values(status=JoinRequestStatus.REJECTED, responded_at=now)
                .execution_options(synchronize_session=False)
            )

            await self._flush(s, "You already have an active team in this hackathon", user_id=str(user_id))
            await s.refresh(request)
            team = await self._team_snapshot(s, request.team_id)

        return JoinRequestRead.model_validate(request), team

    async def close_join_request(
        self,
        request_id: uuid.UUID,
        status: JoinRequestStatus,
    ) -> JoinRequestRead:
        """
        Move a pending request to rejected or cancelled.

        Raises:
            NotFound: unknown request.
            Conflict: the request is no longer pending.
        """
        async with self.session() as s:
            request = (await s.execute(
                select(JoinRequest).where(JoinRequest.id == request_id).with_for_update()
            )).scalar_one_or_none()
            if request is None:
                raise NotFound("Join request not found", request_id=str(request_id))
            if request.status != JoinRequestStatus.PENDING:
                raise Conflict("Join request is no longer pending", status=request.status.value)

            request.status = status
            request.responded_at = utcnow()
            await s.flush()
            await s.refresh(request)

        return JoinRequestRead.model_validate(request)

    async def list_join_requests(
        self,
        *,
        team_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        status: Optional[JoinRequestStatus] = None,
    ) -> list[JoinRequestRead]:
        stmt = select(JoinRequest)
        if team_id is not None:
            stmt = stmt.where(JoinRequest.team_id == team_id)
        if user_id is not None:
            stmt = stmt.where(JoinRequest.user_id == user_id)
        if status is not None:
            stmt = stmt.where(JoinRequest.status == status)
        stmt = stmt.order_by(JoinRequest.created_at.desc())

        async with self.session() as s:
            rows = (await s.execute(stmt)).scalars().all()

        return [JoinRequestRead.model_validate(r) for r in rows]

    async def search_team_candidates(
        self,
        hackathon_id: uuid.UUID,
        query: str,
        *,
        exclude_user_id: uuid.UUID,
        team_id: Optional[uuid.UUID] = None,
        limit: int = 50,
    ) -> list[TeamCandidate]:
        """
        Students matching ``query`` who are not active in any team of the hackathon.

        Users without roles count as students. With ``team_id`` each candidate
        is flagged when that team already has a pending request to them.
        """
        pattern = f"%{query.lower()}%"
        async with self.session() as s:
            busy = (
                select(TeamMember.user_id)
                .where(TeamMember.hackathon_id == hackathon_id, TeamMember.status == MemberStatus.ACTIVE)
                .scalar_subquery()
            )
            users = (await s.execute(
                select(User)
                .where(
                    or_(
                        func.lower(User.username).like(pattern),
                        func.lower(User.email).like(pattern),
                        func.lower(User.full_name).like(pattern),
                    ),
                    User.id != exclude_user_id,
                    User.id.not_in(busy),
                )
                .order_by(User.username.asc())
            )).scalars().all()
            users = [u for u in users if not u.roles or UserRole.STUDENT in u.roles][:limit]

            pending: set[uuid.UUID] = set()
            if team_id is not None and users:
                pending = set((await s.execute(
                    select(JoinRequest.user_id).where(
                        JoinRequest.team_id == team_id,
                        JoinRequest.status == JoinRequestStatus.PENDING,
                        JoinRequest.user_id.in_([u.id for u in users]),
                    )
                )).scalars().all())

        return [
            TeamCandidate(
                user_id=u.id,
                username=u.username,
                full_name=u.full_name,
                email=u.email,
                institution=u.institution,
                has_pending_request=u.id in pending,
            )
            for u in users
        ]

    # ---------------------------------
    # Rounds)
    # ---------------------------------

    async def create_round(self, hackathon_id: uuid.UUID, payload: RoundCreate) -> RoundRead:
        """
        Append a round to the hackathon with order = max(order) + 1.

        Raises:
            NotFound: unknown hackathon.
        """
        async with self.session() as s:
            await self._load_hackathon(s, hackathon_id, lock=True)
            last = (await s.execute(
                select(func.max(Round.order)).where(Round.hackathon_id == hackathon_id)
            )).scalar_one_or_none()

            rnd = Round(
                hackathon_id=hackathon_id,
                name=payload.name,
                description=payload.description,
                type=payload.type,
                mode=payload.mode,
                start_time=payload.start_time,
                end_time=payload.end_time,
                status=RoundStatus.PENDING,
                current_round=False,
                order=(last or 0) + 1,
                max_score=payload.max_score,
                is_elimination_round=payload.is_elimination_round,
                elimination_count=payload.elimination_count,
                location=payload.location,
                meeting_link=payload.meeting_link,
                instructions=payload.instructions,
                submission_config=payload.submission_config.model_dump(mode="json"),
                judging_criteria=[c.model_dump(mode="json") for c in payload.judging_criteria],
            )
            s.add(rnd)
            await s.flush()
            await s.refresh(rnd)

        return RoundRead.model_validate(rnd)

    async def get_round(self, round_id: uuid.UUID) -> Optional[RoundRead]:
        async with self.session() as s:
            row = await s.get(Round, round_id, populate_existing=True)

        return RoundRead.model_validate(row) if row is not None else None

    async def list_rounds(self, hackathon_id: uuid.UUID) -> list[RoundRead]:
        async with self.session() as s:
            rows = (await s.execute(
                select(Round)
                .where(Round.hackathon_id == hackathon_id)
                .order_by(Round.order.asc(), Round.start_time.asc())
            )).scalars().all()

        return [RoundRead.model_validate(r) for r in rows]

    async def get_current_round(self, hackathon_id: uuid.UUID) -> Optional[RoundRead]:
        async with self.session() as s:
            row = (await s.execute(
                select(Round).where(Round.hackathon_id == hackathon_id, Round.current_round.is_(True))
            )).scalars().first()

        return RoundRead.model_validate(row) if row is not None else None

    async def update_round(self, payload: RoundUpdate) -> RoundRead:
        """
        Partially update a round; status and the current flag are not touched here.

        Raises:
            NotFound: unknown round.
        """
        async with self.session() as s:
            rnd = await s.get(Round, payload.id)
            if rnd is None:
                raise NotFound("Round not found", round_id=str(payload.id))

            for field in (
                "name", "description", "type", "mode", "start_time", "end_time",
                "max_score", "is_elimination_round", "elimination_count",
                "location", "meeting_link", "instructions",
            ):
                value = getattr(payload, field)
                if provided(value):
                    setattr(rnd, field, value)

            if provided(payload.submission_config):
                rnd.submission_config = payload.submission_config.model_dump(mode="json")
            if provided(payload.judging_criteria):
                rnd.judging_criteria = [c.model_dump(mode="json") for c in payload.judging_criteria]

            await s.flush()
            await s.refresh(rnd)

        return RoundRead.model_validate(rnd)

    async def delete_round(self, round_id: uuid.UUID) -> None:
        """
        Delete a round unless it is current or referenced by a submission.

        Raises:
            NotFound: unknown round.
            Conflict: the round is current, or teams submitted to it
                (``submission_count`` in the details).
        """
        async with self.session() as s:
            rnd = (await s.execute(select(Round).where(Round.id == round_id).with_for_update())).scalar_one_or_none()
            if rnd is None:
                raise NotFound("Round not found", round_id=str(round_id))
            if rnd.current_round:
                raise Conflict("Cannot delete the current round", round_id=str(round_id))

            submission_count = int((await s.execute(
                select(func.count(func.distinct(Submission.team_id))).where(Submission.round_id == round_id)
            )).scalar_one())
            if submission_count:
                raise Conflict(
                    f"Cannot delete round: {submission_count} team(s) have submissions for it",
                    round_id=str(round_id),
                    submission_count=submission_count,
                )

            await s.execute(delete(Score).where(Score.round_id == round_id))
            await s.delete(rnd)

    async def reorder_rounds(self, hackathon_id: uuid.UUID, round_ids: list[uuid.UUID]) -> list[RoundRead]:
        """Listed rounds get order = position + 1; unlisted rounds keep theirs, unknown ids are ignored."""
        async with self.session() as s:
            await self._load_hackathon(s, hackathon_id, lock=True)
            rounds = {
                r.id: r for r in (await s.execute(
                    select(Round).where(Round.hackathon_id == hackathon_id)
                )).scalars().all()
            }
            for position, rid in enumerate(round_ids):
                rnd = rounds.get(rid)
                if rnd is not None:
                    rnd.order = position + 1
            await s.flush()

            ordered = sorted(rounds.values(), key=lambda r: r.order)
            return [RoundRead.model_validate(r) for r in ordered]

    async def set_round_status(
        self,
        round_id: uuid.UUID,
        status: RoundStatus,
        *,
        actual_start_time: Optional[datetime] = None,
        actual_end_time: Optional[datetime] = None,
    ) -> RoundRead:
        """
        Move a round along pending -> ongoing -> completed | cancelled.

        Setting ongoing locks the hackathon row, clears the current flag on
        every round of the hackathon and then sets it on this round, so only
        one round is ever current. Completed/cancelled clear this round's flag.

        Raises:
            NotFound: unknown round.
            Conflict: the transition is not allowed.
        """
        async with self.session() as s:
            rnd = await s.get(Round, round_id)
            if rnd is None:
                raise NotFound("Round not found", round_id=str(round_id))

            await self._load_hackathon(s, rnd.hackathon_id, lock=True)
            await s.refresh(rnd)

            if status != rnd.status and status not in ROUND_TRANSITIONS[rnd.status]:
                raise Conflict(
                    f"Cannot change round status from {rnd.status.value} to {status.value}",
                    current=rnd.status.value,
                    requested=status.value,
                )

            rnd.status = status
            if status == RoundStatus.ONGOING:
                await s.execute(
                    update(Round)
                    .where(
                        Round.hackathon_id == rnd.hackathon_id,
                        Round.id != rnd.id,
                        Round.current_round.is_(True),
                    )
                    .values(current_round=False)
                    .execution_options(synchronize_session=False)
                )
                rnd.current_round = True
                if rnd.actual_start_time is None or actual_start_time is not None:
                    rnd.actual_start_time = actual_start_time or utcnow()
            elif status in (RoundStatus.COMPLETED, RoundStatus.CANCELLED):
                rnd.current_round = False
                if actual_end_time is not None or rnd.actual_end_time is None:
                    rnd.actual_end_time = actual_end_time or utcnow()

            await self._flush(s, "Another round is already current", round_id=str(round_id))
            await s.refresh(rnd)

        return RoundRead.model_validate(rnd)

    async def count_submissions_by_round(self, hackathon_id: uuid.UUID) -> dict[uuid.UUID, int]:
        async with self.session() as s:
            rows = (await s.execute(
                select(Submission.round_id, func.count(Submission.id))
                .join(Round, Round.id == Submission.round_id)
                .where(Round.hackathon_id == hackathon_id)
                .group_by(Submission.round_id)
            )).all()

        return {round_id: int(count) for round_id, count in rows}

    # ---------------------------------
    # Submissions and scores
    # ---------------------------------

    async def create_submission(
        self,
        *,
        team_id: uuid.UUID,
        round_id: uuid.UUID,
        submitted_by_id: uuid.UUID,
        payload: SubmissionCreate,
        files: list[FileDescriptor],
    ) -> SubmissionRead:
        """
        Store the team's single submission for a round.

        Raises:
            Conflict: the team already submitted for this round (checked
                first, and backed by the unique (team, round) constraint).
        """
        async with self.session() as s:
            existing = (await s.execute(
                select(Submission.id).where(Submission.team_id == team_id, Submission.round_id == round_id)
            )).first()
            if existing is not None:
                raise Conflict("Submission already exists for this round", team_id=str(team_id), round_id=str(round_id))

            submission = Submission(
                team_id=team_id,
                round_id=round_id,
                submitted_by_id=submitted_by_id,
                submitted_at=utcnow(),
                project_link=payload.project_link,
                demo_link=payload.demo_link,
                video_link=payload.video_link,
                presentation_link=payload.presentation_link,
                github_repo=payload.github_repo,
                description=payload.description,
                tech_stack=list(payload.tech_stack),
                files=[f.model_dump(mode="json") for f in files],
                custom_fields=dict(payload.custom_fields),
            )
            s.add(submission)
            await self._flush(s, "Submission already exists for this round", team_id=str(team_id), round_id=str(round_id))
            await s.refresh(submission)

        return SubmissionRead.model_validate(submission)

    async def list_round_submissions(self, round_id: uuid.UUID) -> list[SubmissionRead]:
        async with self.session() as s:
            rows = (await s.execute(
                select(Submission).where(Submission.round_id == round_id).order_by(Submission.submitted_at.asc())
            )).scalars().all()

        return [SubmissionRead.model_validate(r) for r in rows]

    async def create_score(
        self,
        *,
        team_id: uuid.UUID,
        round_id: uuid.UUID,
        judge_id: uuid.UUID,
        criteria_scores: list[CriterionScore],
        remarks: Optional[str],
        feedback: Optional[str],
    ) -> TeamRead:
        """
        Store one finalized score and recompute the team's overall score as
        the mean total across all its scores.

        Raises:
            NotFound: unknown team.
            Conflict: this judge already scored the team for the round.
        """
        async with self.session() as s:
            team = await self._load_team(s, team_id, lock=True)

            existing = (await s.execute(
                select(Score.id).where(
                    Score.team_id == team_id,
                    Score.round_id == round_id,
                    Score.judge_id == judge_id,
                )
            )).first()
            if existing is not None:
                raise Conflict("You have already scored this team for this round", team_id=str(team_id), round_id=str(round_id))

            s.add(Score(
                team_id=team_id,
                round_id=round_id,
                judge_id=judge_id,
                criteria_scores=[c.model_dump(mode="json") for c in criteria_scores],
                total_score=sum(c.score for c in criteria_scores),
                max_possible_score=sum(c.max_score for c in criteria_scores),
                remarks=remarks,
                feedback=feedback,
                is_finalized=True,
                created_at=utcnow(),
            ))
            await self._flush(s, "You have already scored this team for this round", team_id=str(team_id), round_id=str(round_id))

            mean = (await s.execute(select(func.avg(Score.total_score)).where(Score.team_id == team_id))).scalar_one()
            team.overall_score = float(mean or 0.0)

            await s.flush()
            return await self._team_snapshot(s, team_id)

    async def round_score_averages(self, round_id: uuid.UUID) -> dict[uuid.UUID, Tuple[float, int]]:
        """Per team: (average finalized total, number of judges) for the round."""
        async with self.session() as s:
            rows = (await s.execute(
                select(Score.team_id, func.avg(Score.total_score), func.count(Score.id))
                .where(Score.round_id == round_id, Score.is_finalized.is_(True))
                .group_by(Score.team_id)
            )).all()

        return {team_id: (float(avg or 0.0), int(count)) for team_id, avg, count in rows}

    # ---------------------------------
    # Participants
    # ---------------------------------

    async def list_participants(self, hackathon_id: uuid.UUID) -> list[ParticipantRow]:
        async with self.session() as s:
            rows = (await s.execute(
                select(TeamMember, User, Team)
                .join(User, User.id == TeamMember.user_id)
                .join(Team, Team.id == TeamMember.team_id)
                .where(TeamMember.hackathon_id == hackathon_id, TeamMember.status == MemberStatus.ACTIVE)
                .order_by(Team.team_name.asc(), TeamMember.joined_at.asc())
            )).all()

        return [
            ParticipantRow(
                user_id=user.id,
                full_name=user.full_name,
                email=user.email,
                institution=user.institution,
                team_id=team.id,
                team_name=team.team_name,
                member_role=member.role.value,
                checked_in=member.checked_in,
                team_checked_in=team.checked_in,
                table_number=team.table_number,
            )
            for member, user, team in rows
        ]

    # ---------------------------------
    # Audit log helpers
    # ---------------------------------

    async def create_audit_log(self, payload: AuditLogCreate) -> AuditLogRead:
        """Persist a new audit log entry."""
        async with self.session() as s:
            record = AuditLog(
                actor_id=payload.actor_id,
                action=payload.action,
                payload=dict(payload.payload or {}),
            )
            s.add(record)
            await s.flush()
            await s.refresh(record)
            return AuditLogRead.model_validate(record)

    async def list_audit_logs(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        actor_id: uuid.UUID | None = None,
        action: str | None = None,
    ) -> tuple[list[AuditLogRead], int]:
        """Return paginated audit log entries filtered by actor/action."""
        limit = max(0, int(limit))
        offset = max(0, int(offset))

        async with self.session() as s:
            stmt = select(AuditLog).order_by(AuditLog.created_at.desc())
            count_stmt = select(func.count(AuditLog.id))
            if actor_id:
                stmt = stmt.where(AuditLog.actor_id == actor_id)
                count_stmt = count_stmt.where(AuditLog.actor_id == actor_id)
            if action:
                stmt = stmt.where(AuditLog.action == action)
                count_stmt = count_stmt.where(AuditLog.action == action)

            if limit:
                stmt = stmt.limit(limit)
            if offset:
                stmt = stmt.offset(offset)

            rows = (await s.execute(stmt)).scalars().all()
            total = int((await s.execute(count_stmt)).scalar_one())

        return [AuditLogRead.model_validate(row) for row in rows], total


def _already_invited(role: str, status: InvitationStatus) -> AlreadyInvited:
    if status == InvitationStatus.ACCEPTED:
        message = f"User is already an active {role} for this hackathon"
    else:
        message = f"User already has a pending {role} invitation; resend it instead"
    return AlreadyInvited(message, already_invited=True, status=status.value)


def check_team_size(active: int, min_members: int, max_members: int) -> None:
    if active < min_members:
        shortfall = min_members - active
        raise ValidationError(
            f"Team needs at least {min_members} members ({shortfall} more needed)",
            active_members=active,
            min_members=min_members,
            shortfall=shortfall,
        )
    if active > max_members:
        excess = active - max_members
        raise ValidationError(
            f"Team can have at most {max_members} members ({excess} too many)",
            active_members=active,
            max_members=max_members,
            excess=excess,
        )


def _check_bulk_target(team: Team, hackathon_id: Optional[uuid.UUID], require_submitted: bool) -> None:
    if hackathon_id is not None and team.hackathon_id != hackathon_id:
        raise NotFound("Team not found or wrong hackathon", team_id=str(team.id))
    if require_submitted and team.state != TeamState.SUBMITTED:
        raise Conflict("Team not in submitted status", team_id=str(team.id), state=team.state.value)


def _apply_auto_approval(
    team: Team,
    outcome: AutoApprovalOutcome,
    organizer_id: Optional[uuid.UUID],
    now: datetime,
) -> None:
    team.auto_approval_checked = True
    team.auto_approval_eligible = outcome.eligible
    team.auto_approval_reason = outcome.reason
    if outcome.eligible and team.state == TeamState.SUBMITTED:
        team.state = TeamState.APPROVED
        team.approved_at = now
        team.approved_by_id = organizer_id
        team.approval_source = ApprovalSource.SYSTEM
