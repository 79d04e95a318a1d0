import os
import tempfile
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Any

_DB_DIR = tempfile.mkdtemp(prefix="hackhub-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_DB_DIR) / 'hackhub.db'}"
os.environ.setdefault("BOT_TOKEN", "")

import pytest
import pytest_asyncio

from hackhub.db.database import DataBase
from hackhub.db.enums import HackathonStatus, NotificationKind, UserRole
from hackhub.db.schemas.hackathon import HackathonCreate, HackathonRead, HackathonSettings
from hackhub.db.schemas.team import TeamCreate
from hackhub.db.schemas.user import UserCreate, UserRead
from hackhub.services.hackathon import HackathonService
from hackhub.services.notifications import notifier
from hackhub.services.team import TeamService
from hackhub.services.user import UserService
from hackhub.utils.clock import utcnow


class RecordingSender:
    """Collects notifications instead of delivering them."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[NotificationKind, UserRead, dict[str, Any]]] = []
        self.fail = fail

    async def send(self, kind, recipient, context) -> bool:
        if self.fail:
            raise RuntimeError("delivery backend is down")
        self.sent.append((kind, recipient, context))
        return True

    def kinds(self) -> list[NotificationKind]:
        return [kind for kind, _recipient, _context in self.sent]


@pytest_asyncio.fixture(autouse=True)
async def database():
    db = DataBase()
    await db.drop_all()
    await db.create_all()
    notifier.clear()
    yield db
    notifier.clear()
    await db.dispose()


@pytest.fixture
def sender():
    recorder = RecordingSender()
    notifier.clear()
    notifier.bind_sender(recorder)
    yield recorder
    notifier.clear()
    notifier.bind_sender(None)


@pytest.fixture
def make_user(database):
    async def factory(username: str | None = None, **fields: Any) -> UserRead:
        username = username or f"user-{uuid.uuid4().hex[:8]}"
        fields.setdefault("email", f"{username}@campus.edu")
        fields.setdefault("full_name", username.title())
        return await UserService().create_user(UserCreate(username=username, **fields))
    return factory


@pytest_asyncio.fixture
async def organizer(make_user) -> UserRead:
    return await make_user("olivia", roles=[UserRole.ORGANIZER])


@pytest_asyncio.fixture
async def admin(make_user) -> UserRead:
    return await make_user("root", roles=[UserRole.ADMIN])


@pytest.fixture
def make_hackathon(organizer):
    async def factory(owner: UserRead | None = None, **fields: Any) -> HackathonRead:
        now = utcnow()
        settings = fields.pop("settings", None) or HackathonSettings()
        data = dict(
            title="Campus Hack",
            status=HackathonStatus.REGISTRATION_OPEN,
            registration_start=now - timedelta(days=1),
            registration_end=now + timedelta(days=5),
            hackathon_start=now + timedelta(days=6),
            hackathon_end=now + timedelta(days=8),
            min_members=1,
            max_members=4,
            max_teams=10,
            settings=settings,
        )
        data.update(fields)
        return await HackathonService().create_hackathon(owner or organizer, HackathonCreate(**data))
    return factory


@pytest_asyncio.fixture
async def hackathon(make_hackathon) -> HackathonRead:
    return await make_hackathon()


@pytest.fixture
def register(make_user):
    async def factory(hackathon: HackathonRead, leader: UserRead | None = None, **fields: Any):
        leader = leader or await make_user()
        fields.setdefault("team_name", f"team-{uuid.uuid4().hex[:6]}")
        registration = await TeamService().register_team(
            leader, TeamCreate(hackathon_id=hackathon.id, **fields)
        )
        return registration.team, leader
    return factory
