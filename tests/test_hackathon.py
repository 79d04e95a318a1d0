import uuid
from datetime import timedelta

import pytest

from hackhub.db.enums import HackathonStatus, Permission, UserRole
from hackhub.db.schemas.hackathon import HackathonCreate, HackathonUpdate
from hackhub.errors import Forbidden, NotFound, ValidationError
from hackhub.services.hackathon import HackathonService, make_slug
from hackhub.services.invitation import InvitationService
from hackhub.services.team import TeamService
from hackhub.utils.clock import utcnow


def test_make_slug_strips_punctuation():
    now = utcnow()
    slug = make_slug("AI Hack 2025!", now)
    assert slug == f"ai-hack-2025-{int(now.timestamp() * 1000)}"


@pytest.mark.asyncio
async def test_create_requires_organizer_role(make_user):
    student = await make_user("sam")
    now = utcnow()
    payload = HackathonCreate(
        title="Nope",
        registration_start=now,
        registration_end=now + timedelta(days=1),
        hackathon_start=now + timedelta(days=2),
        hackathon_end=now + timedelta(days=3),
    )
    with pytest.raises(Forbidden):
        await HackathonService().create_hackathon(student, payload)


@pytest.mark.asyncio
async def test_create_generates_slug_and_sets_organizer(hackathon, organizer):
    assert hackathon.organizer_id == organizer.id
    assert hackathon.slug.startswith("campus-hack-")
    assert hackathon.current_registrations == 0

    found = await HackathonService().get_hackathon_by_slug(hackathon.slug)
    assert found.id == hackathon.id


@pytest.mark.asyncio
async def test_create_rejects_unordered_dates(make_hackathon):
    now = utcnow()
    with pytest.raises(ValidationError):
        await make_hackathon(registration_end=now + timedelta(days=10))


@pytest.mark.asyncio
async def test_create_rejects_bad_team_bounds(make_hackathon):
    with pytest.raises(ValidationError):
        await make_hackathon(min_members=5, max_members=2)


@pytest.mark.asyncio
async def test_get_unknown_hackathon(database):
    with pytest.raises(NotFound):
        await HackathonService().get_hackathon(uuid.uuid4())


@pytest.mark.asyncio
async def test_update_keeps_max_teams_above_registrations(hackathon, organizer, register):
    await register(hackathon)
    await register(hackathon)

    with pytest.raises(ValidationError) as exc:
        await HackathonService().update_hackathon(organizer, HackathonUpdate(id=hackathon.id, max_teams=1))
    assert exc.value.details["current_registrations"] == 2

    updated = await HackathonService().update_hackathon(
        organizer, HackathonUpdate(id=hackathon.id, max_teams=2, title="Renamed")
    )
    assert updated.max_teams == 2
    assert updated.title == "Renamed"
    assert updated.description == hackathon.description


@pytest.mark.asyncio
async def test_max_teams_is_checked_against_the_live_counter(hackathon, register, database):
    assert hackathon.current_registrations == 0
    await register(hackathon)
    await register(hackathon)

    with pytest.raises(ValidationError) as exc:
        await database.update_hackathon(HackathonUpdate(id=hackathon.id, max_teams=1, title="Shrunk"))
    assert exc.value.details == {"max_teams": 1, "current_registrations": 2}

    stored = await database.get_hackathon(hackathon.id)
    assert stored.max_teams == hackathon.max_teams
    assert stored.title == hackathon.title


@pytest.mark.asyncio
async def test_update_by_stranger_is_forbidden(hackathon, make_user):
    stranger = await make_user("mallory", roles=[UserRole.ORGANIZER])
    with pytest.raises(Forbidden):
        await HackathonService().update_hackathon(stranger, HackathonUpdate(id=hackathon.id, title="Mine"))


@pytest.mark.asyncio
async def test_admin_may_update_any_hackathon(hackathon, admin):
    updated = await HackathonService().update_hackathon(
        admin, HackathonUpdate(id=hackathon.id, status=HackathonStatus.REGISTRATION_CLOSED)
    )
    assert updated.status == HackathonStatus.REGISTRATION_CLOSED


@pytest.mark.asyncio
async def test_registration_open_predicate(hackathon):
    svc = HackathonService()
    now = utcnow()
    assert svc.is_registration_open(hackathon, now)
    assert not svc.is_registration_open(hackathon, hackathon.registration_end + timedelta(seconds=1))

    closed = hackathon.model_copy(update={"status": HackathonStatus.DRAFT})
    assert not svc.is_registration_open(closed, now)

    full = hackathon.model_copy(update={"current_registrations": hackathon.max_teams})
    assert not svc.is_registration_open(full, now)


@pytest.mark.asyncio
async def test_has_permission_follows_coordinator_entry(hackathon, organizer, make_user):
    coordinator = await make_user("cora")
    svc = HackathonService()

    assert await svc.has_permission(organizer, hackathon, Permission.ELIMINATE_TEAMS)
    assert not await svc.has_permission(coordinator, hackathon, Permission.CHECK_IN)

    await InvitationService().invite_coordinator(organizer, hackathon.id, coordinator.id)
    assert not await svc.has_permission(coordinator, hackathon, Permission.CHECK_IN)

    await InvitationService().accept_coordinator_invitation(coordinator, hackathon.id)
    assert await svc.has_permission(coordinator, hackathon, Permission.CHECK_IN)
    assert not await svc.has_permission(coordinator, hackathon, Permission.ELIMINATE_TEAMS)
    assert await svc.has_role(coordinator, hackathon, UserRole.COORDINATOR)
    assert await svc.has_role(organizer, hackathon, UserRole.ORGANIZER)


@pytest.mark.asyncio
async def test_delete_cascades_teams(hackathon, organizer, register):
    team, _leader = await register(hackathon)
    await HackathonService().delete_hackathon(organizer, hackathon.id)

    with pytest.raises(NotFound):
        await TeamService().get_team(team.id)


@pytest.mark.asyncio
async def test_listings(make_hackathon, organizer, make_user):
    open_one = await make_hackathon(title="Open")
    await make_hackathon(title="Draft", status=HackathonStatus.DRAFT)

    items, total = await HackathonService().list_hackathons(status=[HackathonStatus.REGISTRATION_OPEN])
    assert total == 1
    assert [h.id for h in items] == [open_one.id]
    assert len(await HackathonService().list_organized(organizer)) == 2

    coordinator = await make_user("cora")
    await InvitationService().invite_coordinator(organizer, open_one.id, coordinator.id)
    assert await HackathonService().list_coordinations(coordinator) == []
    await InvitationService().accept_coordinator_invitation(coordinator, open_one.id)
    assert [h.id for h in await HackathonService().list_coordinations(coordinator)] == [open_one.id]
