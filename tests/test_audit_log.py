import pytest

from hackhub.errors import Forbidden
from hackhub.services.audit_log import audit_logger
from hackhub.services.hackathon import HackathonService
from hackhub.services.invitation import InvitationService
from hackhub.services.stats import StatsService
from hackhub.services.team import TeamService


@pytest.mark.asyncio
async def test_service_calls_are_audited(hackathon, register, organizer):
    team, leader = await register(hackathon)
    await TeamService().confirm_team(leader, team.id)

    entries, total = await audit_logger.list_entries(action="services.team.confirm_team")
    assert total == 1
    entry = entries[0]
    assert entry.actor_id == leader.id
    assert entry.payload["actor"]["username"] == leader.username
    assert entry.payload["arguments"]["team_id"] == str(team.id)
    assert entry.payload["result"]["state"] == "submitted"


@pytest.mark.asyncio
async def test_failed_calls_are_audited_with_error(hackathon, register, make_user):
    team, _leader = await register(hackathon)
    outsider = await make_user()

    with pytest.raises(Forbidden):
        await TeamService().approve_team(outsider, team.id)

    entries, total = await audit_logger.list_entries(actor_id=outsider.id)
    assert total == 1
    assert entries[0].action == "services.team.approve_team.error"
    error = entries[0].payload["error"]
    assert error["type"] == "Forbidden"
    assert error["error"] == "forbidden"


@pytest.mark.asyncio
async def test_read_only_calls_are_not_audited(hackathon, register):
    team, _leader = await register(hackathon)
    await TeamService().get_team(team.id)

    _entries, total = await audit_logger.list_entries(action="services.team.get_team")
    assert total == 0


@pytest.mark.asyncio
async def test_reads_listings_and_exports_are_not_audited(hackathon, register, organizer):
    await register(hackathon)
    hackathons = HackathonService()
    await hackathons.get_hackathon(hackathon.id)
    await hackathons.get_hackathon_by_slug(hackathon.slug)
    await hackathons.list_hackathons()
    await StatsService().export_teams_csv(organizer, hackathon.id)
    await InvitationService().list_coordinators(organizer, hackathon.id)

    entries, _total = await audit_logger.list_entries()
    actions = {e.action for e in entries}
    assert "services.hackathon.create_hackathon" in actions
    assert not {a for a in actions if a.startswith("services.stats.")}
    assert not actions & {
        "services.hackathon.get_hackathon",
        "services.hackathon.get_hackathon_by_slug",
        "services.hackathon.list_hackathons",
        "services.invitation.list_coordinators",
    }
