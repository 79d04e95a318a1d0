import pytest

from hackhub.db.enums import InvitationStatus, NotificationKind, UserRole
from hackhub.db.schemas.coordinator import CoordinatorPermissions, CoordinatorPermissionsUpdate
from hackhub.db.schemas.team import TeamCreate
from hackhub.errors import AlreadyInvited, BadRequest, Conflict, Forbidden, NotFound
from hackhub.services.access import RoleGuard
from hackhub.services.invitation import InvitationService
from hackhub.services.notifications import notifier
from hackhub.services.team import TeamService
from hackhub.services.user import UserService


@pytest.fixture
def invitations():
    return InvitationService()


@pytest.mark.asyncio
async def test_invite_coordinator_creates_pending_record_and_notifies(hackathon, organizer, make_user, invitations, sender):
    target = await make_user("cora", tg_id=1001)

    invitation = await invitations.invite_coordinator(organizer, hackathon.id, target.email)

    assert invitation.status == InvitationStatus.PENDING
    assert invitation.permissions == CoordinatorPermissions()
    assert len(invitation.invitation_token) == 64

    assert await notifier.flush() == 1
    kind, recipient, context = sender.sent[0]
    assert kind == NotificationKind.COORDINATOR_INVITATION
    assert recipient.id == target.id
    assert context["token"] == invitation.invitation_token
    assert context["hackathon_title"] == hackathon.title


@pytest.mark.asyncio
async def test_only_organizer_may_invite(hackathon, make_user, invitations):
    outsider = await make_user("eve")
    target = await make_user("cora")
    with pytest.raises(Forbidden):
        await invitations.invite_coordinator(outsider, hackathon.id, target.id)


@pytest.mark.asyncio
async def test_unknown_target_is_not_found(hackathon, organizer, invitations):
    with pytest.raises(NotFound):
        await invitations.invite_coordinator(organizer, hackathon.id, "ghost@campus.edu")


@pytest.mark.asyncio
async def test_second_invitation_reports_existing_status(hackathon, organizer, make_user, invitations):
    target = await make_user("cora")
    await invitations.invite_coordinator(organizer, hackathon.id, target.id)

    with pytest.raises(AlreadyInvited) as pending:
        await invitations.invite_coordinator(organizer, hackathon.id, target.id)
    assert pending.value.details == {"already_invited": True, "status": "pending"}
    assert "resend" in pending.value.message

    await invitations.accept_coordinator_invitation(target, hackathon.id)
    with pytest.raises(AlreadyInvited) as accepted:
        await invitations.invite_coordinator(organizer, hackathon.id, target.id)
    assert accepted.value.details["status"] == "accepted"
    assert isinstance(accepted.value, Conflict)


@pytest.mark.asyncio
async def test_participant_cannot_be_invited(hackathon, organizer, register, invitations):
    _team, leader = await register(hackathon)
    with pytest.raises(Conflict):
        await invitations.invite_coordinator(organizer, hackathon.id, leader.id)
    with pytest.raises(Conflict):
        await invitations.invite_judge(organizer, hackathon.id, leader.id)


@pytest.mark.asyncio
async def test_former_member_can_be_invited_after_leaving(hackathon, organizer, register, make_user, invitations):
    member = await make_user("mika")
    team, _leader = await register(hackathon, member_ids=[member.id])

    with pytest.raises(Conflict):
        await invitations.invite_coordinator(organizer, hackathon.id, member.id)

    await TeamService().leave_team(member, team.id)
    invitation = await invitations.invite_coordinator(organizer, hackathon.id, member.id)

    assert invitation.status == InvitationStatus.PENDING
    assert invitation.user_id == member.id
    assert invitation.invitation_token


@pytest.mark.asyncio
async def test_accept_blocked_when_user_joined_a_team_meanwhile(hackathon, organizer, make_user, invitations):
    target = await make_user("cora")
    await invitations.invite_coordinator(organizer, hackathon.id, target.id)

    await TeamService().register_team(target, TeamCreate(hackathon_id=hackathon.id, team_name="Sneaky"))

    with pytest.raises(Conflict):
        await invitations.accept_coordinator_invitation(target, hackathon.id)
    record = (await invitations.list_coordinators(organizer, hackathon.id))[0]
    assert record.status == InvitationStatus.PENDING


@pytest.mark.asyncio
async def test_accept_grants_role_and_entry(hackathon, organizer, make_user, invitations):
    target = await make_user("cora")
    await invitations.invite_coordinator(
        organizer, hackathon.id, target.id, CoordinatorPermissions(can_eliminate_teams=True)
    )

    accepted = await invitations.accept_coordinator_invitation(target, hackathon.id)
    assert accepted.status == InvitationStatus.ACCEPTED
    assert accepted.accepted_at is not None

    refreshed = await UserService().get_user(target.id)
    assert refreshed.has_role(UserRole.COORDINATOR)

    hackathon_read = await RoleGuard().load_hackathon(hackathon.id)
    permissions = await RoleGuard().coordinator_permissions(refreshed, hackathon_read)
    assert permissions.can_eliminate_teams

    with pytest.raises(NotFound):
        await invitations.accept_coordinator_invitation(target, hackathon.id)


@pytest.mark.asyncio
async def test_resend_regenerates_token_only_while_pending(hackathon, organizer, make_user, invitations, sender):
    target = await make_user("cora")
    first = await invitations.invite_coordinator(organizer, hackathon.id, target.id)
    second = await invitations.resend_coordinator_invite(organizer, hackathon.id, target.id)

    assert second.invitation_token != first.invitation_token
    assert notifier.pending == 2

    await invitations.accept_coordinator_invitation(target, hackathon.id)
    with pytest.raises(BadRequest):
        await invitations.resend_coordinator_invite(organizer, hackathon.id, target.id)


@pytest.mark.asyncio
async def test_cancel_only_touches_pending_records(hackathon, organizer, make_user, invitations):
    pending_user = await make_user("pat")
    accepted_user = await make_user("ace")
    await invitations.invite_coordinator(organizer, hackathon.id, pending_user.id)
    await invitations.invite_coordinator(organizer, hackathon.id, accepted_user.id)
    await invitations.accept_coordinator_invitation(accepted_user, hackathon.id)

    await invitations.cancel_coordinator_invite(organizer, hackathon.id, pending_user.id)
    with pytest.raises(NotFound):
        await invitations.cancel_coordinator_invite(organizer, hackathon.id, accepted_user.id)

    records = await invitations.list_coordinators(organizer, hackathon.id)
    assert [r.user_id for r in records] == [accepted_user.id]


@pytest.mark.asyncio
async def test_remove_coordinator_revokes_authorization(hackathon, organizer, make_user, invitations):
    target = await make_user("cora")
    await invitations.invite_coordinator(organizer, hackathon.id, target.id)
    await invitations.accept_coordinator_invitation(target, hackathon.id)

    guard = RoleGuard()
    assert await guard.is_coordinator(target, hackathon)

    await invitations.remove_coordinator(organizer, hackathon.id, target.id)
    assert not await guard.is_coordinator(target, hackathon)
    assert await invitations.list_coordinators(organizer, hackathon.id) == []

    with pytest.raises(NotFound):
        await invitations.remove_coordinator(organizer, hackathon.id, target.id)


@pytest.mark.asyncio
async def test_update_permissions_merges_supplied_fields(hackathon, organizer, make_user, invitations):
    target = await make_user("cora")
    await invitations.invite_coordinator(organizer, hackathon.id, target.id)

    with pytest.raises(NotFound):
        await invitations.update_coordinator_permissions(
            organizer, hackathon.id, target.id, CoordinatorPermissionsUpdate(can_assign_tables=True)
        )

    await invitations.accept_coordinator_invitation(target, hackathon.id)
    entry = await invitations.update_coordinator_permissions(
        organizer, hackathon.id, target.id, CoordinatorPermissionsUpdate(can_assign_tables=True, can_check_in=False)
    )
    assert entry.permissions.can_assign_tables
    assert not entry.permissions.can_check_in
    assert entry.permissions.can_view_teams

    record = (await invitations.list_coordinators(organizer, hackathon.id))[0]
    assert record.permissions == entry.permissions


@pytest.mark.asyncio
async def test_search_staff_candidates(hackathon, organizer, make_user, register, invitations):
    with pytest.raises(BadRequest):
        await invitations.search_staff_candidates(organizer, hackathon.id, "a")

    member = await make_user("alice-member")
    await register(hackathon, leader=member, team_name="Alpha")
    pending = await make_user("alice-pending")
    await invitations.invite_coordinator(organizer, hackathon.id, pending.id)

    results = {c.username: c for c in await invitations.search_staff_candidates(organizer, hackathon.id, "alice")}
    assert results["alice-member"].is_participant
    assert results["alice-member"].team_name == "Alpha"
    assert results["alice-pending"].is_pending_coordinator
    assert not results["alice-pending"].is_coordinator


@pytest.mark.asyncio
async def test_judge_flow_snapshots_profile(hackathon, organizer, make_user, invitations, sender):
    judge = await make_user("jude", bio="ML researcher", skills=["ml", "nlp"])

    invitation = await invitations.invite_judge(organizer, hackathon.id, judge.username)
    assert invitation.status == InvitationStatus.PENDING
    with pytest.raises(AlreadyInvited):
        await invitations.invite_judge(organizer, hackathon.id, judge.id)

    await invitations.accept_judge_invitation(judge, hackathon.id)
    panel = await invitations.list_judges(hackathon.id)
    assert len(panel) == 1
    assert panel[0].name == judge.full_name
    assert panel[0].bio == "ML researcher"
    assert panel[0].expertise == ["ml", "nlp"]
    assert (await UserService().get_user(judge.id)).has_role(UserRole.JUDGE)

    with pytest.raises(BadRequest):
        await invitations.resend_judge_invite(organizer, hackathon.id, judge.id)

    await invitations.remove_judge(organizer, hackathon.id, judge.id)
    assert await invitations.list_judges(hackathon.id) == []


@pytest.mark.asyncio
async def test_staff_cannot_register_a_team(hackathon, organizer, make_user, invitations):
    judge = await make_user("jude")
    await invitations.invite_judge(organizer, hackathon.id, judge.id)
    await invitations.accept_judge_invitation(judge, hackathon.id)

    with pytest.raises(Conflict) as exc:
        await TeamService().register_team(judge, TeamCreate(hackathon_id=hackathon.id, team_name="Judges"))
    assert exc.value.details["role"] == "judge"
