import pytest

from hackhub.db.enums import JoinRequestStatus, MemberRole, NotificationKind, UserRole
from hackhub.errors import BadRequest, Conflict, Forbidden, NotFound
from hackhub.services.join_request import JoinRequestService
from hackhub.services.notifications import notifier


@pytest.fixture
def requests_svc():
    return JoinRequestService()


@pytest.mark.asyncio
async def test_leader_sends_request_and_target_is_notified(hackathon, register, make_user, requests_svc, sender):
    team, leader = await register(hackathon)
    target = await make_user("tina")

    request = await requests_svc.send_join_request(leader, team.id, target.id, "Join us!")
    assert request.status == JoinRequestStatus.PENDING
    assert request.sender_id == leader.id
    assert request.hackathon_id == hackathon.id

    await notifier.flush()
    kind, recipient, context = sender.sent[0]
    assert kind == NotificationKind.JOIN_REQUEST
    assert recipient.id == target.id
    assert context["team_name"] == team.team_name
    assert context["message"] == "Join us!"

    with pytest.raises(Conflict):
        await requests_svc.send_join_request(leader, team.id, target.id)


@pytest.mark.asyncio
async def test_only_leader_may_send(hackathon, register, make_user, requests_svc):
    mate = await make_user()
    team, _leader = await register(hackathon, member_ids=[mate.id])
    with pytest.raises(Forbidden):
        await requests_svc.send_join_request(mate, team.id, (await make_user()).id)


@pytest.mark.asyncio
async def test_accept_rejects_other_pending_requests(hackathon, register, make_user, requests_svc):
    first, first_leader = await register(hackathon)
    second, second_leader = await register(hackathon)
    target = await make_user("tina")

    chosen = await requests_svc.send_join_request(first_leader, first.id, target.id)
    other = await requests_svc.send_join_request(second_leader, second.id, target.id)

    team = await requests_svc.accept_join_request(target, chosen.id)
    assert team.id == first.id
    assert team.member(target.id).role == MemberRole.MEMBER

    assert await requests_svc.list_my_join_requests(target) == []
    closed = await requests_svc.list_team_join_requests(second_leader, second.id)
    assert [(r.id, r.status) for r in closed] == [(other.id, JoinRequestStatus.REJECTED)]

    with pytest.raises(NotFound):
        await requests_svc.accept_join_request(target, chosen.id)


@pytest.mark.asyncio
async def test_accept_addressed_to_someone_else(hackathon, register, make_user, requests_svc):
    team, leader = await register(hackathon)
    target = await make_user()
    request = await requests_svc.send_join_request(leader, team.id, target.id)

    with pytest.raises(NotFound):
        await requests_svc.accept_join_request(await make_user(), request.id)


@pytest.mark.asyncio
async def test_full_team_cannot_grow(make_hackathon, register, make_user, requests_svc):
    hackathon = await make_hackathon(max_members=2)
    first_target = await make_user()
    second_target = await make_user()
    team, leader = await register(hackathon)

    first = await requests_svc.send_join_request(leader, team.id, first_target.id)
    second = await requests_svc.send_join_request(leader, team.id, second_target.id)
    await requests_svc.accept_join_request(first_target, first.id)

    with pytest.raises(Conflict):
        await requests_svc.accept_join_request(second_target, second.id)
    with pytest.raises(Conflict):
        await requests_svc.send_join_request(leader, team.id, (await make_user()).id)


@pytest.mark.asyncio
async def test_target_already_in_a_team(hackathon, register, requests_svc):
    team, leader = await register(hackathon)
    _other, busy = await register(hackathon)
    with pytest.raises(Conflict):
        await requests_svc.send_join_request(leader, team.id, busy.id)


@pytest.mark.asyncio
async def test_reject_and_cancel_permissions(hackathon, register, make_user, requests_svc):
    team, leader = await register(hackathon)
    target = await make_user()
    stranger = await make_user()

    to_reject = await requests_svc.send_join_request(leader, team.id, target.id)
    with pytest.raises(Forbidden):
        await requests_svc.reject_join_request(leader, to_reject.id)
    rejected = await requests_svc.reject_join_request(target, to_reject.id)
    assert rejected.status == JoinRequestStatus.REJECTED
    assert rejected.responded_at is not None

    with pytest.raises(Conflict):
        await requests_svc.reject_join_request(target, to_reject.id)

    to_cancel = await requests_svc.send_join_request(leader, team.id, target.id)
    with pytest.raises(Forbidden):
        await requests_svc.cancel_join_request(stranger, to_cancel.id)
    cancelled = await requests_svc.cancel_join_request(leader, to_cancel.id)
    assert cancelled.status == JoinRequestStatus.CANCELLED

    with pytest.raises(Conflict):
        await requests_svc.cancel_join_request(leader, to_cancel.id)


@pytest.mark.asyncio
async def test_list_team_requests_is_leader_only(hackathon, register, make_user, requests_svc):
    team, leader = await register(hackathon)
    target = await make_user()
    await requests_svc.send_join_request(leader, team.id, target.id)

    with pytest.raises(Forbidden):
        await requests_svc.list_team_join_requests(target, team.id)
    pending = await requests_svc.list_team_join_requests(leader, team.id, JoinRequestStatus.PENDING)
    assert [r.user_id for r in pending] == [target.id]
    assert len(await requests_svc.list_my_join_requests(target)) == 1


@pytest.mark.asyncio
async def test_search_candidates_skips_busy_users_and_flags_pending(hackathon, register, make_user, requests_svc):
    leader = await make_user("zeta-lead")
    team, _leader = await register(hackathon, leader=leader)
    free = await make_user("zeta-free")
    invited = await make_user("zeta-invited")
    busy = await make_user("zeta-busy")
    await register(hackathon, leader=busy)
    await make_user("zeta-staff", roles=[UserRole.ORGANIZER])
    await requests_svc.send_join_request(leader, team.id, invited.id)

    candidates = await requests_svc.search_team_candidates(leader, team.id, "ZETA")

    assert [c.username for c in candidates] == ["zeta-free", "zeta-invited"]
    flags = {c.user_id: c.has_pending_request for c in candidates}
    assert flags == {free.id: False, invited.id: True}


@pytest.mark.asyncio
async def test_search_candidates_is_leader_only_and_needs_a_query(hackathon, register, make_user, requests_svc):
    mate = await make_user()
    team, leader = await register(hackathon, member_ids=[mate.id])

    with pytest.raises(Forbidden):
        await requests_svc.search_team_candidates(mate, team.id, "user")
    with pytest.raises(BadRequest):
        await requests_svc.search_team_candidates(leader, team.id, " a ")
