import uuid
from datetime import timedelta

import pytest

from hackhub.db.enums import RoundMode, RoundStatus, RoundType
from hackhub.db.schemas.round import RoundCreate, RoundUpdate
from hackhub.db.schemas.submission import SubmissionCreate
from hackhub.errors import BadRequest, Conflict, Forbidden, ValidationError
from hackhub.services.round import RoundService
from hackhub.services.submission import SubmissionService
from hackhub.utils.clock import utcnow


@pytest.fixture
def rounds():
    return RoundService()


@pytest.fixture
def make_round(organizer, rounds):
    async def factory(hackathon, name="Ideation", **fields):
        start = fields.pop("start_time", utcnow() + timedelta(days=6))
        payload = RoundCreate(
            name=name,
            type=fields.pop("type", RoundType.SUBMISSION),
            mode=fields.pop("mode", RoundMode.ONLINE),
            start_time=start,
            end_time=fields.pop("end_time", start + timedelta(hours=4)),
            **fields,
        )
        return await rounds.create_round(organizer, hackathon.id, payload)
    return factory


@pytest.mark.asyncio
async def test_create_requires_all_fields(hackathon, organizer, rounds):
    with pytest.raises(ValidationError) as exc:
        await rounds.create_round(organizer, hackathon.id, RoundCreate(name="Pitch", type=RoundType.PRESENTATION))
    assert exc.value.details["missing"] == ["mode", "start_time", "end_time"]


@pytest.mark.asyncio
async def test_create_rejects_inverted_window(hackathon, make_round):
    start = utcnow() + timedelta(days=6)
    with pytest.raises(ValidationError):
        await make_round(hackathon, start_time=start, end_time=start - timedelta(minutes=1))


@pytest.mark.asyncio
async def test_only_organizer_manages_rounds(hackathon, make_user, rounds):
    start = utcnow()
    payload = RoundCreate(
        name="Sneaky",
        type=RoundType.OTHER,
        mode=RoundMode.OFFLINE,
        start_time=start,
        end_time=start + timedelta(hours=1),
    )
    with pytest.raises(Forbidden):
        await rounds.create_round(await make_user(), hackathon.id, payload)


@pytest.mark.asyncio
async def test_rounds_are_appended_in_order(hackathon, make_round, rounds):
    first = await make_round(hackathon, "Ideation")
    second = await make_round(hackathon, "Prototype")
    third = await make_round(hackathon, "Finale")

    assert [first.order, second.order, third.order] == [1, 2, 3]
    assert first.status == RoundStatus.PENDING
    assert not first.current_round
    assert [r.name for r in await rounds.get_rounds(hackathon.id)] == ["Ideation", "Prototype", "Finale"]


@pytest.mark.asyncio
async def test_only_one_round_is_current(hackathon, organizer, make_round, rounds):
    first = await make_round(hackathon, "Ideation")
    second = await make_round(hackathon, "Prototype")

    started = await rounds.set_round_status(organizer, first.id, RoundStatus.ONGOING)
    assert started.current_round
    assert started.actual_start_time is not None

    await rounds.set_round_status(organizer, second.id, RoundStatus.ONGOING)
    current = await rounds.get_current_round(hackathon.id)
    assert current.id == second.id
    assert not (await rounds.get_round(first.id)).current_round

    done = await rounds.set_round_status(organizer, second.id, RoundStatus.COMPLETED)
    assert not done.current_round
    assert done.actual_end_time is not None
    assert await rounds.get_current_round(hackathon.id) is None


@pytest.mark.asyncio
async def test_status_transitions_move_forward_only(hackathon, organizer, make_round, rounds):
    rnd = await make_round(hackathon)

    with pytest.raises(Conflict):
        await rounds.set_round_status(organizer, rnd.id, RoundStatus.COMPLETED)

    await rounds.set_round_status(organizer, rnd.id, RoundStatus.CANCELLED)
    with pytest.raises(Conflict) as exc:
        await rounds.set_round_status(organizer, rnd.id, RoundStatus.ONGOING)
    assert exc.value.details == {"current": "cancelled", "requested": "ongoing"}


@pytest.mark.asyncio
async def test_update_merges_time_window(hackathon, organizer, make_round, rounds):
    rnd = await make_round(hackathon)

    with pytest.raises(ValidationError):
        await rounds.update_round(organizer, RoundUpdate(id=rnd.id, end_time=rnd.start_time))

    updated = await rounds.update_round(
        organizer, RoundUpdate(id=rnd.id, name="Ideation v2", end_time=rnd.end_time + timedelta(hours=1))
    )
    assert updated.name == "Ideation v2"
    assert updated.start_time == rnd.start_time
    assert updated.status == RoundStatus.PENDING


@pytest.mark.asyncio
async def test_delete_rules(hackathon, organizer, register, make_round, rounds):
    current = await make_round(hackathon, "Live")
    submitted = await make_round(hackathon, "Submitted")
    empty = await make_round(hackathon, "Empty")

    await rounds.set_round_status(organizer, current.id, RoundStatus.ONGOING)
    with pytest.raises(Conflict):
        await rounds.delete_round(organizer, current.id)

    team, leader = await register(hackathon)
    await SubmissionService().submit_project(leader, team.id, submitted.id, SubmissionCreate(project_link="https://example.org"))
    with pytest.raises(Conflict) as exc:
        await rounds.delete_round(organizer, submitted.id)
    assert exc.value.details["submission_count"] == 1

    await rounds.delete_round(organizer, empty.id)
    assert [r.name for r in await rounds.get_rounds(hackathon.id)] == ["Live", "Submitted"]


@pytest.mark.asyncio
async def test_reorder_ignores_unknown_ids(hackathon, organizer, make_round, rounds):
    first = await make_round(hackathon, "A")
    second = await make_round(hackathon, "B")
    third = await make_round(hackathon, "C")

    reordered = await rounds.reorder_rounds(
        organizer, hackathon.id, [third.id, "garbage", uuid.uuid4(), first.id]
    )
    orders = {r.name: r.order for r in reordered}
    assert orders["C"] == 1
    assert orders["A"] == 3
    assert orders["B"] == second.order

    with pytest.raises(BadRequest):
        await rounds.reorder_rounds(organizer, hackathon.id, "A,B,C")
