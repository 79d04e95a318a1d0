from datetime import timedelta

import pytest
import pytest_asyncio

from hackhub.db.enums import ProjectStatus, RoundMode, RoundType
from hackhub.db.schemas.round import RoundCreate
from hackhub.db.schemas.score import CriterionScore, ScoreCreate
from hackhub.db.schemas.submission import FileDescriptor, SubmissionCreate
from hackhub.errors import Conflict, Forbidden, NotFound, ValidationError
from hackhub.services.invitation import InvitationService
from hackhub.services.round import RoundService
from hackhub.services.submission import SubmissionService
from hackhub.utils.clock import utcnow


@pytest.fixture
def submissions():
    return SubmissionService()


async def _round(organizer, hackathon, name="Prototype"):
    start = utcnow() + timedelta(days=6)
    return await RoundService().create_round(
        organizer,
        hackathon.id,
        RoundCreate(
            name=name,
            type=RoundType.SUBMISSION,
            mode=RoundMode.ONLINE,
            start_time=start,
            end_time=start + timedelta(hours=6),
        ),
    )


@pytest_asyncio.fixture
async def round_(organizer, hackathon):
    return await _round(organizer, hackathon)


@pytest.fixture
def make_judge(organizer, make_user):
    async def factory(hackathon):
        judge = await make_user()
        await InvitationService().invite_judge(organizer, hackathon.id, judge.id)
        await InvitationService().accept_judge_invitation(judge, hackathon.id)
        return judge
    return factory


def _scores(*points):
    return ScoreCreate(
        criteria_scores=[CriterionScore(criterion=f"c{i}", score=p, max_score=10) for i, p in enumerate(points)]
    )


@pytest.mark.asyncio
async def test_member_submits_once_per_round(hackathon, register, make_user, round_, submissions):
    mate = await make_user()
    team, _leader = await register(hackathon, member_ids=[mate.id])

    submission = await submissions.submit_project(
        mate,
        team.id,
        round_.id,
        SubmissionCreate(github_repo="https://git.example.org/team", tech_stack=["fastapi"]),
        files=[FileDescriptor(name="deck.pdf", url="https://files.example.org/deck.pdf")],
    )
    assert submission.submitted_by_id == mate.id
    assert submission.status == ProjectStatus.SUBMITTED
    assert [f.name for f in submission.files] == ["deck.pdf"]

    with pytest.raises(Conflict):
        await submissions.submit_project(mate, team.id, round_.id, SubmissionCreate())


@pytest.mark.asyncio
async def test_outsider_cannot_submit(hackathon, register, make_user, round_, submissions):
    team, _leader = await register(hackathon)
    with pytest.raises(Forbidden):
        await submissions.submit_project(await make_user(), team.id, round_.id, SubmissionCreate())


@pytest.mark.asyncio
async def test_round_of_another_hackathon(hackathon, make_hackathon, organizer, register, submissions):
    team, leader = await register(hackathon)
    foreign_round = await _round(organizer, await make_hackathon(title="Elsewhere"))
    with pytest.raises(NotFound):
        await submissions.submit_project(leader, team.id, foreign_round.id, SubmissionCreate())


@pytest.mark.asyncio
async def test_only_judges_score(hackathon, register, make_user, organizer, round_, submissions):
    team, leader = await register(hackathon)
    with pytest.raises(Forbidden):
        await submissions.score_team(leader, team.id, round_.id, _scores(5))
    # owning the hackathon does not make the organizer a judge
    with pytest.raises(Forbidden):
        await submissions.score_team(organizer, team.id, round_.id, _scores(5))


@pytest.mark.asyncio
async def test_scores_are_range_checked(hackathon, register, make_judge, round_, submissions):
    team, _leader = await register(hackathon)
    judge = await make_judge(hackathon)

    with pytest.raises(ValidationError) as exc:
        await submissions.score_team(judge, team.id, round_.id, _scores(7, 11))
    assert exc.value.details["criterion"] == "c1"
    with pytest.raises(ValidationError):
        await submissions.score_team(judge, team.id, round_.id, _scores(-1))
    with pytest.raises(ValidationError):
        await submissions.score_team(judge, team.id, round_.id, ScoreCreate(criteria_scores=[]))


@pytest.mark.asyncio
async def test_overall_score_is_mean_of_totals(hackathon, register, make_judge, admin, round_, submissions):
    team, _leader = await register(hackathon)
    judge = await make_judge(hackathon)

    scored = await submissions.score_team(judge, team.id, round_.id, _scores(8, 6))
    assert scored.overall_score == 14.0
    assert scored.scores[0].total_score == 14.0
    assert scored.scores[0].max_possible_score == 20.0
    assert scored.scores[0].is_finalized

    with pytest.raises(Conflict):
        await submissions.score_team(judge, team.id, round_.id, _scores(1, 1))

    rescored = await submissions.score_team(admin, team.id, round_.id, _scores(4, 6))
    assert rescored.overall_score == 12.0
    assert len(rescored.scores) == 2


@pytest.mark.asyncio
async def test_listing_submissions(hackathon, register, make_user, make_judge, round_, submissions):
    team, leader = await register(hackathon)
    await submissions.submit_project(leader, team.id, round_.id, SubmissionCreate(description="v1"))
    judge = await make_judge(hackathon)

    listed = await submissions.list_round_submissions(judge, round_.id)
    assert [s.team_id for s in listed] == [team.id]
    with pytest.raises(Forbidden):
        await submissions.list_round_submissions(await make_user(), round_.id)
