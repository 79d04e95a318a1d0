import uuid

import pytest

from hackhub.db.schemas.user import UserCreate, UserUpdate
from hackhub.errors import Conflict, NotFound
from hackhub.services.hackathon import HackathonService
from hackhub.services.user import UserService


@pytest.mark.asyncio
async def test_duplicate_login_conflicts(make_user):
    await make_user("dana")
    with pytest.raises(Conflict):
        await UserService().create_user(UserCreate(username="dana", email="other@campus.edu"))


@pytest.mark.asyncio
async def test_resolve_user_by_id_email_or_username(make_user):
    user = await make_user("dana", email="Dana@Campus.edu")
    svc = UserService()

    assert (await svc.resolve_user(user.id)).id == user.id
    assert (await svc.resolve_user(str(user.id))).id == user.id
    assert (await svc.resolve_user("dana@campus.edu")).id == user.id
    assert (await svc.resolve_user("@dana")).id == user.id

    with pytest.raises(NotFound):
        await svc.resolve_user("nobody")
    with pytest.raises(NotFound):
        await svc.resolve_user(uuid.uuid4())


@pytest.mark.asyncio
async def test_partial_update_keeps_other_fields(make_user):
    user = await make_user("dana", institution="MIT", bio="Builder")
    updated = await UserService().update_user(UserUpdate(id=user.id, institution="ETH", tg_id=77))

    assert updated.institution == "ETH"
    assert updated.tg_id == 77
    assert updated.bio == "Builder"
    assert updated.email_domain == "campus.edu"


@pytest.mark.asyncio
async def test_record_view_counts(hackathon):
    svc = HackathonService()
    await svc.record_view(hackathon.id)
    await svc.record_view(hackathon.id)
    assert (await svc.get_hackathon(hackathon.id)).views == 2
