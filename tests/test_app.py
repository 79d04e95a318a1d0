import pytest

from hackhub.app import build_bot, shutdown, startup
from hackhub.config import Settings


def test_build_bot_without_token(monkeypatch):
    settings = Settings()
    monkeypatch.setattr(settings, "bot_token", None)
    assert build_bot(settings) is None


@pytest.mark.asyncio
async def test_startup_and_shutdown_without_bot(monkeypatch, database):
    settings = Settings()
    monkeypatch.setattr(settings, "bot_token", "")

    bot = await startup(settings)
    assert bot is None
    await shutdown(bot)
