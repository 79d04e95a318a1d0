import pytest

from hackhub.db.enums import NotificationKind
from hackhub.i18n import Localizer, lang_code2language
from hackhub.services.notifications import Notification, TelegramSender, notifier


class FakeBot:
    def __init__(self):
        self.messages = []

    async def send_message(self, chat_id, text):
        self.messages.append((chat_id, text))


def test_localizer_renders_nested_keys():
    lz = Localizer("english")
    text = lz("notifications.team_rejected.body", hackathon_title="Campus Hack", reason="Late")
    assert text.endswith("Reason: Late")

    with pytest.raises(KeyError):
        lz.get("notifications.unknown_kind.title")


def test_localizer_falls_back_to_default_language():
    assert Localizer("klingon").lang == "english"
    assert lang_code2language("en") == "english"
    assert lang_code2language(None) == "english"


@pytest.mark.asyncio
async def test_telegram_sender_renders_and_sends(make_user):
    bot = FakeBot()
    sender = TelegramSender(bot)
    user = await make_user("tg", tg_id=4242)

    delivered = await sender.send(
        NotificationKind.TEAM_APPROVED, user, {"team_name": "Alpha", "hackathon_title": "Campus Hack"}
    )
    assert delivered
    chat_id, text = bot.messages[0]
    assert chat_id == 4242
    assert text.splitlines() == [
        "Team Alpha is approved",
        "Your team registration for Campus Hack has been approved.",
    ]


@pytest.mark.asyncio
async def test_telegram_sender_skips_users_without_chat(make_user):
    bot = FakeBot()
    user = await make_user("offline")
    assert not await TelegramSender(bot).send(NotificationKind.TEAM_NOTE, user, {"team_name": "A", "content": "hi"})
    assert bot.messages == []


@pytest.mark.asyncio
async def test_delivery_failures_are_swallowed(make_user, sender):
    sender.fail = True
    user = await make_user()
    assert not await notifier.deliver(Notification(kind=NotificationKind.TEAM_NOTE, recipient=user))


@pytest.mark.asyncio
async def test_enqueue_without_recipient_is_dropped(database):
    assert not notifier.enqueue(NotificationKind.TEAM_APPROVED, None, team_name="Alpha")
    assert notifier.pending == 0


@pytest.mark.asyncio
async def test_worker_drains_queue_on_stop(make_user, sender):
    user = await make_user()
    notifier.start()
    notifier.enqueue(NotificationKind.TEAM_NOTE, user, team_name="Alpha", content="Doors open at 9")
    await notifier.stop()

    assert sender.kinds() == [NotificationKind.TEAM_NOTE]
    assert notifier.pending == 0
