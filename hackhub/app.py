# app.py
import asyncio
import logging
from typing import Optional

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from hackhub.config import Settings
from hackhub.db.database import DataBase
from hackhub.services.notifications import notifier

logger = logging.getLogger(__name__)


def build_bot(settings: Settings) -> Optional[Bot]:
    if not settings.bot_token:
        logger.warning("BOT_TOKEN is not set; notifications will be dropped")
        return None

    return Bot(
        settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )


async def startup(settings: Optional[Settings] = None) -> Optional[Bot]:
    """Create the schema, bind the notification sender and start the delivery worker."""
    settings = settings or Settings()

    await DataBase().create_all()

    bot = build_bot(settings)
    if bot is not None:
        notifier.bind_bot(bot)
    notifier.start()
    return bot


async def shutdown(bot: Optional[Bot] = None) -> None:
    await notifier.stop()
    if bot is not None:
        await bot.session.close()
    await DataBase().dispose()


async def main() -> None:
    settings = Settings()
    logging.basicConfig(level=settings.log_level)

    bot = await startup(settings)
    try:
        await asyncio.Event().wait()
    finally:
        await shutdown(bot)


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    run()
