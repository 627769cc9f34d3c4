import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from bot.handlers import router
from config import settings
from services.jury import JuryService


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    jury = JuryService.from_settings(settings)
    logging.getLogger(__name__).info(
        "AI Jury bot for %s (theme: %s)", settings.hackathon_name, settings.hackathon_theme
    )

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher()
    # handlers receive the service as the `jury` argument
    dp["jury"] = jury
    dp.include_router(router)

    await bot.delete_webhook(drop_pending_updates=True)
    await dp.start_polling(bot)


if __name__ == "__main__":
    asyncio.run(main())
