import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage

from banwatch.config import settings
from banwatch.handlers import commands, users
from banwatch.jobs.scheduler import setup_scheduler, shutdown_scheduler
from banwatch.logger import setup_logging
from banwatch.messages import get_messages
from banwatch.middleware.access import AccessMiddleware
from banwatch.middleware.logging import CommandLoggerMiddleware
from banwatch.services.command_scope import setup_commands
from banwatch.services.http_clients import create_http_client
from banwatch.services.identity_resolver import IdentityResolver
from banwatch.services.notifier import Notifier
from banwatch.services.reconciliation import ReconciliationEngine
from banwatch.services.record_store import RecordStore
from banwatch.services.registry import RegistryManager
from banwatch.services.steam_api import SteamApiClient

# Логгер будет инициализирован в main()
logger = logging.getLogger(__name__)


def build_dp(registry: RegistryManager, notifier: Notifier, messages: dict) -> Dispatcher:
    """Построить диспетчер с обработчиками; зависимости передаются как workflow data."""
    dp = Dispatcher(
        storage=MemoryStorage(),
        registry=registry,
        notifier=notifier,
        messages=messages,
        allow_requests=settings.allow_requests,
    )
    dp.message.middleware(CommandLoggerMiddleware())
    dp.message.middleware(AccessMiddleware())
    dp.callback_query.middleware(AccessMiddleware())

    dp.include_routers(
        users.router,
        commands.router,
    )
    return dp


async def main():
    """Точка входа бота."""
    logger.info("=" * 60)
    logger.info("STARTING BAN WATCH BOT")
    logger.info("=" * 60)
    logger.info(f"Check interval: {settings.check_interval} min")
    logger.info(f"Admin chat: {settings.admin_chat_id or 'not set'}")
    logger.info(f"Log level: {settings.log_level}")

    if not settings.bot_token:
        logger.error("TELEGRAM_BOT_TOKEN is not set!")
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")
    if not settings.steam_api_key:
        logger.error("STEAM_API_KEY is not set!")
        raise RuntimeError("STEAM_API_KEY is not set")

    bot = Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    messages = get_messages(settings.messages_locale)

    store = RecordStore(settings.database_url)
    http_client = create_http_client(settings.steam_timeout)
    provider = SteamApiClient(
        http_client,
        settings.steam_api_key,
        settings.steam_api_url,
        settings.steam_summaries_url,
    )
    resolver = IdentityResolver(http_client)
    registry = RegistryManager(store, resolver, provider, settings.admin_chat_id)
    notifier = Notifier(bot, settings.delivery_delay)
    engine = ReconciliationEngine(
        store,
        provider,
        notifier,
        messages,
        policy=settings.tracking_policy(),
        batch_size=settings.effective_batch_size,
        attach_avatar=settings.attach_avatar,
    )
    dp = build_dp(registry, notifier, messages)

    logger.info("Initializing database...")
    await store.init()
    logger.info("Database ready")

    if await setup_commands(bot):
        logger.info("Command menus registered")
    else:
        logger.warning("Command menus not registered, Telegram defaults apply")

    try:
        bot_info = await bot.get_me()
        logger.info(f"Bot: @{bot_info.username} (id: {bot_info.id})")

        setup_scheduler(engine)

        await bot.delete_webhook(drop_pending_updates=True)
        logger.info("Starting polling...")
        await dp.start_polling(bot)
    finally:
        logger.info("=" * 60)
        logger.info("STOPPING BAN WATCH BOT")
        logger.info("=" * 60)
        shutdown_scheduler()
        await http_client.aclose()
        await store.close()
        await bot.session.close()
        logger.info("Bot session closed")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
