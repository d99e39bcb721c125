"""Command menus registered for private and group chats."""

import logging
from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import BotCommand, BotCommandScopeAllPrivateChats, BotCommandScopeAllGroupChats

logger = logging.getLogger(__name__)


# Group chats receive alerts for profiles added there
GROUP_COMMANDS = [
    BotCommand(command="add", description="Track a Steam profile"),
    BotCommand(command="stats", description="Tracking statistics"),
]


# /users is intentionally hidden (admin only)
PRIVATE_COMMANDS = [
    BotCommand(command="start", description="What this bot does"),
    BotCommand(command="request", description="Ask the admin for access"),
    BotCommand(command="add", description="Track a Steam profile"),
    BotCommand(command="stats", description="Tracking statistics"),
]


async def setup_commands(bot: Bot) -> bool:
    """
    Register command scopes for private and group chats.

    Returns:
        True if registration was successful, False otherwise
    """
    try:
        await bot.set_my_commands(
            commands=PRIVATE_COMMANDS,
            scope=BotCommandScopeAllPrivateChats()
        )
        logger.info(f"Registered {len(PRIVATE_COMMANDS)} commands for private chats")

        await bot.set_my_commands(
            commands=GROUP_COMMANDS,
            scope=BotCommandScopeAllGroupChats()
        )
        logger.info(f"Registered {len(GROUP_COMMANDS)} commands for group chats")

        return True

    except TelegramAPIError as e:
        logger.warning(f"Failed to register command scopes: {e}")
        return False
