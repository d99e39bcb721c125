"""User commands: /start, /add, /stats, /request."""

import html
import logging
from typing import Dict

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from banwatch.errors import PersistenceFailure
from banwatch.handlers.keyboards import build_request_keyboard
from banwatch.messages import format_message
from banwatch.services.notifier import Notifier
from banwatch.services.registry import RegisterResult, RegistryManager

logger = logging.getLogger(__name__)

router = Router()

REGISTER_REPLIES = {
    RegisterResult.CREATED: "profile_added",
    RegisterResult.ADDED: "profile_subscribed",
    RegisterResult.ALREADY_REGISTERED: "profile_exists",
    RegisterResult.INVALID_REFERENCE: "add_usage",
    RegisterResult.PROVIDER_UNAVAILABLE: "provider_unavailable",
}


def display_name(msg: Message) -> str:
    """``@username`` if the sender has one, else the first name."""
    user = msg.from_user
    if user.username:
        return f"@{user.username}"
    return user.first_name or str(user.id)


@router.message(Command("start"))
async def cmd_start(msg: Message, messages: Dict[str, str]):
    if msg.chat.type != "private":
        return
    await msg.answer(messages["start_info"])


@router.message(Command("add"))
async def cmd_add(
    msg: Message,
    command: CommandObject,
    registry: RegistryManager,
    messages: Dict[str, str],
    is_authorized: bool,
):
    """/add <steamID64|profile URL> - track a profile for this chat."""
    if not is_authorized:
        await msg.answer(messages["start_info"])
        return
    if not command.args:
        await msg.answer(messages["add_usage"])
        return

    try:
        registration = await registry.register_identity(msg.chat.id, command.args)
    except PersistenceFailure as e:
        logger.error(f"/add by {msg.from_user.id} failed: {e}")
        await msg.answer(messages["internal_error"])
        return

    reply = messages[REGISTER_REPLIES[registration.result]]
    await msg.answer(format_message(reply, steam_id=registration.identity_key or ""))


@router.message(Command("stats"))
async def cmd_stats(
    msg: Message,
    registry: RegistryManager,
    messages: Dict[str, str],
    is_authorized: bool,
):
    if not is_authorized:
        await msg.answer(messages["start_info"])
        return

    try:
        stats = await registry.stats(msg.from_user.id)
    except PersistenceFailure as e:
        logger.error(f"/stats failed: {e}")
        await msg.answer(messages["internal_error"])
        return

    if stats is None:
        await msg.answer(messages["no_statistics"])
        return

    bot_text = format_message(
        messages["bot_statistics"],
        total=stats.total_profiles,
        users=stats.users,
        banned=stats.banned_profiles,
        checked=stats.checked_profiles,
        percent=stats.banned_percent,
    )
    user_text = format_message(
        messages["user_statistics"],
        profiles=stats.user_profiles,
        banned=stats.user_banned_profiles,
        percent=stats.user_banned_percent,
    )
    await msg.answer(f"{bot_text}\n\n{user_text}")


@router.message(Command("request"))
async def cmd_request(
    msg: Message,
    registry: RegistryManager,
    notifier: Notifier,
    messages: Dict[str, str],
    allow_requests: bool,
    is_admin: bool,
    is_authorized: bool,
):
    """/request - ask the admin for access (private chats only)."""
    if msg.chat.type != "private":
        await msg.answer(messages["private_only"])
        return
    if not allow_requests or registry.admin_chat_id is None:
        await msg.answer(messages["request_disabled"])
        return
    if is_admin:
        await msg.answer(messages["request_admin"])
        return
    if is_authorized:
        await msg.answer(messages["request_accepted"])
        return

    name = display_name(msg)
    await msg.answer(messages["request_sent"])
    await notifier.send_text(
        format_message(messages["request_admin_notice"], name=html.escape(name)),
        registry.admin_chat_id,
        reply_markup=build_request_keyboard(msg.chat.id, name, messages),
    )
    logger.info(f"Access requested by {name} ({msg.chat.id})")
