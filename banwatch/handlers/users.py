"""
Admin user management: /users menu and access request callbacks.

All callbacks here are admin-only; anyone else gets an alert and nothing
happens.
"""

import logging
from typing import Dict

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from banwatch.errors import PersistenceFailure
from banwatch.handlers.keyboards import (
    REQUEST_ACCEPT,
    REQUEST_DENY,
    USERS_CANCEL,
    USERS_PAGE,
    USERS_REMOVE,
    USERS_USER,
    build_user_action_keyboard,
    build_users_keyboard,
)
from banwatch.services.notifier import Notifier
from banwatch.services.registry import ApproveResult, RegistryManager

logger = logging.getLogger(__name__)

router = Router()


def _parse_id(data: str, prefix: str) -> int:
    return int(data[len(prefix):].split(":", 1)[0])


@router.message(Command("users"))
async def cmd_users(
    msg: Message,
    registry: RegistryManager,
    messages: Dict[str, str],
    is_admin: bool,
):
    if not is_admin:
        return
    if msg.chat.type != "private":
        await msg.answer(messages["private_only"])
        return

    try:
        page = await registry.list_subscribers(1)
    except PersistenceFailure as e:
        logger.error(f"/users by {msg.from_user.id} failed: {e}")
        await msg.answer(messages["internal_error"])
        return
    if page.total == 0:
        await msg.answer(messages["users_empty"])
        return
    await msg.answer(messages["users_title"], reply_markup=build_users_keyboard(page, messages))


# ============================================================================
# Access requests
# ============================================================================

@router.callback_query(F.data.startswith(REQUEST_ACCEPT))
async def cb_request_accept(
    callback: CallbackQuery,
    registry: RegistryManager,
    notifier: Notifier,
    messages: Dict[str, str],
    is_admin: bool,
):
    if not is_admin:
        await callback.answer("⛔", show_alert=True)
        return

    _, chat_id, name = callback.data.split(":", 2)
    try:
        result = await registry.approve_subscriber(int(chat_id), name or None)
    except PersistenceFailure as e:
        logger.error(f"Approving {chat_id} failed: {e}")
        await callback.answer(messages["internal_error"], show_alert=True)
        return
    if result == ApproveResult.APPROVED:
        await notifier.send_text(messages["request_accepted"], int(chat_id))
    await callback.message.edit_text(messages["request_accepted_admin"])
    await callback.answer()


@router.callback_query(F.data.startswith(REQUEST_DENY))
async def cb_request_deny(
    callback: CallbackQuery,
    notifier: Notifier,
    messages: Dict[str, str],
    is_admin: bool,
):
    if not is_admin:
        await callback.answer("⛔", show_alert=True)
        return

    chat_id = _parse_id(callback.data, REQUEST_DENY)
    await callback.message.edit_text(messages["request_denied_admin"])
    await notifier.send_text(messages["request_denied"], chat_id)
    logger.info(f"Access request of {chat_id} denied")
    await callback.answer()


# ============================================================================
# /users menu
# ============================================================================

@router.callback_query(F.data.startswith(USERS_PAGE))
async def cb_users_page(
    callback: CallbackQuery,
    registry: RegistryManager,
    messages: Dict[str, str],
    is_admin: bool,
):
    if not is_admin:
        await callback.answer("⛔", show_alert=True)
        return

    try:
        page = await registry.list_subscribers(_parse_id(callback.data, USERS_PAGE))
    except PersistenceFailure as e:
        logger.error(f"Listing subscribers failed: {e}")
        await callback.answer(messages["internal_error"], show_alert=True)
        return
    await callback.message.edit_text(
        messages["users_title"], reply_markup=build_users_keyboard(page, messages)
    )
    await callback.answer()


@router.callback_query(F.data.startswith(USERS_USER))
async def cb_users_user(
    callback: CallbackQuery,
    messages: Dict[str, str],
    is_admin: bool,
):
    if not is_admin:
        await callback.answer("⛔", show_alert=True)
        return

    chat_id = _parse_id(callback.data, USERS_USER)
    await callback.message.edit_reply_markup(
        reply_markup=build_user_action_keyboard(chat_id, messages)
    )
    await callback.answer()


@router.callback_query(F.data.startswith(USERS_REMOVE))
async def cb_users_remove(
    callback: CallbackQuery,
    registry: RegistryManager,
    notifier: Notifier,
    messages: Dict[str, str],
    is_admin: bool,
):
    if not is_admin:
        await callback.answer("⛔", show_alert=True)
        return

    chat_id = _parse_id(callback.data, USERS_REMOVE)
    try:
        revoked = await registry.revoke_subscriber(chat_id)
    except PersistenceFailure as e:
        logger.error(f"Revoking {chat_id} failed: {e}")
        await callback.answer(messages["internal_error"], show_alert=True)
        return
    if revoked:
        await notifier.send_text(messages["access_revoked"], chat_id)
    await callback.message.edit_text(messages["access_revoked_admin"])
    await callback.answer()


@router.callback_query(F.data == USERS_CANCEL)
async def cb_users_cancel(callback: CallbackQuery, messages: Dict[str, str], is_admin: bool):
    if not is_admin:
        await callback.answer("⛔", show_alert=True)
        return

    await callback.message.edit_text(messages["action_canceled"])
    await callback.answer()
