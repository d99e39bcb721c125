"""Inline keyboards for access requests and the /users menu."""

from typing import Dict

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from banwatch.services.registry import Page

# Callback data prefixes
REQUEST_ACCEPT = "req_accept:"
REQUEST_DENY = "req_deny:"
USERS_PAGE = "users_page:"
USERS_USER = "users_user:"
USERS_REMOVE = "users_remove:"
USERS_CANCEL = "users_cancel"

# Telegram limit for callback_data
MAX_CALLBACK_BYTES = 64
USERS_PER_ROW = 3


def fit_callback(prefix: str, tail: str) -> str:
    """``prefix + tail`` trimmed so it fits into callback_data."""
    data = prefix + tail
    while len(data.encode("utf-8")) > MAX_CALLBACK_BYTES:
        data = data[:-1]
    return data


def build_request_keyboard(chat_id: int, name: str, messages: Dict[str, str]) -> InlineKeyboardMarkup:
    keyboard = InlineKeyboardBuilder()
    keyboard.button(
        text=messages["button_accept"],
        callback_data=fit_callback(f"{REQUEST_ACCEPT}{chat_id}:", name),
    )
    keyboard.button(text=messages["button_deny"], callback_data=f"{REQUEST_DENY}{chat_id}")
    keyboard.adjust(2)
    return keyboard.as_markup()


def build_users_keyboard(page: Page, messages: Dict[str, str]) -> InlineKeyboardMarkup:
    """Users three per row, then ``<<`` / Cancel / ``>>`` navigation."""
    keyboard = InlineKeyboardBuilder()
    for subscriber in page.items:
        keyboard.button(
            text=subscriber.display_name or str(subscriber.chat_id),
            callback_data=f"{USERS_USER}{subscriber.chat_id}",
        )
    keyboard.adjust(USERS_PER_ROW)

    navigation = []
    if page.has_prev:
        navigation.append(InlineKeyboardButton(text="<<", callback_data=f"{USERS_PAGE}{page.page - 1}"))
    navigation.append(InlineKeyboardButton(text=messages["button_cancel"], callback_data=USERS_CANCEL))
    if page.has_next:
        navigation.append(InlineKeyboardButton(text=">>", callback_data=f"{USERS_PAGE}{page.page + 1}"))
    keyboard.row(*navigation)
    return keyboard.as_markup()


def build_user_action_keyboard(chat_id: int, messages: Dict[str, str]) -> InlineKeyboardMarkup:
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text=messages["button_remove"], callback_data=f"{USERS_REMOVE}{chat_id}")
    keyboard.button(text=messages["button_cancel"], callback_data=USERS_CANCEL)
    keyboard.adjust(1)
    return keyboard.as_markup()
