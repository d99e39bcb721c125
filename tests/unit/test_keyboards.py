"""Tests for inline keyboards."""

from banwatch.handlers.keyboards import (
    MAX_CALLBACK_BYTES,
    USERS_CANCEL,
    build_request_keyboard,
    build_user_action_keyboard,
    build_users_keyboard,
    fit_callback,
)
from banwatch.messages import get_messages
from banwatch.services.record_store import SubscriberRecord
from banwatch.services.registry import Page

MESSAGES = get_messages("en")


def make_page(count, page, total, page_size=6):
    items = [SubscriberRecord(chat_id=100 + i, display_name=f"user{i}") for i in range(count)]
    return Page(items=items, page=page, page_size=page_size, total=total)


def callback_rows(markup):
    return [[button.callback_data for button in row] for row in markup.inline_keyboard]


def test_fit_callback_short_data_untouched():
    assert fit_callback("req_accept:1:", "bob") == "req_accept:1:bob"


def test_fit_callback_trims_multibyte_names():
    data = fit_callback("req_accept:123456789:", "ж" * 40)
    assert len(data.encode("utf-8")) <= MAX_CALLBACK_BYTES
    assert data.startswith("req_accept:123456789:ж")


def test_request_keyboard():
    rows = callback_rows(build_request_keyboard(42, "@bob", MESSAGES))
    assert rows == [["req_accept:42:@bob", "req_deny:42"]]


def test_users_keyboard_first_page():
    rows = callback_rows(build_users_keyboard(make_page(6, page=1, total=10), MESSAGES))

    assert rows[0] == ["users_user:100", "users_user:101", "users_user:102"]
    assert rows[1] == ["users_user:103", "users_user:104", "users_user:105"]
    assert rows[-1] == [USERS_CANCEL, "users_page:2"]


def test_users_keyboard_last_page():
    rows = callback_rows(build_users_keyboard(make_page(4, page=2, total=10), MESSAGES))

    assert len(rows) == 3
    assert rows[-1] == ["users_page:1", USERS_CANCEL]


def test_users_keyboard_middle_page():
    rows = callback_rows(build_users_keyboard(make_page(6, page=2, total=20), MESSAGES))
    assert rows[-1] == ["users_page:1", USERS_CANCEL, "users_page:3"]


def test_users_keyboard_falls_back_to_chat_id():
    page = Page(items=[SubscriberRecord(chat_id=7, display_name=None)], page=1, page_size=6, total=1)
    markup = build_users_keyboard(page, MESSAGES)
    assert markup.inline_keyboard[0][0].text == "7"


def test_user_action_keyboard():
    rows = callback_rows(build_user_action_keyboard(9, MESSAGES))
    assert rows == [["users_remove:9"], [USERS_CANCEL]]
