"""User-facing texts, per locale.

Texts are sent with HTML parse mode. Placeholders use ``{name}`` and are
filled by ``format_message``; unknown placeholders render empty.
"""

from typing import Dict

from banwatch.services.events import EventKind

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        # Alerts
        "alert_community_ban_started": "🚫 This profile has been <b>community banned</b>.",
        "alert_vac_ban_started": "🛑 This profile has been <b>VAC banned</b>.",
        "alert_vac_ban_repeated": "🛑 This profile has been <b>VAC banned again</b>.",
        "alert_game_ban_started": "⛔ This profile has been <b>game banned</b>.",
        "alert_game_ban_repeated": "⛔ This profile has been <b>game banned again</b>.",
        # /start, access
        "start_info": (
            "👋 I watch Steam profiles and tell you when they get banned.\n\n"
            "Use /request to ask for access, then /add &lt;steamID64|profile URL&gt;."
        ),
        "private_only": "This command only works in a private chat with the bot.",
        # /add
        "add_usage": "Invalid argument.\nUsage: /add &lt;steamID64|profileURL&gt;",
        "profile_added": "✅ <code>{steam_id}</code> is now being tracked.",
        "profile_subscribed": "✅ <code>{steam_id}</code> is already tracked, you will get its alerts too.",
        "profile_exists": "ℹ️ You are already tracking <code>{steam_id}</code>.",
        "provider_unavailable": "⚠️ Steam did not answer, try again later.",
        "internal_error": "⚠️ Something went wrong, try again later.",
        # /stats
        "bot_statistics": (
            "📊 <b>Bot statistics</b>\n"
            "Tracked profiles: {total}\n"
            "Users: {users}\n"
            "Banned: {banned} ({percent}%)\n"
            "Still clean: {checked}"
        ),
        "user_statistics": (
            "👤 <b>Your statistics</b>\n"
            "Your profiles: {profiles}\n"
            "Banned: {banned} ({percent}%)"
        ),
        "no_statistics": "No profiles are tracked yet.",
        # /request
        "request_disabled": "Access requests are disabled.",
        "request_admin": "You are the admin, no request needed.",
        "request_sent": "📨 Your request was sent to the admin.",
        "request_admin_notice": "{name} asks for access.",
        "request_accepted": "🎉 Your access request was accepted. Use /add to track profiles.",
        "request_accepted_admin": "✅ Request accepted.",
        "request_denied": "Your access request was denied.",
        "request_denied_admin": "❌ Request denied.",
        "access_revoked": "Your access was revoked.",
        "access_revoked_admin": "🗑 User removed.",
        # /users menu
        "users_title": "👥 Approved users:",
        "users_empty": "No approved users yet.",
        "action_canceled": "Canceled.",
        "button_accept": "✅ Accept",
        "button_deny": "❌ Deny",
        "button_cancel": "Cancel",
        "button_remove": "🗑 Remove",
    },
    "ru": {
        "alert_community_ban_started": "🚫 Профиль получил <b>бан сообщества</b>.",
        "alert_vac_ban_started": "🛑 Профиль получил <b>VAC-бан</b>.",
        "alert_vac_ban_repeated": "🛑 Профиль получил <b>ещё один VAC-бан</b>.",
        "alert_game_ban_started": "⛔ Профиль получил <b>игровой бан</b>.",
        "alert_game_ban_repeated": "⛔ Профиль получил <b>ещё один игровой бан</b>.",
        "start_info": (
            "👋 Я слежу за профилями Steam и сообщаю о банах.\n\n"
            "Запроси доступ через /request, затем /add &lt;steamID64|ссылка на профиль&gt;."
        ),
        "private_only": "Эта команда работает только в личных сообщениях с ботом.",
        "add_usage": "Неверный аргумент.\nИспользование: /add &lt;steamID64|ссылка на профиль&gt;",
        "profile_added": "✅ <code>{steam_id}</code> добавлен в отслеживание.",
        "profile_subscribed": "✅ <code>{steam_id}</code> уже отслеживается, уведомления будут приходить и тебе.",
        "profile_exists": "ℹ️ Ты уже отслеживаешь <code>{steam_id}</code>.",
        "provider_unavailable": "⚠️ Steam не отвечает, попробуй позже.",
        "internal_error": "⚠️ Что-то пошло не так, попробуй позже.",
        "bot_statistics": (
            "📊 <b>Статистика бота</b>\n"
            "Профилей: {total}\n"
            "Пользователей: {users}\n"
            "Забанено: {banned} ({percent}%)\n"
            "Чистых: {checked}"
        ),
        "user_statistics": (
            "👤 <b>Твоя статистика</b>\n"
            "Твоих профилей: {profiles}\n"
            "Забанено: {banned} ({percent}%)"
        ),
        "no_statistics": "Пока не отслеживается ни одного профиля.",
        "request_disabled": "Запросы доступа отключены.",
        "request_admin": "Ты администратор, запрос не нужен.",
        "request_sent": "📨 Запрос отправлен администратору.",
        "request_admin_notice": "{name} запрашивает доступ.",
        "request_accepted": "🎉 Доступ выдан. Добавляй профили через /add.",
        "request_accepted_admin": "✅ Запрос принят.",
        "request_denied": "В доступе отказано.",
        "request_denied_admin": "❌ Запрос отклонён.",
        "access_revoked": "Твой доступ отозван.",
        "access_revoked_admin": "🗑 Пользователь удалён.",
        "users_title": "👥 Пользователи с доступом:",
        "users_empty": "Пока нет пользователей с доступом.",
        "action_canceled": "Отменено.",
        "button_accept": "✅ Принять",
        "button_deny": "❌ Отклонить",
        "button_cancel": "Отмена",
        "button_remove": "🗑 Удалить",
    },
}

DEFAULT_LOCALE = "en"


class _BlankMissing(dict):
    def __missing__(self, key: str) -> str:
        return ""


def get_messages(locale: str) -> Dict[str, str]:
    """Text table for ``locale``; missing locales and keys fall back to English."""
    table = dict(MESSAGES[DEFAULT_LOCALE])
    table.update(MESSAGES.get(locale.lower(), {}))
    return table


def format_message(template: str, **values) -> str:
    return template.format_map(_BlankMissing(values))


def alert_text(messages: Dict[str, str], kind: EventKind, profile_link: str) -> str:
    """Alert body for one event: profile URL on the first line, then the template."""
    return f"{profile_link}\n{messages['alert_' + kind.value]}"
