import logging
import os
from dataclasses import dataclass
from typing import Dict

from dotenv import load_dotenv

from banwatch.services.events import DEFAULT_STOP_TRACKING, EventKind, build_policy

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 10
MAX_BATCH_SIZE = 100


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Конфигурация приложения из переменных окружения."""

    # Telegram
    bot_token: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    admin_chat_id: int | None = (
        int(os.getenv("ADMIN_CHAT_ID"))
        if os.getenv("ADMIN_CHAT_ID")
        else None
    )
    allow_requests: bool = _env_bool("ALLOW_REQUESTS", "true")
    messages_locale: str = os.getenv("MESSAGES_LOCALE", "en")
    # Пауза между отправками, чтобы не упереться в лимиты Telegram
    delivery_delay: float = float(os.getenv("DELIVERY_DELAY", "0.05"))

    # Steam Web API
    steam_api_key: str = os.getenv("STEAM_API_KEY", "")
    steam_api_url: str = os.getenv(
        "STEAM_API_URL", "https://api.steampowered.com/ISteamUser/GetPlayerBans/v1/"
    )
    steam_summaries_url: str = os.getenv(
        "STEAM_SUMMARIES_URL", "https://api.steampowered.com/ISteamUser/GetPlayerSummaries/v2/"
    )
    steam_timeout: float = float(os.getenv("STEAM_TIMEOUT", "15"))

    # Reconciliation
    check_interval_minutes: int = int(os.getenv("CHECK_INTERVAL", str(DEFAULT_CHECK_INTERVAL)))
    batch_size: int = int(os.getenv("BATCH_SIZE", str(MAX_BATCH_SIZE)))
    stop_tracking_events: str = os.getenv(
        "STOP_TRACKING_EVENTS",
        ",".join(sorted(kind.value for kind in DEFAULT_STOP_TRACKING)),
    )
    attach_avatar: bool = _env_bool("ATTACH_AVATAR", "false")

    # Database
    database_url: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./data/banwatch.db"
    )

    # Timezone
    timezone: str = os.getenv("TIMEZONE", "UTC")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir: str = os.getenv("LOG_DIR", "logs")
    # Отдельный debug.log со всеми записями (по умолчанию выключен)
    log_debug_file: bool = _env_bool("LOG_DEBUG_FILE", "false")

    @property
    def check_interval(self) -> int:
        """Интервал опроса в минутах (0 и меньше означает значение по умолчанию)."""
        if self.check_interval_minutes > 0:
            return self.check_interval_minutes
        return DEFAULT_CHECK_INTERVAL

    @property
    def effective_batch_size(self) -> int:
        return min(max(self.batch_size, 1), MAX_BATCH_SIZE)

    def tracking_policy(self) -> Dict[EventKind, bool]:
        """
        Per-event-kind table: does detecting this event stop polling?

        Unknown names in STOP_TRACKING_EVENTS are ignored with a warning.
        """
        stop_on = set()
        for name in self.stop_tracking_events.split(","):
            name = name.strip().lower()
            if not name:
                continue
            try:
                stop_on.add(EventKind(name))
            except ValueError:
                logger.warning(f"Unknown event kind in STOP_TRACKING_EVENTS: {name!r}")
        return build_policy(stop_on)


settings = Settings()
