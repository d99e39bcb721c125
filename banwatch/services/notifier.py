"""
Notification Sink - best-effort delivery of alerts over Telegram.

Each recipient is delivered independently. A failed send is logged and
counted, never retried and never raised: persisted state is the source of
truth and a missed alert must not undo it.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

from banwatch.errors import DeliveryFailure
from banwatch.utils import as_recipients

logger = logging.getLogger(__name__)


@dataclass
class DeliveryReport:
    sent: int = 0
    failed: int = 0


class Notifier:
    """Sends text or photo messages to one or many chats."""

    def __init__(self, bot: Bot, delay: float = 0.05):
        self._bot = bot
        # Flood protection between consecutive sends
        self._delay = delay

    async def send_text(
        self,
        text: str,
        recipients: int | Iterable[int],
        reply_markup=None,
    ) -> DeliveryReport:
        report = DeliveryReport()
        for chat_id in as_recipients(recipients):
            try:
                await self._bot.send_message(
                    chat_id=chat_id,
                    text=text,
                    reply_markup=reply_markup,
                    disable_web_page_preview=True,
                )
                report.sent += 1
            except TelegramAPIError as e:
                self._log_failure(DeliveryFailure(chat_id, str(e)))
                report.failed += 1
            await self._pause()
        return report

    async def send_photo(
        self,
        photo: str,
        caption: Optional[str],
        recipients: int | Iterable[int],
    ) -> DeliveryReport:
        """``photo`` is a URL or a Telegram file id."""
        report = DeliveryReport()
        for chat_id in as_recipients(recipients):
            try:
                await self._bot.send_photo(chat_id=chat_id, photo=photo, caption=caption)
                report.sent += 1
            except TelegramAPIError as e:
                self._log_failure(DeliveryFailure(chat_id, str(e)))
                report.failed += 1
            await self._pause()
        return report

    async def _pause(self) -> None:
        if self._delay > 0:
            await asyncio.sleep(self._delay)

    @staticmethod
    def _log_failure(failure: DeliveryFailure) -> None:
        logger.warning(str(failure))
