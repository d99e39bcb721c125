"""Middleware that resolves the sender's access level once per update."""

import logging
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from banwatch.errors import PersistenceFailure

logger = logging.getLogger(__name__)


class AccessMiddleware(BaseMiddleware):
    """
    Injects ``is_admin`` and ``is_authorized`` into handler data.

    Relies on ``registry`` being present in the dispatcher workflow data.
    A store error counts as "not authorized" for this update.
    """

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        registry = data["registry"]
        user = data.get("event_from_user")

        is_admin = False
        is_authorized = False
        if user is not None:
            is_admin = registry.is_admin(user.id)
            try:
                is_authorized = await registry.is_authorized(user.id)
            except PersistenceFailure as e:
                logger.error(f"Access check for {user.id} failed: {e}")

        data["is_admin"] = is_admin
        data["is_authorized"] = is_authorized
        return await handler(event, data)
