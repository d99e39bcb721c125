"""Utility functions for the bot."""

from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def utc_now() -> datetime:
    """Current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split ``items`` into ordered lists of at most ``size`` elements."""
    if size <= 0:
        raise ValueError("size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def as_recipients(recipients: int | Iterable[int]) -> List[int]:
    """Normalize one chat id or an iterable of chat ids to a list."""
    if isinstance(recipients, int):
        return [recipients]
    return list(recipients)


def percent(part: int, total: int) -> int:
    """Percentage rounded half up; 0 when ``total`` is 0."""
    if total <= 0:
        return 0
    return int(part / total * 100 + 0.5)
