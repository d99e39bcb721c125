"""Record Store - profiles and subscribers on top of SQLAlchemy.

The store is the single owner of both collections. Callers get immutable
snapshots (``ProfileRecord``, ``SubscriberRecord``) and mutate through
field-scoped statements only, so the reconciliation engine and the registry
can touch the same profile without overwriting each other's columns.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from banwatch.database.models import Profile, ProfileSubscriber, Subscriber
from banwatch.database.session import create_engine, create_sessionmaker, create_tables
from banwatch.errors import DuplicateKeyError, PersistenceFailure, UnknownIdentity
from banwatch.services.events import BanState
from banwatch.utils import utc_now

logger = logging.getLogger(__name__)

# Columns the engine may write with update_profile_fields()
UPDATABLE_FIELDS = frozenset({
    "community_banned",
    "vac_banned",
    "vac_ban_count",
    "game_ban_count",
    "tracked",
})


# ============================================================================
# Snapshots
# ============================================================================

@dataclass(frozen=True)
class ProfileRecord:
    """Read-only view of one tracked identity."""
    identity_key: str
    community_banned: bool
    vac_banned: bool
    vac_ban_count: int
    game_ban_count: int
    tracked: bool
    subscribers: FrozenSet[int]

    @property
    def state(self) -> BanState:
        return BanState(
            community_banned=self.community_banned,
            vac_banned=self.vac_banned,
            vac_ban_count=self.vac_ban_count,
            game_ban_count=self.game_ban_count,
        )

    @classmethod
    def from_model(cls, profile: Profile) -> "ProfileRecord":
        return cls(
            identity_key=profile.identity_key,
            community_banned=bool(profile.community_banned),
            vac_banned=bool(profile.vac_banned),
            vac_ban_count=profile.vac_ban_count or 0,
            game_ban_count=profile.game_ban_count or 0,
            tracked=bool(profile.tracked),
            subscribers=frozenset(link.chat_id for link in profile.subscribers),
        )


@dataclass(frozen=True)
class SubscriberRecord:
    chat_id: int
    display_name: Optional[str]


def _wrap_errors(func):
    """Re-raise SQLAlchemy errors as PersistenceFailure."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"{func.__name__}: {e}") from e
    return wrapper


# ============================================================================
# Record Store
# ============================================================================

class RecordStore:
    """Async key-value style access to the profiles and subscribers tables."""

    def __init__(self, database_url: str):
        self._engine = create_engine(database_url)
        self._session = create_sessionmaker(self._engine)

    async def init(self) -> None:
        """Create tables if they do not exist yet."""
        await create_tables(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()

    # =========================================================================
    # Profiles
    # =========================================================================

    @_wrap_errors
    async def insert_profile(
        self,
        identity_key: str,
        state: BanState,
        subscriber_id: int,
        tracked: bool = True,
    ) -> ProfileRecord:
        """
        Insert a new profile owned by ``subscriber_id``.

        Raises:
            DuplicateKeyError: a profile with this key already exists
        """
        async with self._session() as session:
            profile = Profile(
                identity_key=identity_key,
                tracked=tracked,
                subscribers=[ProfileSubscriber(chat_id=subscriber_id)],
                **state.as_fields(),
            )
            session.add(profile)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(f"Profile {identity_key} already exists") from e
            return ProfileRecord.from_model(profile)

    @_wrap_errors
    async def find_tracked_keys(self) -> List[str]:
        """Keys of all profiles still being polled, in insertion order."""
        async with self._session() as session:
            result = await session.execute(
                select(Profile.identity_key)
                .where(Profile.tracked == True)  # noqa: E712
                .order_by(Profile.id)
            )
            return [row[0] for row in result.all()]

    @_wrap_errors
    async def find_profile(self, identity_key: str) -> Optional[ProfileRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(Profile).where(Profile.identity_key == identity_key)
            )
            profile = result.scalar_one_or_none()
            return ProfileRecord.from_model(profile) if profile else None

    @_wrap_errors
    async def find_profiles(self, identity_keys: Iterable[str]) -> Dict[str, ProfileRecord]:
        """Batch lookup; keys without a stored profile are simply absent."""
        keys = list(identity_keys)
        if not keys:
            return {}
        async with self._session() as session:
            result = await session.execute(
                select(Profile).where(Profile.identity_key.in_(keys))
            )
            return {
                profile.identity_key: ProfileRecord.from_model(profile)
                for profile in result.scalars().all()
            }

    @_wrap_errors
    async def update_profile_fields(self, identity_key: str, fields: Dict[str, object]) -> bool:
        """
        ``$set``-style partial update matched on the identity key.

        Only ban columns and ``tracked`` may be written; the subscriber set is
        never touched here. Returns False when no row matched.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")
        if not fields:
            return False

        async with self._session() as session:
            result = await session.execute(
                update(Profile)
                .where(Profile.identity_key == identity_key)
                .values(**fields, updated_at=utc_now())
            )
            await session.commit()
            return result.rowcount > 0

    @_wrap_errors
    async def add_profile_subscriber(self, identity_key: str, chat_id: int) -> bool:
        """
        Atomic add-to-set on a profile's subscribers.

        Returns True if the chat was added, False if it was already present.

        Raises:
            UnknownIdentity: no profile with this key
        """
        async with self._session() as session:
            exists = await session.execute(
                select(Profile.id).where(Profile.identity_key == identity_key)
            )
            if exists.scalar_one_or_none() is None:
                raise UnknownIdentity(identity_key)

            session.add(ProfileSubscriber(identity_key=identity_key, chat_id=chat_id))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
            return True

    @_wrap_errors
    async def count_profiles(
        self,
        tracked: Optional[bool] = None,
        subscriber_id: Optional[int] = None,
    ) -> int:
        async with self._session() as session:
            query = select(func.count(Profile.id))
            if subscriber_id is not None:
                query = query.join(
                    ProfileSubscriber, ProfileSubscriber.identity_key == Profile.identity_key
                ).where(ProfileSubscriber.chat_id == subscriber_id)
            if tracked is not None:
                query = query.where(Profile.tracked == tracked)
            result = await session.execute(query)
            return result.scalar_one()

    # =========================================================================
    # Subscribers
    # =========================================================================

    @_wrap_errors
    async def insert_subscriber(self, chat_id: int, display_name: Optional[str] = None) -> SubscriberRecord:
        """
        Raises:
            DuplicateKeyError: the chat is already an approved subscriber
        """
        async with self._session() as session:
            session.add(Subscriber(chat_id=chat_id, display_name=display_name))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(f"Subscriber {chat_id} already exists") from e
            return SubscriberRecord(chat_id=chat_id, display_name=display_name)

    @_wrap_errors
    async def remove_subscriber(self, chat_id: int) -> bool:
        """Delete a subscriber; removing an unknown id is not an error."""
        async with self._session() as session:
            result = await session.execute(
                delete(Subscriber).where(Subscriber.chat_id == chat_id)
            )
            await session.commit()
            return result.rowcount > 0

    @_wrap_errors
    async def find_subscriber(self, chat_id: int) -> Optional[SubscriberRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(Subscriber).where(Subscriber.chat_id == chat_id)
            )
            subscriber = result.scalar_one_or_none()
            if subscriber is None:
                return None
            return SubscriberRecord(chat_id=subscriber.chat_id, display_name=subscriber.display_name)

    @_wrap_errors
    async def find_subscribers(self, offset: int = 0, limit: Optional[int] = None) -> List[SubscriberRecord]:
        """Subscribers in stored (insertion) order."""
        async with self._session() as session:
            query = select(Subscriber).order_by(Subscriber.id).offset(offset)
            if limit is not None:
                query = query.limit(limit)
            result = await session.execute(query)
            return [
                SubscriberRecord(chat_id=s.chat_id, display_name=s.display_name)
                for s in result.scalars().all()
            ]

    @_wrap_errors
    async def count_subscribers(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count(Subscriber.id)))
            return result.scalar_one()
