"""Registry Manager - tracked identities and approved subscribers.

Registration deduplicates on the identity key: a second subscriber asking
for an already tracked profile is added to that profile's subscriber set
instead of creating a new profile. Add-to-set is a single insert guarded by
a unique constraint, so concurrent registrations of the same key cannot lose
a subscriber.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from banwatch.errors import DuplicateKeyError, FetchFailure, UnknownIdentity
from banwatch.services.identity_resolver import IdentityResolver
from banwatch.services.record_store import RecordStore, SubscriberRecord
from banwatch.services.steam_api import SteamApiClient
from banwatch.utils import percent

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 6


class RegisterResult(str, Enum):
    CREATED = "created"
    ADDED = "added"
    ALREADY_REGISTERED = "already_registered"
    INVALID_REFERENCE = "invalid_reference"
    PROVIDER_UNAVAILABLE = "provider_unavailable"


class ApproveResult(str, Enum):
    APPROVED = "approved"
    ALREADY_APPROVED = "already_approved"


@dataclass(frozen=True)
class Registration:
    result: RegisterResult
    identity_key: Optional[str] = None


@dataclass(frozen=True)
class Page:
    """One page of approved subscribers; ``page`` is 1-based."""
    items: List[SubscriberRecord]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True)
class Stats:
    total_profiles: int
    banned_profiles: int
    users: int
    user_profiles: int
    user_banned_profiles: int

    @property
    def checked_profiles(self) -> int:
        return self.total_profiles - self.banned_profiles

    @property
    def banned_percent(self) -> int:
        return percent(self.banned_profiles, self.total_profiles)

    @property
    def user_banned_percent(self) -> int:
        return percent(self.user_banned_profiles, self.user_profiles)


class RegistryManager:
    """Registration of profiles and management of approved users."""

    def __init__(
        self,
        store: RecordStore,
        resolver: IdentityResolver,
        provider: SteamApiClient,
        admin_chat_id: Optional[int] = None,
    ):
        self._store = store
        self._resolver = resolver
        self._provider = provider
        self._admin_chat_id = admin_chat_id

    # =========================================================================
    # Profiles
    # =========================================================================

    async def register_identity(self, subscriber_id: int, raw_reference: str) -> Registration:
        """
        Start tracking the profile behind ``raw_reference`` for ``subscriber_id``.

        New profiles are seeded with their current ban state, so bans that
        already exist at registration time never produce an alert.
        """
        identity_key = await self._resolver.resolve(raw_reference)
        if identity_key is None:
            return Registration(RegisterResult.INVALID_REFERENCE)

        existing = await self._store.find_profile(identity_key)
        if existing is not None:
            return await self._subscribe(identity_key, subscriber_id)

        try:
            player = await self._provider.fetch_player_ban(identity_key)
        except FetchFailure as e:
            logger.warning(f"Baseline fetch for {identity_key} failed: {e}")
            return Registration(RegisterResult.PROVIDER_UNAVAILABLE, identity_key)
        if player is None:
            logger.info(f"Steam has no ban record for {identity_key}")
            return Registration(RegisterResult.INVALID_REFERENCE, identity_key)

        try:
            await self._store.insert_profile(identity_key, player.state, subscriber_id)
        except DuplicateKeyError:
            # Someone registered the same key between the lookup and the insert
            return await self._subscribe(identity_key, subscriber_id)

        logger.info(f"Profile {identity_key} created for {subscriber_id}")
        return Registration(RegisterResult.CREATED, identity_key)

    async def _subscribe(self, identity_key: str, subscriber_id: int) -> Registration:
        try:
            added = await self._store.add_profile_subscriber(identity_key, subscriber_id)
        except UnknownIdentity:
            # Profiles are never deleted, so this only happens on a broken store
            logger.error(f"Profile {identity_key} vanished while subscribing {subscriber_id}")
            raise
        if not added:
            return Registration(RegisterResult.ALREADY_REGISTERED, identity_key)
        logger.info(f"Subscriber {subscriber_id} added to {identity_key}")
        return Registration(RegisterResult.ADDED, identity_key)

    # =========================================================================
    # Subscribers
    # =========================================================================

    async def approve_subscriber(self, subscriber_id: int, display_name: Optional[str]) -> ApproveResult:
        try:
            await self._store.insert_subscriber(subscriber_id, display_name)
        except DuplicateKeyError:
            return ApproveResult.ALREADY_APPROVED
        logger.info(f"Subscriber {subscriber_id} ({display_name}) approved")
        return ApproveResult.APPROVED

    async def revoke_subscriber(self, subscriber_id: int) -> bool:
        """Remove an approved subscriber. Unknown ids are a no-op."""
        removed = await self._store.remove_subscriber(subscriber_id)
        if removed:
            logger.info(f"Subscriber {subscriber_id} revoked")
        return removed

    async def list_subscribers(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
        """Deterministic page of subscribers in stored order."""
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        page = max(page, 1)
        total = await self._store.count_subscribers()
        items = await self._store.find_subscribers(offset=(page - 1) * page_size, limit=page_size)
        return Page(items=items, page=page, page_size=page_size, total=total)

    @property
    def admin_chat_id(self) -> Optional[int]:
        return self._admin_chat_id

    def is_admin(self, chat_id: int) -> bool:
        return self._admin_chat_id is not None and chat_id == self._admin_chat_id

    async def is_authorized(self, chat_id: int) -> bool:
        """Admin or approved subscriber."""
        if self.is_admin(chat_id):
            return True
        return await self._store.find_subscriber(chat_id) is not None

    # =========================================================================
    # Statistics
    # =========================================================================

    async def stats(self, chat_id: int) -> Optional[Stats]:
        """Bot-wide and per-user counters; None when no profile exists yet."""
        total = await self._store.count_profiles()
        if total == 0:
            return None
        return Stats(
            total_profiles=total,
            banned_profiles=await self._store.count_profiles(tracked=False),
            # The admin is not stored as a subscriber
            users=await self._store.count_subscribers() + 1,
            user_profiles=await self._store.count_profiles(subscriber_id=chat_id),
            user_banned_profiles=await self._store.count_profiles(tracked=False, subscriber_id=chat_id),
        )
