"""Reconciliation Engine - the poll / diff / notify cycle.

One cycle:
1. read the keys of all tracked profiles from the store
2. split them into batches of at most 100 keys
3. fetch every batch from Steam; a failed batch is logged and skipped
4. compare each returned record with its stored profile and classify events
5. persist fired events with one field-scoped update per profile
6. send one alert per event to the profile's subscribers

Nothing raised while handling a batch or a single profile leaves
``run_cycle``; the next timer tick always runs. Cycles never overlap: a
trigger that arrives while a cycle is in flight is dropped.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from banwatch.errors import FetchFailure, PersistenceFailure, UnknownIdentity
from banwatch.messages import alert_text
from banwatch.services.events import (
    EventKind,
    build_policy,
    classify_events,
    detect_anomalies,
    merge_state,
    stops_tracking,
)
from banwatch.services.notifier import Notifier
from banwatch.services.record_store import ProfileRecord, RecordStore
from banwatch.services.steam_api import MAX_KEYS_PER_REQUEST, PlayerBans, SteamApiClient, profile_url
from banwatch.utils import chunked

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """What one cycle did; returned for logging and tests."""
    batches_total: int = 0
    batches_failed: int = 0
    profiles_checked: int = 0
    writes: int = 0
    persistence_failures: int = 0
    events: List[Tuple[str, EventKind]] = field(default_factory=list)
    anomalies: List[Tuple[str, str]] = field(default_factory=list)
    unknown_keys: List[str] = field(default_factory=list)
    # True when the tracked-profile list itself could not be read
    aborted: bool = False


class ReconciliationEngine:
    """
    Polls Steam for every tracked profile and relays ban transitions.

    Holds no profile state between cycles; everything is re-read from the
    store at the start of each cycle.
    """

    def __init__(
        self,
        store: RecordStore,
        provider: SteamApiClient,
        notifier: Notifier,
        messages: Dict[str, str],
        policy: Optional[Dict[EventKind, bool]] = None,
        batch_size: int = MAX_KEYS_PER_REQUEST,
        attach_avatar: bool = False,
    ):
        self._store = store
        self._provider = provider
        self._notifier = notifier
        self._messages = messages
        self._policy = policy if policy is not None else build_policy()
        self._batch_size = min(max(batch_size, 1), MAX_KEYS_PER_REQUEST)
        self._attach_avatar = attach_avatar
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_cycle(self) -> Optional[CycleReport]:
        """
        Run one full cycle.

        Returns the cycle report, or None when the trigger was dropped because
        another cycle is still running.
        """
        if self._lock.locked():
            logger.warning("Previous check is still running, skipping this trigger")
            return None

        async with self._lock:
            report = CycleReport()
            try:
                await self._run(report)
            except Exception:
                logger.exception("Check cycle stopped by an unexpected error")
            self._log_summary(report)
            return report

    # =========================================================================
    # Cycle steps
    # =========================================================================

    async def _run(self, report: CycleReport) -> None:
        try:
            keys = await self._store.find_tracked_keys()
        except PersistenceFailure as e:
            logger.error(f"Could not read tracked profiles: {e}")
            report.aborted = True
            return

        if not keys:
            logger.debug("No tracked profiles, nothing to check")
            return

        batches = list(chunked(keys, self._batch_size))
        logger.info(
            f"Checking {len(keys)} profile{'s' if len(keys) != 1 else ''} "
            f"in {len(batches)} batch{'es' if len(batches) != 1 else ''}"
        )

        seen: Set[str] = set()
        for index, batch in enumerate(batches, start=1):
            report.batches_total += 1
            try:
                await self._process_batch(batch, seen, report)
            except FetchFailure as e:
                report.batches_failed += 1
                logger.warning(f"Batch {index}/{len(batches)} skipped: {e}")
            except PersistenceFailure as e:
                report.batches_failed += 1
                logger.error(f"Batch {index}/{len(batches)} skipped, store error: {e}")
            except Exception:
                report.batches_failed += 1
                logger.exception(f"Batch {index}/{len(batches)} skipped, unexpected error")

    async def _process_batch(self, batch: Sequence[str], seen: Set[str], report: CycleReport) -> None:
        players = await self._provider.fetch_player_bans(batch)
        stored = await self._store.find_profiles(batch)

        returned = {player.identity_key for player in players}
        missing = [key for key in batch if key not in returned]
        if missing:
            logger.debug(f"Steam returned no record for {len(missing)} key(s): {missing}")

        for player in players:
            key = player.identity_key
            if key in seen:
                logger.debug(f"Duplicate record for {key} in this cycle, ignored")
                continue
            seen.add(key)

            profile = stored.get(key)
            if profile is None:
                logger.warning(f"Anomaly: {UnknownIdentity(key)}")
                report.unknown_keys.append(key)
                continue

            report.profiles_checked += 1
            try:
                await self._reconcile(profile, player, report)
            except Exception:
                logger.exception(f"Unexpected error while reconciling {key}")

    async def _reconcile(self, profile: ProfileRecord, player: PlayerBans, report: CycleReport) -> None:
        key = profile.identity_key
        stored_state = profile.state
        current_state = player.state

        for field_name in detect_anomalies(stored_state, current_state):
            logger.warning(
                f"Anomaly: {key} {field_name} went from {getattr(stored_state, field_name)} "
                f"to {getattr(current_state, field_name)}, ignored"
            )
            report.anomalies.append((key, field_name))

        events = classify_events(stored_state, current_state)
        if not events:
            return

        fields = merge_state(stored_state, current_state).as_fields()
        fields["tracked"] = not stops_tracking(events, self._policy)
        kinds = ", ".join(event.value for event in events)

        try:
            matched = await self._store.update_profile_fields(key, fields)
        except PersistenceFailure as e:
            # The next cycle re-derives the same events from the unchanged row
            logger.error(f"Could not persist [{kinds}] for {key}: {e}")
            report.persistence_failures += 1
            return

        if not matched:
            logger.warning(f"Anomaly: profile {key} vanished before its update, alerts dropped")
            return

        report.writes += 1
        logger.info(f"Profile {key}: {kinds} (tracked={fields['tracked']})")

        avatar = await self._avatar_for(key) if self._attach_avatar else None
        for event in events:
            report.events.append((key, event))
            await self._notify(profile, event, avatar)

    async def _notify(self, profile: ProfileRecord, event: EventKind, avatar: Optional[str]) -> None:
        recipients = sorted(profile.subscribers)
        if not recipients:
            logger.warning(f"Profile {profile.identity_key} has no subscribers, {event.value} not sent")
            return

        text = alert_text(self._messages, event, profile_url(profile.identity_key))
        if avatar:
            delivery = await self._notifier.send_photo(avatar, text, recipients)
        else:
            delivery = await self._notifier.send_text(text, recipients)
        if delivery.failed:
            logger.warning(
                f"{event.value} for {profile.identity_key}: "
                f"{delivery.sent} delivered, {delivery.failed} failed"
            )

    async def _avatar_for(self, identity_key: str) -> Optional[str]:
        try:
            return await self._provider.fetch_avatar_url(identity_key)
        except FetchFailure as e:
            logger.warning(f"Avatar for {identity_key} unavailable, sending text: {e}")
            return None

    @staticmethod
    def _log_summary(report: CycleReport) -> None:
        if report.batches_total == 0 and not report.aborted:
            return
        logger.info(
            f"Check finished: {report.profiles_checked} checked, "
            f"{len(report.events)} event(s), {report.writes} write(s), "
            f"{report.batches_failed}/{report.batches_total} batch(es) failed"
        )
