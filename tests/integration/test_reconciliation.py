"""
Integration tests for the reconciliation cycle.

Real record store on SQLite, fake Steam provider, recording notifier.
"""

import asyncio

import pytest

from fakes import player
from banwatch.errors import PersistenceFailure
from banwatch.services.events import BanState, EventKind, build_policy
from banwatch.services.reconciliation import ReconciliationEngine

PROFILE_PREFIX = "https://steamcommunity.com/profiles/"


def make_engine(store, fake_steam, notifier, messages, **kwargs) -> ReconciliationEngine:
    return ReconciliationEngine(store, fake_steam, notifier, messages, **kwargs)


async def seed(store, key, subscribers=(10,), state=BanState(), tracked=True):
    subscribers = list(subscribers)
    await store.insert_profile(key, state, subscribers[0], tracked=tracked)
    for chat_id in subscribers[1:]:
        await store.add_profile_subscriber(key, chat_id)


class TestCycle:
    """Detection, persistence and notification of ban transitions."""

    @pytest.mark.asyncio
    async def test_vac_ban_end_to_end(self, store, fake_steam, notifier, messages):
        await seed(store, "A", subscribers=(20, 10))
        fake_steam.set(player("A", vac_banned=True, vac_ban_count=1))

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.events == [("A", EventKind.VAC_BAN_STARTED)]
        assert report.writes == 1
        profile = await store.find_profile("A")
        assert profile.vac_banned is True
        assert profile.vac_ban_count == 1
        assert profile.tracked is False

        assert len(notifier.texts) == 1
        text, recipients = notifier.texts[0]
        assert recipients == [10, 20]
        assert text == f"{PROFILE_PREFIX}A\n{messages['alert_vac_ban_started']}"

    @pytest.mark.asyncio
    async def test_unchanged_profile_is_not_written(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A"))

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.profiles_checked == 1
        assert report.writes == 0
        assert notifier.texts == []

    @pytest.mark.asyncio
    async def test_multiple_events_one_write(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A", community_banned=True, vac_banned=True, vac_ban_count=1, game_ban_count=1))

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert [event for _, event in report.events] == [
            EventKind.COMMUNITY_BAN_STARTED,
            EventKind.VAC_BAN_STARTED,
            EventKind.GAME_BAN_STARTED,
        ]
        assert report.writes == 1
        assert len(notifier.texts) == 3

    @pytest.mark.asyncio
    async def test_second_cycle_is_quiet(self, store, fake_steam, notifier, messages):
        """Community bans keep tracking on; the next cycle must not repeat the alert."""
        await seed(store, "A")
        fake_steam.set(player("A", community_banned=True))
        engine = make_engine(store, fake_steam, notifier, messages)

        first = await engine.run_cycle()
        second = await engine.run_cycle()

        assert first.events == [("A", EventKind.COMMUNITY_BAN_STARTED)]
        assert second.profiles_checked == 1
        assert second.events == []
        assert len(notifier.texts) == 1
        assert (await store.find_profile("A")).tracked is True

    @pytest.mark.asyncio
    async def test_untracked_profiles_are_not_polled(self, store, fake_steam, notifier, messages):
        await seed(store, "A", tracked=False)
        await seed(store, "B")
        fake_steam.set(player("A", game_ban_count=1), player("B"))

        await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert fake_steam.calls == [["B"]]

    @pytest.mark.asyncio
    async def test_repeated_game_ban_after_community_ban(self, store, fake_steam, notifier, messages):
        await seed(store, "A", state=BanState(community_banned=True, game_ban_count=1))
        fake_steam.set(player("A", community_banned=True, game_ban_count=2))

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.events == [("A", EventKind.GAME_BAN_REPEATED)]
        assert (await store.find_profile("A")).tracked is False

    @pytest.mark.asyncio
    async def test_custom_policy_stops_on_community_ban(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A", community_banned=True))
        policy = build_policy({EventKind.COMMUNITY_BAN_STARTED})

        await make_engine(store, fake_steam, notifier, messages, policy=policy).run_cycle()

        assert (await store.find_profile("A")).tracked is False

    @pytest.mark.asyncio
    async def test_empty_store(self, store, fake_steam, notifier, messages):
        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.batches_total == 0
        assert fake_steam.calls == []


class TestBatches:
    """Batching and failure isolation."""

    @pytest.mark.asyncio
    async def test_keys_split_in_order(self, store, fake_steam, notifier, messages):
        for key in "ABCDE":
            await seed(store, key)

        report = await make_engine(store, fake_steam, notifier, messages, batch_size=2).run_cycle()

        assert fake_steam.calls == [["A", "B"], ["C", "D"], ["E"]]
        assert report.batches_total == 3

    @pytest.mark.asyncio
    async def test_failed_batch_does_not_stop_the_cycle(self, store, fake_steam, notifier, messages):
        keys = "ABCDEF"
        for key in keys:
            await seed(store, key)
            fake_steam.set(player(key, game_ban_count=1))
        fake_steam.fail_calls = {2}

        report = await make_engine(store, fake_steam, notifier, messages, batch_size=2).run_cycle()

        assert report.batches_total == 3
        assert report.batches_failed == 1
        assert sorted(key for key, _ in report.events) == ["A", "B", "E", "F"]
        assert (await store.find_profile("C")).game_ban_count == 0
        assert (await store.find_profile("D")).tracked is True

    @pytest.mark.asyncio
    async def test_failed_batch_is_retried_next_cycle(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A", game_ban_count=1))
        fake_steam.fail_calls = {1}
        engine = make_engine(store, fake_steam, notifier, messages)

        first = await engine.run_cycle()
        second = await engine.run_cycle()

        assert first.batches_failed == 1
        assert second.events == [("A", EventKind.GAME_BAN_STARTED)]

    @pytest.mark.asyncio
    async def test_key_missing_from_response(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        await seed(store, "B")
        fake_steam.set(player("B", game_ban_count=1))

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.profiles_checked == 1
        assert report.events == [("B", EventKind.GAME_BAN_STARTED)]
        assert (await store.find_profile("A")).tracked is True


class TestAnomalies:
    """Data that should not be applied."""

    @pytest.mark.asyncio
    async def test_count_decrease_is_not_applied(self, store, fake_steam, notifier, messages):
        await seed(store, "A", state=BanState(game_ban_count=2))
        fake_steam.set(player("A", game_ban_count=1))

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.anomalies == [("A", "game_ban_count")]
        assert report.writes == 0
        assert notifier.texts == []
        assert (await store.find_profile("A")).game_ban_count == 2

    @pytest.mark.asyncio
    async def test_decrease_beside_an_event_keeps_the_higher_value(self, store, fake_steam, notifier, messages):
        await seed(store, "A", state=BanState(game_ban_count=3))
        fake_steam.set(player("A", vac_banned=True, vac_ban_count=1, game_ban_count=1))

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.events == [("A", EventKind.VAC_BAN_STARTED)]
        profile = await store.find_profile("A")
        assert profile.game_ban_count == 3
        assert profile.vac_banned is True

    @pytest.mark.asyncio
    async def test_unknown_key_is_skipped(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A", game_ban_count=1))
        fake_steam.extra = [player("ZZZ", vac_banned=True, vac_ban_count=1)]

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.unknown_keys == ["ZZZ"]
        assert report.events == [("A", EventKind.GAME_BAN_STARTED)]
        assert await store.find_profile("ZZZ") is None

    @pytest.mark.asyncio
    async def test_duplicate_record_in_cycle_is_ignored(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A", game_ban_count=1))
        fake_steam.extra = [player("A", game_ban_count=5)]

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.events == [("A", EventKind.GAME_BAN_STARTED)]
        assert (await store.find_profile("A")).game_ban_count == 1


class TestFailures:
    """Store and delivery failures."""

    @pytest.mark.asyncio
    async def test_failed_write_sends_nothing(self, store, fake_steam, notifier, messages, monkeypatch):
        await seed(store, "A")
        fake_steam.set(player("A", game_ban_count=1))
        engine = make_engine(store, fake_steam, notifier, messages)

        async def broken_update(identity_key, fields):
            raise PersistenceFailure("disk full")

        original_update = store.update_profile_fields
        monkeypatch.setattr(store, "update_profile_fields", broken_update)
        report = await engine.run_cycle()

        assert report.persistence_failures == 1
        assert report.events == []
        assert notifier.texts == []

        monkeypatch.setattr(store, "update_profile_fields", original_update)
        retry = await engine.run_cycle()
        assert retry.events == [("A", EventKind.GAME_BAN_STARTED)]
        assert len(notifier.texts) == 1

    @pytest.mark.asyncio
    async def test_failed_delivery_keeps_the_write(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A", community_banned=True))
        notifier.fail = True
        engine = make_engine(store, fake_steam, notifier, messages)

        await engine.run_cycle()
        second = await engine.run_cycle()

        assert (await store.find_profile("A")).community_banned is True
        assert second.events == []

    @pytest.mark.asyncio
    async def test_unreadable_store_aborts_cycle(self, store, fake_steam, notifier, messages, monkeypatch):
        async def broken_keys():
            raise PersistenceFailure("database is locked")

        monkeypatch.setattr(store, "find_tracked_keys", broken_keys)

        report = await make_engine(store, fake_steam, notifier, messages).run_cycle()

        assert report.aborted is True
        assert fake_steam.calls == []


class TestAvatar:
    """Optional avatar attachment."""

    @pytest.mark.asyncio
    async def test_alert_with_avatar(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A", game_ban_count=1))
        fake_steam.avatar = "https://cdn.test/a_full.jpg"

        await make_engine(store, fake_steam, notifier, messages, attach_avatar=True).run_cycle()

        assert notifier.texts == []
        photo, caption, recipients = notifier.photos[0]
        assert photo == "https://cdn.test/a_full.jpg"
        assert caption.startswith(f"{PROFILE_PREFIX}A\n")
        assert recipients == [10]

    @pytest.mark.asyncio
    async def test_avatar_failure_falls_back_to_text(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A", game_ban_count=1))
        fake_steam.avatar_error = True

        await make_engine(store, fake_steam, notifier, messages, attach_avatar=True).run_cycle()

        assert notifier.photos == []
        assert len(notifier.texts) == 1


class TestOverlap:
    """Only one cycle runs at a time."""

    @pytest.mark.asyncio
    async def test_trigger_during_cycle_is_dropped(self, store, fake_steam, notifier, messages):
        await seed(store, "A")
        fake_steam.set(player("A", game_ban_count=1))
        gate = asyncio.Event()
        original_fetch = fake_steam.fetch_player_bans

        async def slow_fetch(keys):
            await gate.wait()
            return await original_fetch(keys)

        fake_steam.fetch_player_bans = slow_fetch
        engine = make_engine(store, fake_steam, notifier, messages)

        running = asyncio.create_task(engine.run_cycle())
        while not engine.is_running:
            await asyncio.sleep(0)

        assert await engine.run_cycle() is None

        gate.set()
        report = await running
        assert report.events == [("A", EventKind.GAME_BAN_STARTED)]
        assert fake_steam.calls == [["A"]]
        assert not engine.is_running
