"""
Property-based tests for ban-state classification.

For any pair of stored/current states the classifier and the monotone merge
must agree on what gets persisted and alerted.
"""

from hypothesis import given, settings, strategies as st

from banwatch.services.events import (
    BanState,
    EventKind,
    build_policy,
    classify_events,
    detect_anomalies,
    merge_state,
    stops_tracking,
)


counts = st.integers(min_value=0, max_value=50)
ban_states = st.builds(
    BanState,
    community_banned=st.booleans(),
    vac_banned=st.booleans(),
    vac_ban_count=counts,
    game_ban_count=counts,
)


class TestClassification:
    """
    Events are derived only from increases, never twice for one transition.
    """

    @settings(max_examples=200)
    @given(state=ban_states)
    def test_unchanged_state_fires_nothing(self, state: BanState):
        assert classify_events(state, state) == []

    @settings(max_examples=200)
    @given(stored=ban_states, current=ban_states)
    def test_exclusive_kinds(self, stored: BanState, current: BanState):
        events = classify_events(stored, current)

        assert len(events) == len(set(events))
        assert not {EventKind.VAC_BAN_STARTED, EventKind.VAC_BAN_REPEATED} <= set(events)
        assert not {EventKind.GAME_BAN_STARTED, EventKind.GAME_BAN_REPEATED} <= set(events)

    @settings(max_examples=200)
    @given(stored=ban_states, current=ban_states)
    def test_evaluation_order(self, stored: BanState, current: BanState):
        order = list(EventKind)
        events = classify_events(stored, current)
        assert events == sorted(events, key=order.index)

    @settings(max_examples=200)
    @given(stored=ban_states, current=ban_states)
    def test_events_and_anomalies_come_from_different_fields(self, stored: BanState, current: BanState):
        events = set(classify_events(stored, current))
        anomalies = set(detect_anomalies(stored, current))

        if "game_ban_count" in anomalies:
            assert not events & {EventKind.GAME_BAN_STARTED, EventKind.GAME_BAN_REPEATED}
        if "community_banned" in anomalies:
            assert EventKind.COMMUNITY_BAN_STARTED not in events


class TestMerge:
    """
    Merged state never loses information and makes a cycle idempotent.
    """

    @settings(max_examples=200)
    @given(stored=ban_states, current=ban_states)
    def test_merge_never_decreases(self, stored: BanState, current: BanState):
        merged = merge_state(stored, current)

        assert detect_anomalies(stored, merged) == []
        assert merged.vac_ban_count >= current.vac_ban_count
        assert merged.game_ban_count >= current.game_ban_count

    @settings(max_examples=200)
    @given(stored=ban_states, current=ban_states)
    def test_second_pass_is_quiet(self, stored: BanState, current: BanState):
        """Re-checking the same provider data after the write fires no event."""
        merged = merge_state(stored, current)
        assert classify_events(merged, current) == []

    @settings(max_examples=100)
    @given(stored=ban_states, current=ban_states)
    def test_community_ban_alone_never_stops_tracking(self, stored: BanState, current: BanState):
        events = classify_events(stored, current)
        if events == [EventKind.COMMUNITY_BAN_STARTED]:
            assert not stops_tracking(events, build_policy())
