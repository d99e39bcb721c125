"""Ban-state comparison and event classification.

Pure functions shared by the reconciliation engine and its tests. A stored
profile and a freshly fetched record are both reduced to a ``BanState`` and
compared field by field.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List


class EventKind(str, Enum):
    """Classified ban-state transitions, in evaluation order."""
    COMMUNITY_BAN_STARTED = "community_ban_started"
    VAC_BAN_STARTED = "vac_ban_started"
    VAC_BAN_REPEATED = "vac_ban_repeated"
    GAME_BAN_REPEATED = "game_ban_repeated"
    GAME_BAN_STARTED = "game_ban_started"


# Event kinds that stop polling of a profile once recorded.
# A community ban alone keeps the profile tracked.
DEFAULT_STOP_TRACKING = frozenset({
    EventKind.VAC_BAN_STARTED,
    EventKind.VAC_BAN_REPEATED,
    EventKind.GAME_BAN_REPEATED,
    EventKind.GAME_BAN_STARTED,
})


@dataclass(frozen=True)
class BanState:
    """The four ban fields that are compared between cycles."""
    community_banned: bool = False
    vac_banned: bool = False
    vac_ban_count: int = 0
    game_ban_count: int = 0

    def as_fields(self) -> Dict[str, object]:
        return {
            "community_banned": self.community_banned,
            "vac_banned": self.vac_banned,
            "vac_ban_count": self.vac_ban_count,
            "game_ban_count": self.game_ban_count,
        }


def classify_events(stored: BanState, current: BanState) -> List[EventKind]:
    """
    Derive the events fired by the transition ``stored -> current``.

    Each rule is evaluated independently, so several events may fire at once.
    ``VAC_BAN_REPEATED`` is only considered when ``VAC_BAN_STARTED`` did not
    fire; the two game-ban kinds are mutually exclusive.
    """
    events: List[EventKind] = []

    if current.community_banned and not stored.community_banned:
        events.append(EventKind.COMMUNITY_BAN_STARTED)

    if current.vac_banned and not stored.vac_banned:
        events.append(EventKind.VAC_BAN_STARTED)
    elif current.vac_banned and current.vac_ban_count > stored.vac_ban_count:
        events.append(EventKind.VAC_BAN_REPEATED)

    if current.game_ban_count > stored.game_ban_count:
        if stored.game_ban_count > 0:
            events.append(EventKind.GAME_BAN_REPEATED)
        else:
            events.append(EventKind.GAME_BAN_STARTED)

    return events


def detect_anomalies(stored: BanState, current: BanState) -> List[str]:
    """Names of fields that went backwards. These are logged, never applied."""
    anomalies: List[str] = []
    if stored.community_banned and not current.community_banned:
        anomalies.append("community_banned")
    if stored.vac_banned and not current.vac_banned:
        anomalies.append("vac_banned")
    if current.vac_ban_count < stored.vac_ban_count:
        anomalies.append("vac_ban_count")
    if current.game_ban_count < stored.game_ban_count:
        anomalies.append("game_ban_count")
    return anomalies


def merge_state(stored: BanState, current: BanState) -> BanState:
    """Monotone merge: flags are OR-ed and counts never decrease."""
    return BanState(
        community_banned=stored.community_banned or current.community_banned,
        vac_banned=stored.vac_banned or current.vac_banned,
        vac_ban_count=max(stored.vac_ban_count, current.vac_ban_count),
        game_ban_count=max(stored.game_ban_count, current.game_ban_count),
    )


def stops_tracking(events: List[EventKind], policy: Dict[EventKind, bool]) -> bool:
    """True if any of ``events`` is configured to end polling."""
    return any(policy.get(event, False) for event in events)


def build_policy(stop_on=DEFAULT_STOP_TRACKING) -> Dict[EventKind, bool]:
    """Explicit stop-tracking table covering every event kind."""
    return {kind: kind in stop_on for kind in EventKind}
