"""Steam Web API client (data provider).

Wraps ``ISteamUser/GetPlayerBans`` for the poll cycle and registration, and
``ISteamUser/GetPlayerSummaries`` for optional avatar attachments. Every
failure mode of a request is reported as ``FetchFailure`` so the caller can
skip the batch and carry on.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import httpx

from banwatch.errors import FetchFailure
from banwatch.services.events import BanState

logger = logging.getLogger(__name__)

# Documented ceiling of steamids per GetPlayerBans request
MAX_KEYS_PER_REQUEST = 100

PROFILE_URL = "https://steamcommunity.com/profiles/"


@dataclass(frozen=True)
class PlayerBans:
    """Current ban state of one account as reported by Steam."""
    identity_key: str
    community_banned: bool
    vac_banned: bool
    vac_ban_count: int
    game_ban_count: int
    days_since_last_ban: int = 0
    economy_ban: str = "none"

    @property
    def state(self) -> BanState:
        return BanState(
            community_banned=self.community_banned,
            vac_banned=self.vac_banned,
            vac_ban_count=self.vac_ban_count,
            game_ban_count=self.game_ban_count,
        )


def profile_url(identity_key: str) -> str:
    return f"{PROFILE_URL}{identity_key}"


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def parse_player(raw: Any) -> Optional[PlayerBans]:
    """Parse one ``players`` entry; None if a required field is missing or mistyped."""
    if not isinstance(raw, dict):
        return None
    steam_id = raw.get("SteamId")
    if not isinstance(steam_id, str) or not steam_id:
        return None
    community = raw.get("CommunityBanned")
    vac = raw.get("VACBanned")
    vac_count = raw.get("NumberOfVACBans")
    game_count = raw.get("NumberOfGameBans")
    if not isinstance(community, bool) or not isinstance(vac, bool):
        return None
    if not _is_count(vac_count) or not _is_count(game_count):
        return None

    days = raw.get("DaysSinceLastBan", 0)
    economy = raw.get("EconomyBan", "none")
    return PlayerBans(
        identity_key=steam_id,
        community_banned=community,
        vac_banned=vac,
        vac_ban_count=vac_count,
        game_ban_count=game_count,
        days_since_last_ban=days if _is_count(days) else 0,
        economy_ban=economy if isinstance(economy, str) else "none",
    )


class SteamApiClient:
    """Read-only client for the Steam ban and profile summary endpoints."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        bans_url: str,
        summaries_url: str,
    ):
        self._client = http_client
        self._api_key = api_key
        self._bans_url = bans_url
        self._summaries_url = summaries_url

    async def _get_json(self, url: str, params: dict, what: str) -> Any:
        try:
            response = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise FetchFailure(f"{what}: request timed out") from e
        except httpx.HTTPError as e:
            raise FetchFailure(f"{what}: {type(e).__name__}: {e}") from e

        if response.status_code != 200:
            raise FetchFailure(f"{what}: invalid status code {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise FetchFailure(f"{what}: malformed JSON") from e

    async def fetch_player_bans(self, identity_keys: Sequence[str]) -> List[PlayerBans]:
        """
        Fetch ban records for up to 100 keys in one request.

        Entries that cannot be parsed are skipped with a warning; the rest of
        the batch is returned.

        Raises:
            FetchFailure: transport error, timeout, non-200 or malformed payload
            ValueError: more than MAX_KEYS_PER_REQUEST keys
        """
        if len(identity_keys) > MAX_KEYS_PER_REQUEST:
            raise ValueError(
                f"At most {MAX_KEYS_PER_REQUEST} keys per request, got {len(identity_keys)}"
            )
        if not identity_keys:
            return []

        payload = await self._get_json(
            self._bans_url,
            {"key": self._api_key, "steamids": ",".join(identity_keys)},
            "GetPlayerBans",
        )
        players = payload.get("players") if isinstance(payload, dict) else None
        if not isinstance(players, list):
            raise FetchFailure("GetPlayerBans: invalid response, no players array")

        parsed: List[PlayerBans] = []
        for raw in players:
            player = parse_player(raw)
            if player is None:
                logger.warning(f"Skipping malformed player record: {raw!r}")
                continue
            parsed.append(player)
        return parsed

    async def fetch_player_ban(self, identity_key: str) -> Optional[PlayerBans]:
        """Ban record for a single key, or None if Steam does not know it."""
        players = await self.fetch_player_bans([identity_key])
        for player in players:
            if player.identity_key == identity_key:
                return player
        return None

    async def fetch_avatar_url(self, identity_key: str) -> Optional[str]:
        """Full-size avatar URL from the profile summary, if any."""
        payload = await self._get_json(
            self._summaries_url,
            {"key": self._api_key, "steamids": identity_key},
            "GetPlayerSummaries",
        )
        response = payload.get("response") if isinstance(payload, dict) else None
        players = response.get("players") if isinstance(response, dict) else None
        if not isinstance(players, list):
            raise FetchFailure("GetPlayerSummaries: invalid response, no players array")
        for player in players:
            if isinstance(player, dict) and player.get("steamid") == identity_key:
                avatar = player.get("avatarfull")
                return avatar if isinstance(avatar, str) and avatar else None
        return None
