"""Identity Resolver - turn user input into a canonical SteamID64.

Accepted references:
- a bare 17-digit SteamID64
- https://steamcommunity.com/profiles/<SteamID64>, optionally followed by a
  sub-path, query or fragment
- https://steamcommunity.com/id/<vanity> (one extra request to ``?xml=1``)
"""

import logging
import re
import xml.etree.ElementTree as ET
from typing import Optional

import httpx

from banwatch.errors import ResolutionFailure

logger = logging.getLogger(__name__)

STEAM_ID_RE = re.compile(r"^[0-9]{17}$")
PROFILE_URL_RE = re.compile(
    r"^https?://(?:www\.)?steamcommunity\.com/profiles/([0-9]{17})(?:[/?#].*)?$", re.IGNORECASE
)
CUSTOM_URL_RE = re.compile(
    r"^https?://(?:www\.)?steamcommunity\.com/id/([A-Za-z0-9_-]{2,32})(?:[/?#].*)?$", re.IGNORECASE
)

VANITY_URL = "https://steamcommunity.com/id/{vanity}/"

# SteamID64 layout: universe(8) | type(4) | instance(20) | account id(32)
UNIVERSE_PUBLIC = 1
UNIVERSE_DEV = 4
TYPE_INDIVIDUAL = 1
INSTANCE_WEB = 4


def is_valid_steam_id(value: str) -> bool:
    """True for a well-formed SteamID64 of an individual account."""
    if not STEAM_ID_RE.match(value):
        return False
    steam_id = int(value)
    account_id = steam_id & 0xFFFFFFFF
    instance = (steam_id >> 32) & 0xFFFFF
    account_type = (steam_id >> 52) & 0xF
    universe = (steam_id >> 56) & 0xFF
    if not UNIVERSE_PUBLIC <= universe <= UNIVERSE_DEV:
        return False
    if account_type != TYPE_INDIVIDUAL:
        return False
    return account_id != 0 and instance <= INSTANCE_WEB


def parse_profile_xml(xml_text: str) -> str:
    """
    Extract ``profile/steamID64`` from a community profile XML document.

    Raises:
        ResolutionFailure: unparsable XML or no steamID64 element
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ResolutionFailure(f"Unparsable profile XML: {e}") from e

    if root.tag != "profile":
        error = root.findtext("error") or root.tag
        raise ResolutionFailure(f"Profile lookup failed: {error.strip()}")

    steam_id = (root.findtext("steamID64") or "").strip()
    if not steam_id:
        raise ResolutionFailure("Profile XML has no steamID64")
    return steam_id


class IdentityResolver:
    """Normalizes free-form references; never raises to the caller."""

    def __init__(self, http_client: httpx.AsyncClient):
        self._client = http_client

    async def resolve(self, raw: str) -> Optional[str]:
        """Canonical SteamID64 for ``raw``, or None if it cannot be resolved."""
        try:
            return await self._resolve(raw)
        except ResolutionFailure as e:
            logger.debug(f"Could not resolve {raw!r}: {e}")
            return None

    async def _resolve(self, raw: str) -> str:
        reference = re.sub(r"\s+", "", raw or "")
        if not reference:
            raise ResolutionFailure("Empty reference")

        profile_match = PROFILE_URL_RE.match(reference)
        custom_match = CUSTOM_URL_RE.match(reference)
        if STEAM_ID_RE.match(reference):
            steam_id = reference
        elif profile_match:
            steam_id = profile_match.group(1)
        elif custom_match:
            steam_id = await self._resolve_vanity(custom_match.group(1))
        else:
            raise ResolutionFailure("Unsupported reference format")

        if not is_valid_steam_id(steam_id):
            raise ResolutionFailure(f"Invalid SteamID64 {steam_id}")
        return steam_id

    async def _resolve_vanity(self, vanity: str) -> str:
        url = VANITY_URL.format(vanity=vanity)
        try:
            response = await self._client.get(url, params={"xml": "1"})
        except httpx.HTTPError as e:
            raise ResolutionFailure(f"Vanity lookup failed: {type(e).__name__}") from e
        if response.status_code != 200:
            raise ResolutionFailure(f"Vanity lookup returned {response.status_code}")
        return parse_profile_xml(response.text)
