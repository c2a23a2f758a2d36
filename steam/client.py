"""Thin HTTP wrapper around the Steam Web API and the Steam storefront."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .errors import UpstreamError

STEAM_API_BASE = "https://api.steampowered.com"
STOREFRONT_BASE = "https://store.steampowered.com/api"
DEFAULT_TIMEOUT_SECONDS = 8

logger = logging.getLogger(__name__)


class SteamHTTPError(UpstreamError):
    """Non-2xx answer from Steam; keeps the status so callers can tell 400 from 5xx."""

    def __init__(self, url: str, status_code: int, body: str = ""):
        self.url = url
        self.http_status = status_code
        self.body = body
        super().__init__(f"Steam answered HTTP {status_code} for {url}")


class SteamWebClient:
    """One method per Steam endpoint the app needs; every call returns decoded JSON."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
        api_base: str = STEAM_API_BASE,
        storefront_base: str = STOREFRONT_BASE,
    ):
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.api_base = api_base.rstrip("/")
        self.storefront_base = storefront_base.rstrip("/")

    def get_owned_games(self, steam_id: str) -> Dict[str, Any]:
        return self._get_api(
            "/IPlayerService/GetOwnedGames/v0001/",
            {
                "steamid": steam_id,
                "include_appinfo": 1,
                "include_played_free_games": 1,
            },
        )

    def get_global_achievement_percentages(self, game_id: str) -> Dict[str, Any]:
        return self._get_api(
            "/ISteamUserStats/GetGlobalAchievementPercentagesForApp/v0002/",
            {"gameid": game_id},
            needs_key=False,
        )

    def get_player_achievements(self, game_id: str, steam_id: str) -> Dict[str, Any]:
        return self._get_api(
            "/ISteamUserStats/GetPlayerAchievements/v0001/",
            {"appid": game_id, "steamid": steam_id},
        )

    def get_schema_for_game(self, game_id: str) -> Dict[str, Any]:
        return self._get_api("/ISteamUserStats/GetSchemaForGame/v2/", {"appid": game_id})

    def get_featured_categories(self) -> Dict[str, Any]:
        return self._get_json(f"{self.storefront_base}/featuredcategories", {})

    def _get_api(self, path: str, params: Dict[str, Any], needs_key: bool = True) -> Dict[str, Any]:
        query = dict(params)
        query["format"] = "json"
        if needs_key:
            if not self.api_key:
                raise UpstreamError("STEAM_API_KEY is not configured")
            query["key"] = self.api_key
        return self._get_json(f"{self.api_base}{path}", query)

    def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Steam request to %s failed: %s", url, exc)
            raise UpstreamError(f"Steam request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.warning("Steam request to %s answered %s: %s", url, resp.status_code, resp.text[:300])
            raise SteamHTTPError(url, resp.status_code, resp.text[:300])

        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning("Steam response from %s was not JSON: %s", url, exc)
            raise UpstreamError("Steam returned malformed JSON") from exc
        if not isinstance(data, dict):
            raise UpstreamError("Steam returned an unexpected payload")
        return data
