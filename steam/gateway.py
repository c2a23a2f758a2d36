"""Steam game-data gateway: rate limiting, caching and stale fallback around SteamWebClient."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from .cache import RequestCache
from .client import SteamHTTPError, SteamWebClient
from .errors import GameNotFound, UpstreamError
from .rate_limit import RateLimiter

MEDIA_BASE = "https://media.steampowered.com/steamcommunity/public/images/apps"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameSummary:
    game_id: str
    name: str
    playtime_forever_minutes: int
    playtime_2weeks_minutes: int
    icon_url: str
    logo_url: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Achievement:
    name: str
    display_name: str
    description: str
    icon_url: str
    achieved: bool
    unlocked_at: Optional[str]
    global_percent: float

    def to_dict(self) -> dict:
        return asdict(self)


class SteamGateway:
    """Every Steam read made on behalf of a player goes through here.

    Order per call: the player's rate limit is consulted first (even when the
    answer is cached), then a fresh cache entry is served, then Steam is
    called. When Steam fails, any cached entry, however old, is served before
    giving up with ``UpstreamError``. Nothing is retried.
    """

    def __init__(self, client: SteamWebClient, cache: RequestCache, limiter: RateLimiter):
        self.client = client
        self.cache = cache
        self.limiter = limiter

    def get_owned_games(self, player_id: str) -> List[GameSummary]:
        games = self._cached_fetch(
            player_id,
            ("owned_games", player_id),
            lambda: _parse_owned_games(self.client.get_owned_games(player_id)),
        )
        return list(games)

    def get_achievements(self, player_id: str, game_id: str) -> List[Achievement]:
        game_id = str(game_id)
        achievements = self._cached_fetch(
            player_id,
            ("achievements", player_id, game_id),
            lambda: self._fetch_achievements(player_id, game_id),
        )
        return list(achievements)

    def playtime_minutes(self, player_id: str, game_id: str) -> int:
        """Lifetime minutes played on ``game_id``; 0 when the game is not owned."""
        game_id = str(game_id)
        for game in self.get_owned_games(player_id):
            if game.game_id == game_id:
                return game.playtime_forever_minutes
        return 0

    def _cached_fetch(self, player_id: str, key: Tuple, fetch: Callable[[], Tuple]) -> Tuple:
        self.limiter.acquire(player_id)

        fresh = self.cache.get_fresh(key)
        if fresh is not None:
            return fresh.value

        try:
            value = fetch()
        except UpstreamError as exc:
            stale = self.cache.get(key)
            if stale is None:
                raise
            logger.info(
                "Serving stale %s for player %s (age %.0fs) after Steam failure: %s",
                key[0],
                player_id,
                stale.age(self.cache.now()),
                exc,
            )
            return stale.value

        self.cache.set(key, value)
        return value

    def _fetch_achievements(self, player_id: str, game_id: str) -> Tuple[Achievement, ...]:
        try:
            player_payload = self.client.get_player_achievements(game_id, player_id)
        except SteamHTTPError as exc:
            # Steam answers 400 "Requested app has no stats" for games without achievements.
            if exc.http_status == 400:
                raise GameNotFound(game_id) from exc
            raise

        stats = player_payload.get("playerstats") or {}
        if stats.get("success") is False:
            raise GameNotFound(game_id)

        global_payload = self.client.get_global_achievement_percentages(game_id)
        schema_payload = self.client.get_schema_for_game(game_id)
        return _merge_achievements(stats, global_payload, schema_payload)


def _parse_owned_games(payload: Dict[str, Any]) -> Tuple[GameSummary, ...]:
    response = payload.get("response")
    if not isinstance(response, dict):
        raise UpstreamError("Steam owned-games payload missing 'response'")

    games = []
    for row in response.get("games") or []:
        app_id = row.get("appid")
        if app_id is None:
            continue
        app_id = str(app_id)
        games.append(
            GameSummary(
                game_id=app_id,
                name=row.get("name") or f"App {app_id}",
                playtime_forever_minutes=whole_minutes(row.get("playtime_forever")),
                playtime_2weeks_minutes=whole_minutes(row.get("playtime_2weeks")),
                icon_url=_media_url(app_id, row.get("img_icon_url")),
                logo_url=_media_url(app_id, row.get("img_logo_url")),
            )
        )
    return tuple(games)


def _merge_achievements(
    stats: Dict[str, Any],
    global_payload: Dict[str, Any],
    schema_payload: Dict[str, Any],
) -> Tuple[Achievement, ...]:
    global_rows = (global_payload.get("achievementpercentages") or {}).get("achievements") or []
    percentages = {row.get("name"): _coerce_percent(row.get("percent")) for row in global_rows}

    schema_rows = (
        ((schema_payload.get("game") or {}).get("availableGameStats") or {}).get("achievements") or []
    )
    schema = {row.get("name"): row for row in schema_rows if row.get("name")}

    player_rows = {row.get("apiname"): row for row in stats.get("achievements") or [] if row.get("apiname")}

    ordered_names = list(player_rows)
    ordered_names.extend(name for name in schema if name not in player_rows)

    merged = []
    for name in ordered_names:
        player_row = player_rows.get(name) or {}
        schema_row = schema.get(name) or {}
        achieved = bool(player_row.get("achieved"))
        icon = schema_row.get("icon") if achieved else schema_row.get("icongray")
        merged.append(
            Achievement(
                name=name,
                display_name=schema_row.get("displayName") or name,
                description=schema_row.get("description") or "",
                icon_url=icon or "",
                achieved=achieved,
                unlocked_at=_unlock_time(player_row.get("unlocktime")) if achieved else None,
                global_percent=percentages.get(name, 0.0),
            )
        )
    return tuple(merged)


def whole_minutes(value: Any) -> int:
    """Round a playtime figure to whole minutes, half up; junk and negatives become 0."""
    if value is None or value == "":
        return 0
    try:
        minutes = Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return 0
    return max(int(minutes), 0)


def _coerce_percent(value: Any) -> float:
    try:
        return round(float(value), 2)
    except (TypeError, ValueError):
        return 0.0


def _unlock_time(value: Any) -> Optional[str]:
    try:
        stamp = int(value)
    except (TypeError, ValueError):
        return None
    if stamp <= 0:
        return None
    return datetime.fromtimestamp(stamp, tz=timezone.utc).isoformat()


def _media_url(app_id: str, image_hash: Optional[str]) -> str:
    if not image_hash:
        return ""
    return f"{MEDIA_BASE}/{app_id}/{image_hash}.jpg"
