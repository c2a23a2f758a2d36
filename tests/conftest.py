from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional

import pytest

from app import create_app
from extensions import db
from models import Player
from steam import RateLimiter, RequestCache, SteamGateway, UpstreamError

STEAM_ID = "76561198000000001"
OTHER_STEAM_ID = "76561198000000002"
HALF_LIFE = "220"
CLIENT_URL = "http://localhost:3000"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSteamClient:
    """Stands in for SteamWebClient; counts calls and can be switched into failure mode."""

    def __init__(self):
        self.calls: Counter = Counter()
        self.fail_with: Optional[Exception] = None
        self.libraries: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.player_achievements: Dict[str, Dict[str, Any]] = {}
        self.global_percentages: Dict[str, Dict[str, Any]] = {}
        self.schemas: Dict[str, Dict[str, Any]] = {}
        self.featured: Dict[str, Any] = {}

    def set_playtime(self, steam_id: str, game_id: str, minutes, name: str = "Half-Life 2", recent=0) -> None:
        self.libraries.setdefault(steam_id, {})[game_id] = {
            "appid": int(game_id),
            "name": name,
            "playtime_forever": minutes,
            "playtime_2weeks": recent,
            "img_icon_url": "iconhash",
            "img_logo_url": "logohash",
        }

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def get_owned_games(self, steam_id: str) -> Dict[str, Any]:
        self.calls["owned_games"] += 1
        self._maybe_fail()
        games: List[Dict[str, Any]] = [dict(row) for row in self.libraries.get(steam_id, {}).values()]
        return {"response": {"game_count": len(games), "games": games}}

    def get_player_achievements(self, game_id: str, steam_id: str) -> Dict[str, Any]:
        self.calls["player_achievements"] += 1
        self._maybe_fail()
        return self.player_achievements.get(game_id, {"playerstats": {"success": False, "error": "no stats"}})

    def get_global_achievement_percentages(self, game_id: str) -> Dict[str, Any]:
        self.calls["global_percentages"] += 1
        self._maybe_fail()
        return self.global_percentages.get(game_id, {})

    def get_schema_for_game(self, game_id: str) -> Dict[str, Any]:
        self.calls["schema"] += 1
        self._maybe_fail()
        return self.schemas.get(game_id, {})

    def get_featured_categories(self) -> Dict[str, Any]:
        self.calls["featured"] += 1
        self._maybe_fail()
        return self.featured


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def steam_client():
    return FakeSteamClient()


@pytest.fixture
def gateway(steam_client, clock):
    return SteamGateway(
        steam_client,
        RequestCache(ttl_seconds=3600, clock=clock),
        RateLimiter(max_requests=10, window_seconds=60, clock=clock),
    )


@pytest.fixture
def app(steam_client, gateway):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "STEAM_CLIENT": steam_client,
            "STEAM_GATEWAY": gateway,
            "CLIENT_URL": CLIENT_URL,
        }
    )
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_player(steam_id: str = STEAM_ID, display_name: str = "Gordon", points: int = 0) -> Player:
    player = Player(steam_id=steam_id, display_name=display_name, points=points)
    db.session.add(player)
    db.session.commit()
    return player


@pytest.fixture
def player(app):
    return make_player()


@pytest.fixture
def signed_in(client, player):
    with client.session_transaction() as sess:
        sess["steam_id"] = player.steam_id
    return player


@pytest.fixture
def steam_down(steam_client):
    def _down():
        steam_client.fail_with = UpstreamError("Steam request failed: timed out")

    return _down
