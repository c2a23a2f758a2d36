"""JSON endpoints for owned games, achievements and storefront promotions."""

from __future__ import annotations

from typing import Callable, Optional

from flask import Blueprint, current_app, jsonify

from auth import json_unauthenticated
from models import Player
from .errors import RateLimited, SteamServiceError
from .gateway import SteamGateway
from .promotions import list_promotions

PlayerProvider = Callable[[], Optional[Player]]


def create_steam_blueprint(current_player_provider: PlayerProvider) -> Blueprint:
    """Factory so the main app can inject its session-based player lookup."""

    bp = Blueprint("steam_api", __name__, url_prefix="/api")

    @bp.get("/games/steam/owned")
    def owned_games():
        player = current_player_provider()
        if not player:
            return json_unauthenticated()
        try:
            games = _gateway().get_owned_games(player.steam_id)
        except SteamServiceError as exc:
            return json_steam_error(exc)
        return jsonify([game.to_dict() for game in games])

    @bp.get("/games/<game_id>/achievements")
    def game_achievements(game_id: str):
        player = current_player_provider()
        if not player:
            return json_unauthenticated()
        try:
            achievements = _gateway().get_achievements(player.steam_id, game_id)
        except SteamServiceError as exc:
            return json_steam_error(exc)
        return jsonify([achievement.to_dict() for achievement in achievements])

    @bp.get("/steam/promotions")
    def promotions():
        try:
            items = list_promotions(current_app.config["STEAM_CLIENT"])
        except SteamServiceError as exc:
            current_app.logger.warning("Steam promotions fetch failed: %s", exc)
            return json_steam_error(exc)
        return jsonify([item.to_dict() for item in items])

    @bp.get("/steam/wishlist/promotions")
    def wishlist_promotions():
        if not current_player_provider():
            return json_unauthenticated()
        try:
            payload = current_app.config["STEAM_CLIENT"].get_featured_categories()
        except SteamServiceError as exc:
            current_app.logger.warning("Steam featured categories fetch failed: %s", exc)
            return json_steam_error(exc)
        return jsonify(payload)

    return bp


def _gateway() -> SteamGateway:
    return current_app.config["STEAM_GATEWAY"]


def json_steam_error(exc: SteamServiceError):
    response = jsonify(exc.payload)
    response.status_code = exc.status_code
    if isinstance(exc, RateLimited):
        response.headers["Retry-After"] = str(exc.retry_after_seconds)
    return response
