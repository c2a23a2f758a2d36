"""Quest JSON API: catalog, assignment, progress checks and the leaderboard."""

from __future__ import annotations

from typing import Callable, Optional

from flask import Blueprint, current_app, jsonify, request

from auth import json_unauthenticated
from models import Player
from steam.errors import SteamServiceError
from steam.routes import json_steam_error
from . import catalog, engine, ledger
from .errors import QuestServiceError

PlayerProvider = Callable[[], Optional[Player]]


def create_quests_blueprint(current_player_provider: PlayerProvider) -> Blueprint:
    """Factory so the main app can inject its session-based player lookup."""

    bp = Blueprint("quests_api", __name__, url_prefix="/api/quests")

    @bp.get("")
    @bp.get("/")
    def list_quests():
        if not current_player_provider():
            return json_unauthenticated()
        include_expired = _flag(request.args.get("include_expired"), default=True)
        quests = catalog.list_quests(include_expired=include_expired)
        return jsonify([quest.to_public_dict() for quest in quests])

    @bp.post("")
    @bp.post("/")
    def create_quest():
        if not current_player_provider():
            return json_unauthenticated()
        payload = request.get_json(silent=True) or {}
        try:
            quest = catalog.create_quest(payload)
        except QuestServiceError as exc:
            return jsonify(exc.payload), exc.status_code
        return jsonify(quest.to_public_dict()), 201

    @bp.delete("/<int:quest_id>")
    def delete_quest(quest_id: int):
        if not current_player_provider():
            return json_unauthenticated()
        try:
            catalog.delete_quest(quest_id)
        except QuestServiceError as exc:
            return jsonify(exc.payload), exc.status_code
        return jsonify({"success": True, "quest_id": quest_id})

    @bp.get("/my-quests")
    def my_quests():
        player = current_player_provider()
        if not player:
            return json_unauthenticated()
        return jsonify([link.to_public_dict() for link in engine.list_player_quests(player)])

    @bp.post("/<int:quest_id>/assign")
    def assign_quest(quest_id: int):
        player = current_player_provider()
        if not player:
            return json_unauthenticated()
        try:
            link = engine.assign_quest(player, quest_id, _gateway())
        except QuestServiceError as exc:
            return jsonify(exc.payload), exc.status_code
        except SteamServiceError as exc:
            return json_steam_error(exc)
        return jsonify(link.to_public_dict()), 201

    @bp.post("/<int:quest_id>/check")
    def check_progress(quest_id: int):
        player = current_player_provider()
        if not player:
            return json_unauthenticated()
        try:
            report = engine.check_progress(player, quest_id, _gateway())
        except QuestServiceError as exc:
            return jsonify(exc.payload), exc.status_code
        except SteamServiceError as exc:
            return json_steam_error(exc)
        body = report.to_dict()
        if not report.completed:
            body["message"] = f"You have played {report.gained} of {report.required} minutes."
        return jsonify(body)

    @bp.post("/<int:quest_id>/complete")
    def complete_quest(quest_id: int):
        player = current_player_provider()
        if not player:
            return json_unauthenticated()
        try:
            link = engine.complete_quest(player, quest_id)
        except QuestServiceError as exc:
            return jsonify(exc.payload), exc.status_code
        return jsonify(
            {
                "message": "Quest completed successfully",
                "points": link.points_awarded,
                "quest": link.to_public_dict(),
            }
        )

    @bp.get("/leaderboard")
    def leaderboard():
        players = ledger.leaderboard(request.args.get("limit"))
        return jsonify([player.to_public_dict() for player in players])

    return bp


def _gateway():
    return current_app.config["STEAM_GATEWAY"]


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}
