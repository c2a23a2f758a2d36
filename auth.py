"""Session-backed player identity.

Steam redirects back to ``/auth/steam/return`` after the OpenID login. The
assertion is checked by the callable stored in ``STEAM_OPENID_VERIFIER``
(it receives the callback query arguments and returns the verified profile
or None); ``sign_in_player`` then binds the session, and every request
afterwards resolves the player from it.
"""

from __future__ import annotations

from typing import Optional

from flask import Blueprint, current_app, jsonify, redirect, request, session
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import Player

SESSION_KEY = "steam_id"

auth_blueprint = Blueprint("auth", __name__, url_prefix="/auth")


def get_current_player() -> Optional[Player]:
    """Return the signed-in Player or None."""
    steam_id = (session.get(SESSION_KEY) or "").strip()
    if not steam_id:
        return None
    return Player.query.filter_by(steam_id=steam_id).first()


def sign_in_player(steam_id: str, display_name: str, avatar_url: Optional[str] = None) -> Player:
    """Create the player on first sign-in, refresh name/avatar afterwards, and bind the session."""
    steam_id = (steam_id or "").strip()
    if not steam_id:
        raise ValueError("steam_id is required to sign in")
    display_name = (display_name or "").strip() or steam_id

    player = Player.query.filter_by(steam_id=steam_id).first()
    if player is None:
        player = Player(steam_id=steam_id, display_name=display_name, avatar_url=avatar_url, points=0)
        db.session.add(player)
    else:
        player.display_name = display_name
        player.avatar_url = avatar_url

    try:
        db.session.commit()
    except IntegrityError:
        # Two first sign-ins raced; the other one created the row.
        db.session.rollback()
        player = Player.query.filter_by(steam_id=steam_id).one()

    session[SESSION_KEY] = steam_id
    session.permanent = True
    current_app.logger.info("Player %s signed in", steam_id)
    return player


def sign_out_player() -> None:
    session.pop(SESSION_KEY, None)


def json_unauthenticated():
    return jsonify({"error": "unauthenticated", "message": "Please sign in with Steam."}), 401


@auth_blueprint.get("/me")
def me():
    player = get_current_player()
    if not player:
        return json_unauthenticated()
    return jsonify(player.to_public_dict())


@auth_blueprint.get("/steam/return")
def steam_return():
    verifier = current_app.config.get("STEAM_OPENID_VERIFIER")
    if verifier is None:
        current_app.logger.warning("Steam sign-in callback hit but STEAM_OPENID_VERIFIER is not configured")
        return jsonify({"error": "sign_in_unavailable", "message": "Steam sign-in is not configured."}), 501

    profile = verifier(request.args)
    if not profile or not profile.get("steam_id"):
        current_app.logger.info("Steam sign-in assertion rejected")
        return jsonify({"error": "sign_in_failed", "message": "Steam sign-in could not be verified."}), 401

    sign_in_player(profile["steam_id"], profile.get("display_name"), profile.get("avatar_url"))
    return redirect(current_app.config["CLIENT_URL"])


@auth_blueprint.get("/logout")
def logout():
    sign_out_player()
    return jsonify({"message": "Logged out successfully"})
