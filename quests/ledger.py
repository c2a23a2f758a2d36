"""Points ledger and leaderboard."""

from __future__ import annotations

from typing import List, Optional

from flask import current_app, has_app_context
from sqlalchemy import update

from extensions import db
from models import Player

DEFAULT_LEADERBOARD_LIMIT = 10
MAX_LEADERBOARD_LIMIT = 50


def award_points(player_id: int, points: int, *, commit: bool = True) -> None:
    """Add ``points`` to the player's total; the increment happens in SQL so concurrent awards add up.

    With ``commit=False`` the update joins the caller's transaction.
    """
    if points < 0:
        raise ValueError("Points can only be awarded, never deducted.")
    if points == 0:
        return
    result = db.session.execute(
        update(Player)
        .where(Player.id == player_id)
        .values(points=Player.points + points)
    )
    if result.rowcount != 1:
        raise LookupError(f"Player {player_id} not found")
    if commit:
        db.session.commit()


def leaderboard(limit: Optional[int] = None) -> List[Player]:
    """Players ordered by points, highest first; ties keep sign-up order."""
    return (
        Player.query.order_by(Player.points.desc(), Player.id.asc())
        .limit(clamp_limit(limit))
        .all()
    )


def clamp_limit(raw_limit) -> int:
    default, maximum = DEFAULT_LEADERBOARD_LIMIT, MAX_LEADERBOARD_LIMIT
    if has_app_context():
        default = int(current_app.config.get("LEADERBOARD_DEFAULT_LIMIT", default))
        maximum = int(current_app.config.get("LEADERBOARD_MAX_LIMIT", maximum))
    if raw_limit is None or raw_limit == "":
        return default
    try:
        limit = int(raw_limit)
    except (TypeError, ValueError):
        return default
    if limit < 1:
        return default
    return min(limit, maximum)
