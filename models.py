"""Database models for the SteamQuest Flask app."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func

from extensions import db


class Player(db.Model):
    """A Steam account that has signed in at least once."""

    __tablename__ = "players"

    id = db.Column(db.Integer, primary_key=True)
    steam_id = db.Column(db.String(32), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(120), nullable=False)
    avatar_url = db.Column(db.String(500), nullable=True)
    points = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    quest_links = db.relationship(
        "PlayerQuest",
        back_populates="player",
        order_by="PlayerQuest.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.CheckConstraint("points >= 0", name="ck_players_points_non_negative"),
    )

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "steam_id": self.steam_id,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "points": self.points,
        }

    def __repr__(self) -> str:  # pragma: no cover - helper for shell debugging
        return f"<Player id={self.id} steam_id={self.steam_id!r} points={self.points}>"


class QuestDefinition(db.Model):
    """Time-played challenge template; immutable once created."""

    __tablename__ = "quests"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    game_id = db.Column(db.String(32), nullable=False, index=True)
    game_name = db.Column(db.String(200), nullable=False, default="")
    required_minutes = db.Column(db.Integer, nullable=False)
    duration = db.Column(db.String(20), nullable=False)
    points = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    player_links = db.relationship(
        "PlayerQuest",
        back_populates="quest",
        cascade="all, delete-orphan",
    )

    DURATIONS = ("daily", "weekly", "monthly")

    __table_args__ = (
        db.CheckConstraint("required_minutes > 0", name="ck_quests_required_minutes_positive"),
    )

    @property
    def expires_at_utc(self) -> Optional[datetime]:
        return _ensure_aware(self.expires_at)

    @property
    def created_at_utc(self) -> Optional[datetime]:
        return _ensure_aware(self.created_at)

    def is_expired(self, reference: Optional[datetime] = None) -> bool:
        """Return True once the quest should no longer be offered for assignment."""
        ref = reference or datetime.now(timezone.utc)
        if ref.tzinfo is None:
            ref = ref.replace(tzinfo=timezone.utc)
        expires = self.expires_at_utc
        return bool(expires and expires <= ref)

    def to_public_dict(self, reference: Optional[datetime] = None) -> dict:
        """Serialize the quest to the public API schema."""
        return {
            "id": self.id,
            "title": self.title,
            "requirements": {
                "game_id": self.game_id,
                "game_name": self.game_name,
                "required_minutes": self.required_minutes,
            },
            "duration": self.duration,
            "points": self.points,
            "created_at": _isoformat_or_none(self.created_at),
            "expires_at": _isoformat_or_none(self.expires_at),
            "is_expired": self.is_expired(reference),
        }

    def __repr__(self) -> str:  # pragma: no cover - helper for shell debugging
        return f"<QuestDefinition id={self.id} title={self.title!r} game_id={self.game_id!r}>"


class PlayerQuest(db.Model):
    """Link between a player and a quest, with the playtime baseline taken at assignment."""

    __tablename__ = "player_quests"

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(
        db.Integer,
        db.ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quest_id = db.Column(
        db.Integer,
        db.ForeignKey("quests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    baseline_minutes = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active")
    points_awarded = db.Column(db.Integer, nullable=False, default=0)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    player = db.relationship("Player", back_populates="quest_links")
    quest = db.relationship("QuestDefinition", back_populates="player_links")

    __table_args__ = (
        # A quest is taken once per player; the link moves active -> completed in place.
        db.UniqueConstraint("player_id", "quest_id", name="uq_player_quests_player_quest"),
        db.CheckConstraint("status IN ('active', 'completed')", name="ck_player_quests_status"),
    )

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "quest": self.quest.to_public_dict() if self.quest else None,
            "baseline_minutes": self.baseline_minutes,
            "status": self.status,
            "points_awarded": self.points_awarded,
            "assigned_at": _isoformat_or_none(self.assigned_at),
            "completed_at": _isoformat_or_none(self.completed_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - helper for shell debugging
        return f"<PlayerQuest id={self.id} player={self.player_id} quest={self.quest_id} status={self.status!r}>"


def _isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    aware = _ensure_aware(value)
    return aware.astimezone(timezone.utc).isoformat()


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
