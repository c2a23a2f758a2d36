"""Quest assignment and playtime progress checks.

A player takes a quest once. Assignment snapshots the player's lifetime
minutes on the target game as a baseline; later checks compare Steam's
current figure with that baseline. The active -> completed edge is a
conditional UPDATE issued in the same transaction as the point award, so two
concurrent checks can never pay out twice and a completed quest is never
left unpaid.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import Player, PlayerQuest, QuestDefinition
from steam.gateway import SteamGateway
from .catalog import as_utc, coerce_id, get_quest
from .errors import QuestAlreadyCompleted, QuestNotActive
from .ledger import award_points
from .state import QuestStatus, require_active, transition


@dataclass(frozen=True)
class ProgressReport:
    completed: bool
    gained: int
    required: int
    points_awarded: int = 0
    points_total: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            "completed": self.completed,
            "gained": self.gained,
            "required": self.required,
        }
        if self.completed:
            data["points_awarded"] = self.points_awarded
            data["points_total"] = self.points_total
        return data


def assign_quest(
    player: Player,
    quest_id: Any,
    gateway: SteamGateway,
    now: Optional[datetime] = None,
) -> PlayerQuest:
    quest = get_quest(quest_id)
    existing = _find_link(player.id, quest.id)
    status = transition(existing.status if existing else None, QuestStatus.ACTIVE)

    # Steam failures propagate untouched; a baseline is never guessed.
    baseline = gateway.playtime_minutes(player.steam_id, quest.game_id)

    link = PlayerQuest(
        player_id=player.id,
        quest_id=quest.id,
        baseline_minutes=baseline,
        status=status.value,
        assigned_at=as_utc(now),
    )
    db.session.add(link)
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent request created the link first.
        db.session.rollback()
        winner = _find_link(player.id, quest.id)
        transition(winner.status if winner else None, QuestStatus.ACTIVE)
        raise

    current_app.logger.info(
        "Player %s started quest %s with baseline %s minutes", player.steam_id, quest.id, baseline
    )
    return link


def check_progress(
    player: Player,
    quest_id: Any,
    gateway: SteamGateway,
    now: Optional[datetime] = None,
) -> ProgressReport:
    link = _find_link(player.id, coerce_id(quest_id))
    require_active(link.status if link else None)
    quest: QuestDefinition = link.quest

    current_minutes = gateway.playtime_minutes(player.steam_id, quest.game_id)
    gained = max(0, current_minutes - (link.baseline_minutes or 0))
    required = quest.required_minutes

    if gained < required:
        return ProgressReport(completed=False, gained=gained, required=required)

    reward = required
    _complete_link(link.id, player.id, reward, as_utc(now))
    current_app.logger.info(
        "Player %s completed quest %s (%s/%s minutes), awarded %s points",
        player.steam_id,
        quest.id,
        gained,
        required,
        reward,
    )
    return ProgressReport(
        completed=True,
        gained=gained,
        required=required,
        points_awarded=reward,
        points_total=_points_total(player.id),
    )


def complete_quest(player: Player, quest_id: Any, now: Optional[datetime] = None) -> PlayerQuest:
    """Direct completion without playtime gating; awards the quest's fixed points."""
    quest = get_quest(quest_id)
    existing = _find_link(player.id, quest.id)
    transition(existing.status if existing else None, QuestStatus.COMPLETED)
    completed_at = as_utc(now)

    if existing is not None:
        try:
            _complete_link(existing.id, player.id, quest.points, completed_at)
        except QuestNotActive:
            raise QuestAlreadyCompleted() from None
        link_id = existing.id
    else:
        link = PlayerQuest(
            player_id=player.id,
            quest_id=quest.id,
            baseline_minutes=None,
            status=QuestStatus.COMPLETED.value,
            points_awarded=quest.points,
            assigned_at=completed_at,
            completed_at=completed_at,
        )
        db.session.add(link)
        try:
            db.session.flush()
            award_points(player.id, quest.points, commit=False)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            winner = _find_link(player.id, quest.id)
            transition(winner.status if winner else None, QuestStatus.COMPLETED)
            raise
        link_id = link.id

    current_app.logger.info("Player %s completed quest %s directly, awarded %s points", player.steam_id, quest.id, quest.points)
    return db.session.get(PlayerQuest, link_id)


def list_player_quests(player: Player) -> List[PlayerQuest]:
    return PlayerQuest.query.filter_by(player_id=player.id).order_by(PlayerQuest.id.asc()).all()


def _complete_link(link_id: int, player_id: int, reward: int, completed_at: datetime) -> None:
    """Flip one active link to completed and pay out, all in one transaction."""
    try:
        result = db.session.execute(
            update(PlayerQuest)
            .where(
                PlayerQuest.id == link_id,
                PlayerQuest.status == QuestStatus.ACTIVE.value,
            )
            .values(
                status=QuestStatus.COMPLETED.value,
                completed_at=completed_at,
                points_awarded=reward,
            )
        )
        if result.rowcount != 1:
            # Another request completed it between our read and this update.
            db.session.rollback()
            raise QuestNotActive()
        award_points(player_id, reward, commit=False)
        db.session.commit()
    except QuestNotActive:
        raise
    except Exception as exc:
        db.session.rollback()
        current_app.logger.error("Quest completion for link %s rolled back: %s", link_id, exc)
        raise


def _find_link(player_id: int, quest_id: Optional[int]) -> Optional[PlayerQuest]:
    if quest_id is None:
        return None
    return PlayerQuest.query.filter_by(player_id=player_id, quest_id=quest_id).first()


def _points_total(player_id: int) -> int:
    return db.session.execute(
        select(Player.points).where(Player.id == player_id)
    ).scalar_one()
