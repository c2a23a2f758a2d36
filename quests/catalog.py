"""Quest catalog: create, list and delete quest definitions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import bleach
from dateutil.relativedelta import relativedelta
from flask import current_app

from extensions import db
from models import QuestDefinition
from .errors import QuestNotFound, QuestValidationError

DURATION_OFFSETS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(days=7),
    "monthly": relativedelta(months=1),
}
TITLE_MAX_LENGTH = 200


def compute_expiry(duration: str, created_at: datetime) -> datetime:
    """Expiry is creation time plus the duration offset (calendar month for monthly)."""
    try:
        offset = DURATION_OFFSETS[duration]
    except KeyError:
        raise ValueError(f"Unknown quest duration: {duration!r}") from None
    return created_at + offset


def create_quest(payload: Dict[str, Any], now: Optional[datetime] = None) -> QuestDefinition:
    values, errors = _validate_and_normalize(payload or {})
    if errors:
        raise QuestValidationError(errors)

    created_at = as_utc(now)
    quest = QuestDefinition(
        title=values["title"],
        game_id=values["game_id"],
        game_name=values["game_name"],
        required_minutes=values["required_minutes"],
        duration=values["duration"],
        points=values["points"],
        created_at=created_at,
        expires_at=compute_expiry(values["duration"], created_at),
    )
    db.session.add(quest)
    _commit_session("creating quest")
    current_app.logger.info("Quest %s created for game %s", quest.id, quest.game_id)
    return quest


def get_quest(quest_id: Any) -> QuestDefinition:
    key = coerce_id(quest_id)
    quest = db.session.get(QuestDefinition, key) if key is not None else None
    if quest is None:
        raise QuestNotFound(quest_id)
    return quest


def delete_quest(quest_id: Any) -> None:
    quest = get_quest(quest_id)
    db.session.delete(quest)
    _commit_session(f"deleting quest {quest_id}")


def list_quests(include_expired: bool = True, now: Optional[datetime] = None) -> List[QuestDefinition]:
    query = QuestDefinition.query
    if not include_expired:
        query = query.filter(QuestDefinition.expires_at > as_utc(now))
    return query.order_by(QuestDefinition.created_at.desc(), QuestDefinition.id.desc()).all()


def _validate_and_normalize(payload: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    errors: Dict[str, str] = {}

    # The admin dashboard posts the legacy field names; accept both.
    requirements = payload.get("requirements") if isinstance(payload.get("requirements"), dict) else {}
    title_raw = payload.get("title", payload.get("questTitle"))
    game_id_raw = payload.get("game_id", requirements.get("steamAppId", payload.get("gameId")))
    game_name_raw = payload.get("game_name", requirements.get("gameName", payload.get("gameName")))
    minutes_raw = payload.get("required_minutes", requirements.get("requiredMinutes", payload.get("requiredMinutes")))
    duration = _clean(payload.get("duration")).lower()

    title = bleach.clean(_clean(title_raw), tags=[], attributes={}, strip=True)
    if not title:
        errors["title"] = "Title is required."
    elif len(title) > TITLE_MAX_LENGTH:
        errors["title"] = f"Title must be at most {TITLE_MAX_LENGTH} characters."

    game_id = _clean(game_id_raw)
    if not game_id:
        errors["game_id"] = "Target game is required."

    required_minutes = _parse_positive_int(minutes_raw, "Required minutes", "required_minutes", errors, required=True)

    if not duration:
        errors["duration"] = "Duration is required."
    elif duration not in DURATION_OFFSETS:
        errors["duration"] = "Duration must be one of: daily, weekly, monthly."

    points = _parse_positive_int(payload.get("points"), "Points", "points", errors, required=False)

    values = {
        "title": title,
        "game_id": game_id,
        "game_name": bleach.clean(_clean(game_name_raw), tags=[], attributes={}, strip=True),
        "required_minutes": required_minutes,
        "duration": duration,
        "points": points if points is not None else required_minutes,
    }
    return values, errors


def _parse_positive_int(raw: Any, label: str, field: str, errors: Dict[str, str], required: bool) -> Optional[int]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            errors[field] = f"{label} is required."
        return None
    if isinstance(raw, bool):
        errors[field] = f"{label} must be a whole number."
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        errors[field] = f"{label} must be a whole number."
        return None
    if value <= 0:
        errors[field] = f"{label} must be greater than zero."
        return None
    return value


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_id(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def as_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _commit_session(context_message: str) -> None:
    try:
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.error("Quest catalog error while %s: %s", context_message, exc)
        raise
