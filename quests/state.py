"""Lifecycle of a (player, quest) pair: unassigned -> active -> completed."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Optional, Tuple

from .errors import QuestAlreadyActive, QuestAlreadyCompleted, QuestNotActive


class QuestStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


# None stands for "unassigned". The unassigned -> completed edge is the
# direct-completion path that skips playtime gating.
LEGAL_TRANSITIONS: FrozenSet[Tuple[Optional[QuestStatus], QuestStatus]] = frozenset(
    {
        (None, QuestStatus.ACTIVE),
        (QuestStatus.ACTIVE, QuestStatus.COMPLETED),
        (None, QuestStatus.COMPLETED),
    }
)


def coerce_status(value) -> Optional[QuestStatus]:
    if value is None or isinstance(value, QuestStatus):
        return value
    return QuestStatus(value)


def can_transition(current, target) -> bool:
    return (coerce_status(current), coerce_status(target)) in LEGAL_TRANSITIONS


def transition(current, target) -> QuestStatus:
    """Return ``target`` when the edge is legal, otherwise raise the matching guard error."""
    current = coerce_status(current)
    target = coerce_status(target)
    if (current, target) in LEGAL_TRANSITIONS:
        return target
    if current is QuestStatus.COMPLETED:
        raise QuestAlreadyCompleted()
    if target is QuestStatus.ACTIVE:
        raise QuestAlreadyActive()
    raise QuestNotActive()


def require_active(current) -> None:
    """Progress checks only make sense while the link is active."""
    if coerce_status(current) is not QuestStatus.ACTIVE:
        raise QuestNotActive()
