"""Errors raised by the quest catalog and progress engine."""

from __future__ import annotations

from typing import Any, Dict, Optional


class QuestServiceError(Exception):
    """Raised when a quest service operation fails."""

    def __init__(self, message: str, status_code: int = 400, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {"error": message}


class QuestValidationError(QuestServiceError):
    def __init__(self, fields: Dict[str, str]):
        self.fields = dict(fields)
        super().__init__(
            "Quest payload is invalid",
            status_code=400,
            payload={"error": "validation_failed", "fields": self.fields},
        )


class QuestNotFound(QuestServiceError):
    def __init__(self, quest_id: Any):
        self.quest_id = quest_id
        super().__init__(
            f"Quest {quest_id} not found",
            status_code=404,
            payload={"error": "quest_not_found", "message": "Quest not found"},
        )


class QuestAlreadyActive(QuestServiceError):
    def __init__(self):
        super().__init__(
            "Quest already active",
            status_code=409,
            payload={"error": "quest_already_active", "message": "You already have this quest in progress."},
        )


class QuestNotActive(QuestServiceError):
    def __init__(self):
        super().__init__(
            "Quest not active",
            status_code=409,
            payload={"error": "quest_not_active", "message": "This quest is not active for you."},
        )


class QuestAlreadyCompleted(QuestServiceError):
    def __init__(self):
        super().__init__(
            "Quest already completed",
            status_code=409,
            payload={"error": "quest_already_completed", "message": "Quest already completed"},
        )
