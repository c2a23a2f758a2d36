"""Errors raised by the Steam gateway and promotion feed."""

from __future__ import annotations

from typing import Any, Dict, Optional


class SteamServiceError(Exception):
    """Raised when a Steam gateway operation fails."""

    def __init__(self, message: str, status_code: int = 400, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {"error": message}


class RateLimited(SteamServiceError):
    """Too many upstream requests for one player inside the trailing window."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = max(1, int(retry_after_seconds))
        super().__init__(
            f"Too many Steam requests. Try again in {self.retry_after_seconds} seconds.",
            status_code=429,
            payload={
                "error": "rate_limited",
                "message": f"Too many Steam requests. Try again in {self.retry_after_seconds} seconds.",
                "retry_after_seconds": self.retry_after_seconds,
            },
        )


class UpstreamError(SteamServiceError):
    """Steam could not be reached and no cached copy was available."""

    def __init__(self, detail: str = "Steam is unavailable"):
        self.detail = detail
        super().__init__(
            detail,
            status_code=502,
            payload={
                "error": "upstream_unavailable",
                "message": "Steam is unavailable right now, please try again later.",
            },
        )


class GameNotFound(SteamServiceError):
    """Steam has no stats/achievements for the requested game."""

    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(
            f"Game {game_id} has no achievements",
            status_code=404,
            payload={"error": "game_not_found", "message": "Game not found or has no achievements."},
        )
