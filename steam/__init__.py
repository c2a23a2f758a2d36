"""Steam feature package (gateway, promotion feed and public API)."""

from .cache import RequestCache
from .client import SteamWebClient
from .errors import GameNotFound, RateLimited, SteamServiceError, UpstreamError
from .gateway import Achievement, GameSummary, SteamGateway
from .promotions import Promotion, list_promotions
from .rate_limit import RateLimiter
from .routes import create_steam_blueprint

__all__ = [
    "Achievement",
    "GameNotFound",
    "GameSummary",
    "Promotion",
    "RateLimited",
    "RateLimiter",
    "RequestCache",
    "SteamGateway",
    "SteamServiceError",
    "SteamWebClient",
    "UpstreamError",
    "create_steam_blueprint",
    "list_promotions",
]
