"""Quest feature package (catalog, progress engine, ledger and public API)."""

from .engine import ProgressReport, assign_quest, check_progress, complete_quest, list_player_quests
from .routes import create_quests_blueprint

__all__ = [
    "ProgressReport",
    "assign_quest",
    "check_progress",
    "complete_quest",
    "create_quests_blueprint",
    "list_player_quests",
]
