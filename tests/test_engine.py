import threading
from datetime import datetime, timezone

import pytest

from app import create_app
from extensions import db
from models import Player, PlayerQuest
from quests import assign_quest, check_progress, complete_quest, list_player_quests
from quests.catalog import create_quest
from quests.engine import _complete_link
from quests.errors import QuestAlreadyActive, QuestAlreadyCompleted, QuestNotActive, QuestNotFound
from steam import RateLimited, UpstreamError

from .conftest import HALF_LIFE, STEAM_ID, make_player

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def quest(app):
    return create_quest(
        {"title": "Play HL2", "game_id": HALF_LIFE, "required_minutes": 30, "duration": "weekly"},
        now=NOW,
    )


def _points(player):
    return db.session.get(Player, player.id).points


def test_assign_snapshots_baseline(player, quest, gateway, steam_client):
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 100)

    link = assign_quest(player, quest.id, gateway, now=NOW)

    assert link.status == "active"
    assert link.baseline_minutes == 100
    assert link.points_awarded == 0
    assert [l.id for l in list_player_quests(player)] == [link.id]


def test_unowned_game_gives_zero_baseline(player, quest, gateway):
    link = assign_quest(player, quest.id, gateway, now=NOW)
    assert link.baseline_minutes == 0


def test_progress_below_target_does_not_complete(player, quest, gateway, steam_client, clock):
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 100)
    assign_quest(player, quest.id, gateway, now=NOW)

    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 125)
    clock.advance(3600)
    report = check_progress(player, quest.id, gateway)

    assert report.completed is False
    assert report.gained == 25
    assert report.required == 30
    assert report.to_dict() == {"completed": False, "gained": 25, "required": 30}
    assert _points(player) == 0


def test_progress_reaching_target_completes_and_awards(player, quest, gateway, steam_client, clock):
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 100)
    assign_quest(player, quest.id, gateway, now=NOW)

    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 135)
    clock.advance(3600)
    report = check_progress(player, quest.id, gateway)

    assert report.completed is True
    assert report.gained == 35
    assert report.points_awarded == 30
    assert report.points_total == 30
    link = PlayerQuest.query.one()
    assert link.status == "completed"
    assert link.completed_at is not None
    assert link.points_awarded == 30
    assert _points(player) == 30


def test_cached_playtime_means_no_progress_within_ttl(player, quest, gateway, steam_client):
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 100)
    assign_quest(player, quest.id, gateway, now=NOW)

    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 500)
    report = check_progress(player, quest.id, gateway)

    assert report.completed is False
    assert report.gained == 0


def test_playtime_below_baseline_counts_as_zero(player, quest, gateway, steam_client, clock):
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 100)
    assign_quest(player, quest.id, gateway, now=NOW)

    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 40)
    clock.advance(3600)
    assert check_progress(player, quest.id, gateway).gained == 0


def test_assign_twice_is_rejected(player, quest, gateway):
    assign_quest(player, quest.id, gateway, now=NOW)
    with pytest.raises(QuestAlreadyActive):
        assign_quest(player, quest.id, gateway, now=NOW)
    assert PlayerQuest.query.count() == 1


def test_completed_quest_cannot_be_checked_or_retaken(player, quest, gateway, steam_client, clock):
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 0)
    assign_quest(player, quest.id, gateway, now=NOW)
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 60)
    clock.advance(3600)
    check_progress(player, quest.id, gateway)

    with pytest.raises(QuestNotActive):
        check_progress(player, quest.id, gateway)
    with pytest.raises(QuestAlreadyCompleted):
        assign_quest(player, quest.id, gateway, now=NOW)
    assert _points(player) == 30


def test_check_without_assignment_is_not_active(player, quest, gateway):
    with pytest.raises(QuestNotActive):
        check_progress(player, quest.id, gateway)


def test_assign_unknown_quest(player, gateway):
    with pytest.raises(QuestNotFound):
        assign_quest(player, 999, gateway)


def test_steam_failure_during_assign_creates_nothing(player, quest, gateway, steam_down):
    steam_down()
    with pytest.raises(UpstreamError):
        assign_quest(player, quest.id, gateway, now=NOW)
    assert PlayerQuest.query.count() == 0


def test_rate_limited_check_leaves_link_active(player, quest, gateway, steam_client):
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 100)
    assign_quest(player, quest.id, gateway, now=NOW)
    for _ in range(9):
        gateway.get_owned_games(STEAM_ID)

    with pytest.raises(RateLimited):
        check_progress(player, quest.id, gateway)
    assert PlayerQuest.query.one().status == "active"


def test_losing_the_completion_race_pays_nothing(player, quest, gateway, steam_client, clock):
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 0)
    link = assign_quest(player, quest.id, gateway, now=NOW)
    link_id = link.id
    _complete_link(link_id, player.id, 30, NOW)

    with pytest.raises(QuestNotActive):
        _complete_link(link_id, player.id, 30, NOW)
    assert _points(player) == 30


def test_direct_completion_awards_quest_points(player, gateway):
    quest = create_quest(
        {"title": "Bonus", "game_id": HALF_LIFE, "required_minutes": 30, "duration": "daily", "points": 75},
        now=NOW,
    )

    link = complete_quest(player, quest.id, now=NOW)

    assert link.status == "completed"
    assert link.baseline_minutes is None
    assert link.points_awarded == 75
    assert _points(player) == 75

    with pytest.raises(QuestAlreadyCompleted):
        complete_quest(player, quest.id, now=NOW)
    assert _points(player) == 75


def test_direct_completion_of_active_link(player, quest, gateway):
    assign_quest(player, quest.id, gateway, now=NOW)

    link = complete_quest(player, quest.id, now=NOW)

    assert link.status == "completed"
    assert PlayerQuest.query.count() == 1
    assert _points(player) == 30


def test_points_only_grow_across_quests(player, gateway, steam_client, clock):
    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 0)
    totals = []
    for minutes in (10, 20):
        quest = create_quest(
            {"title": f"{minutes} minutes", "game_id": HALF_LIFE, "required_minutes": minutes, "duration": "daily"},
            now=NOW,
        )
        complete_quest(player, quest.id, now=NOW)
        totals.append(_points(player))
    assert totals == [10, 30]


def test_concurrent_checks_pay_out_once(tmp_path, steam_client, gateway, clock):
    race_app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'race.db'}",
            "STEAM_CLIENT": steam_client,
            "STEAM_GATEWAY": gateway,
        }
    )
    with race_app.app_context():
        player = make_player()
        quest = create_quest(
            {"title": "Play HL2", "game_id": HALF_LIFE, "required_minutes": 30, "duration": "weekly"},
            now=NOW,
        )
        steam_client.set_playtime(STEAM_ID, HALF_LIFE, 0)
        assign_quest(player, quest.id, gateway, now=NOW)
        player_id, quest_id = player.id, quest.id

    steam_client.set_playtime(STEAM_ID, HALF_LIFE, 60)
    clock.advance(3600)

    workers = 8
    barrier = threading.Barrier(workers)
    outcomes = []

    def check():
        with race_app.app_context():
            me = db.session.get(Player, player_id)
            barrier.wait()
            try:
                report = check_progress(me, quest_id, gateway)
                outcomes.append("completed" if report.completed else "pending")
            except QuestNotActive:
                outcomes.append("not_active")
            except Exception as exc:  # surfaced through the outcome assertion
                outcomes.append(repr(exc))
            finally:
                db.session.remove()

    threads = [threading.Thread(target=check) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(outcomes) == ["completed"] + ["not_active"] * (workers - 1)
    with race_app.app_context():
        assert db.session.get(Player, player_id).points == 30
        link = PlayerQuest.query.one()
        assert link.status == "completed"
        assert link.points_awarded == 30
        db.session.remove()
        db.engine.dispose()
