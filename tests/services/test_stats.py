from datetime import datetime, timedelta

import pytest

from services import stats
from utils.validation import ValidationError

NOW = datetime(2024, 6, 1, 12, 0)


def _entry(game_id, deck_id, name, won=False, days_ago=0, player_id=1):
    return stats.Participation(
        game_id=game_id,
        deck_id=deck_id,
        deck_name=name,
        won=won,
        played_at=NOW - timedelta(days=days_ago),
        player_id=player_id,
    )


@pytest.mark.parametrize(
    "wins,total,expected",
    [(0, 0, 0), (1, 3, 33), (2, 3, 67), (1, 2, 50), (5, 8, 63), (1, 8, 13), (3, 3, 100)],
)
def test_win_rate_rounds_half_up(wins, total, expected):
    assert stats.win_rate(wins, total) == expected


def test_deck_usage_groups_in_first_seen_order():
    entries = [
        _entry(1, 10, "Atraxa", won=True),
        _entry(2, 20, "Krenko"),
        _entry(3, 10, "Atraxa"),
    ]
    usage = stats.deck_usage(entries)
    assert [item.name for item in usage] == ["Atraxa", "Krenko"]
    assert usage[0].games_played == 2
    assert usage[0].wins == 1
    assert usage[0].win_rate == 50


def test_most_and_least_played_keep_first_seen_on_ties():
    entries = [_entry(1, 10, "Alpha"), _entry(2, 20, "Beta"), _entry(3, 30, "Gamma"), _entry(4, 30, "Gamma")]
    usage = stats.deck_usage(entries)
    assert stats.most_played(usage, 1)[0].name == "Gamma"
    assert stats.least_played(usage, 1)[0].name == "Alpha"
    assert [item.name for item in stats.most_played(usage, 3)] == ["Gamma", "Alpha", "Beta"]


def test_favorite_decks_returns_top_two_names():
    entries = [
        _entry(1, 10, "Alpha"),
        _entry(2, 20, "Beta"),
        _entry(3, 20, "Beta"),
        _entry(4, 30, "Gamma"),
        _entry(5, 30, "Gamma"),
        _entry(6, 30, "Gamma"),
    ]
    assert stats.favorite_decks(entries) == ["Gamma", "Beta"]
    assert stats.favorite_decks([]) == []


def test_inactivity_boundary_is_strict():
    assert stats.is_inactive(None, NOW) is True
    assert stats.is_inactive(NOW - timedelta(days=30), NOW) is False
    assert stats.is_inactive(NOW - timedelta(days=30, seconds=1), NOW) is True
    assert stats.is_inactive(NOW - timedelta(days=5), NOW, threshold_days=3) is True


def test_flagged_deck_is_inactive_even_when_recent():
    assert stats.deck_is_inactive(True, NOW, NOW) is True
    assert stats.deck_is_inactive(False, NOW, NOW) is False


def test_count_recent_uses_thirty_day_window():
    entries = [_entry(1, 10, "Alpha", days_ago=1), _entry(2, 10, "Alpha", days_ago=30), _entry(3, 10, "Alpha", days_ago=31)]
    assert stats.count_recent(entries, NOW) == 2


def test_order_for_dashboard_sorts_by_win_rate_then_games():
    decks = [
        {"name": "Low", "win_rate": 20, "total_games": 10},
        {"name": "Busy", "win_rate": 50, "total_games": 8},
        {"name": "Quiet", "win_rate": 50, "total_games": 2},
        {"name": "Twin", "win_rate": 50, "total_games": 2},
    ]
    ordered = [deck["name"] for deck in stats.order_for_dashboard(decks)]
    assert ordered == ["Busy", "Quiet", "Twin", "Low"]


def test_recent_games_dedupes_and_limits():
    games = [stats.RecentGame(game_id=i, played_at=NOW - timedelta(days=i), winner=f"p{i}") for i in range(7)]
    games.append(stats.RecentGame(game_id=0, played_at=NOW, winner="dupe"))
    recent = stats.recent_games(games)
    assert [game.game_id for game in recent] == [0, 1, 2, 3, 4]
    assert recent[0].winner == "p0"


def test_players_faced_excludes_self():
    rosters = [["me", "ana", "bo"], ["me", "ana"], ["cy", "me"]]
    assert stats.players_faced(rosters, "me") == {"ana", "bo", "cy"}


def _seat(player_id, deck_id, won=False):
    return stats.ParticipantEntry(player_id=player_id, deck_id=deck_id, won=won)


def test_validate_participants_accepts_a_complete_table():
    stats.validate_participants([_seat(1, 10, won=True), _seat(2, 20)])


@pytest.mark.parametrize(
    "entries,message",
    [
        ([_seat(1, 10, won=True)], "A game needs at least two participants."),
        ([_seat(1, 10, won=True), _seat(None, 20)], "Every participant needs a player."),
        ([_seat(1, 10, won=True), _seat(2, None)], "Every participant needs a deck."),
        ([_seat(1, 10, won=True), _seat(1, 11)], "Each player can only appear once per game."),
        ([_seat(1, 10), _seat(2, 20)], stats.WINNER_REQUIRED_MESSAGE),
        ([_seat(1, 10, won=True), _seat(2, 20, won=True)], stats.WINNER_REQUIRED_MESSAGE),
    ],
)
def test_validate_participants_rejects(entries, message):
    with pytest.raises(ValidationError) as excinfo:
        stats.validate_participants(entries)
    assert excinfo.value.message == message
