import json
from datetime import timedelta

from extensions import db
from factories import create_deck, create_game, create_player
from models import Player
from utils.time import utcnow


def test_create_player(app, db_session):  # noqa: ARG001
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-player", "Guest", "--display-name", "Guest Star"])
    assert result.exit_code == 0, result.output
    with app.app_context():
        player = Player.query.filter_by(username="guest").one()
        assert player.display_name == "Guest Star"
        assert player.user_id is None

    result = runner.invoke(args=["create-player", "guest"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_inactive_decks(app, db_session):  # noqa: ARG001
    with app.app_context():
        ana = create_player(username="ana")
        bo = create_player(username="bo")
        fresh = create_deck(player=ana, name="Fresh")
        stale = create_deck(player=ana, name="Stale")
        create_deck(player=ana, name="Unplayed")
        create_deck(player=ana, name="Retired", inactive=True)
        other = create_deck(player=bo, name="Opponent")
        create_game(seats=[fresh, other], played_at=utcnow() - timedelta(days=1))
        create_game(seats=[stale, other], played_at=utcnow() - timedelta(days=45))
        db.session.commit()

    result = app.test_cli_runner().invoke(args=["inactive-decks"])
    assert result.exit_code == 0, result.output
    assert "Stale" in result.output
    assert "Unplayed" in result.output
    assert "Retired" in result.output
    assert "Fresh" not in result.output
    assert "Opponent" not in result.output
    assert "3 inactive deck(s)" in result.output


def test_stats_report_json(app, db_session):  # noqa: ARG001
    with app.app_context():
        ana = create_player(username="ana")
        bo = create_player(username="bo")
        mine = create_deck(player=ana, name="Mine")
        create_game(seats=[mine, create_deck(player=bo)], winner=mine)
        db.session.commit()

    result = app.test_cli_runner().invoke(args=["stats-report", "ana", "--json"])
    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["total_games"] == 1
    assert report["win_rate"] == 100
    assert report["most_played_deck"]["name"] == "Mine"


def test_stats_report_unknown_player(app, db_session):  # noqa: ARG001
    result = app.test_cli_runner().invoke(args=["stats-report", "nobody"])
    assert result.exit_code != 0
    assert "No player named" in result.output
