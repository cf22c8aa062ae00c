from datetime import timedelta

from extensions import db
from factories import create_deck, create_game, create_player
from models import Player
from services.statistics_service import statistics_for_player
from utils.time import utcnow


def _seed_history(app, user):
    """Three games for the signed-in player across two decks against two opponents."""
    with app.app_context():
        me = Player.query.filter_by(user_id=user.id).one()
        ana = create_player(username="ana", display_name="Ana")
        bo = create_player(username="bo")
        zombies = create_deck(player=me, name="Zombies")
        dragons = create_deck(player=me, name="Dragons")
        ana_deck = create_deck(player=ana, name="Elves")
        bo_deck = create_deck(player=bo, name="Faeries")
        now = utcnow()
        create_game(seats=[zombies, ana_deck], winner=zombies, played_at=now - timedelta(days=3))
        create_game(seats=[zombies, bo_deck], winner=bo_deck, played_at=now - timedelta(days=2))
        create_game(seats=[dragons, ana_deck, bo_deck], winner=ana_deck, played_at=now - timedelta(days=1))
        db.session.commit()
        return me.id


def test_statistics_for_player(app, client, login):
    user = login()
    player_id = _seed_history(app, user)
    with app.app_context():
        report = statistics_for_player(player_id)

    assert report["total_games"] == 3
    assert report["wins"] == 1
    assert report["win_rate"] == 33
    assert report["total_decks"] == 2
    assert report["total_players"] == 2
    assert report["most_played_deck"] == {"name": "Zombies", "games_played": 2, "win_rate": 50}
    assert report["least_played_deck"] == {"name": "Dragons", "games_played": 1, "win_rate": 0}
    assert [game["winner"] for game in report["recent_games"]] == ["Ana", "bo", "user"]


def test_statistics_page(app, client, login):
    user = login()
    _seed_history(app, user)
    body = client.get("/statistics").get_data(as_text=True)
    assert "Statistics" in body
    assert "Overall Win Rate" in body
    assert "33%" in body
    assert "Zombies" in body


def test_statistics_page_without_games(client, login):
    login()
    response = client.get("/statistics")
    assert response.status_code == 200
    assert b"No games played yet." in response.data


def test_players_page_lists_everyone(app, client, login):
    user = login()
    _seed_history(app, user)
    body = client.get("/players").get_data(as_text=True)
    for label in ("Ana", "bo", "user"):
        assert label in body
    assert "Elves" in body


def test_players_search_matches_favorite_decks(app, client, login):
    user = login()
    _seed_history(app, user)
    body = client.get("/players?q=faeries").get_data(as_text=True)
    rows = body.split("<tbody>")[1].split("</tbody>")[0]
    assert "Faeries" in rows
    assert "Elves" not in rows
    assert "Zombies" not in rows
