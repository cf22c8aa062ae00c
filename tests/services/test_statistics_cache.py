import pytest

from extensions import cache, db
from factories import create_deck, create_player
from models import Player
from services.statistics_service import statistics_for_player


@pytest.fixture
def simple_cache(app):
    """Swap the suite-wide NullCache for a real in-process cache for one test."""
    cache.init_app(app, config={"CACHE_TYPE": "SimpleCache", "CACHE_DEFAULT_TIMEOUT": 300})
    with app.app_context():
        cache.clear()
    yield cache
    with app.app_context():
        cache.clear()
    cache.init_app(app, config={"CACHE_TYPE": "NullCache"})


def _stats(app, player_id):
    with app.app_context():
        return statistics_for_player(player_id)


def test_statistics_refresh_after_each_change(app, client, login, simple_cache):  # noqa: ARG001
    user = login()
    with app.app_context():
        me = Player.query.filter_by(user_id=user.id).one()
        guest = create_player(username="guest")
        guest_deck = create_deck(player=guest, name="Dragons")
        db.session.commit()
        me_id, guest_id, guest_deck_id = me.id, guest.id, guest_deck.id

    assert _stats(app, me_id)["total_decks"] == 0
    client.post("/decks/new", data={"name": "Zombies", "format": "Commander"})
    assert _stats(app, me_id)["total_decks"] == 1

    with app.app_context():
        my_deck_id = Player.query.filter_by(user_id=user.id).one().decks[0].id
    assert _stats(app, me_id)["total_games"] == 0
    client.post(
        "/games/new",
        data={
            "player_id": [str(me_id), str(guest_id)],
            "deck_id": [str(my_deck_id), str(guest_deck_id)],
            "winner": "1",
        },
    )
    report = _stats(app, me_id)
    assert report["total_games"] == 1
    assert report["recent_games"][0]["winner"] == "user"

    client.post("/profile", data={"action": "update_display_name", "display_name": "Captain"})
    assert _stats(app, me_id)["recent_games"][0]["winner"] == "Captain"

    game_id = report["recent_games"][0]["id"]
    client.post(f"/games/{game_id}/delete")
    assert _stats(app, me_id)["total_games"] == 0
