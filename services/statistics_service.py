"""Personal statistics page."""

from __future__ import annotations

from typing import Any

from flask import render_template
from sqlalchemy.orm import selectinload

from extensions import cache, db
from models import Deck, Game, GameParticipant, Player
from services import stats
from services.authz import current_player
from services.participations import participation_records


def _deck_summary(usage: stats.DeckUsage | None) -> dict[str, Any] | None:
    if usage is None:
        return None
    return {"name": usage.name, "games_played": usage.games_played, "win_rate": usage.win_rate}


@cache.memoize(timeout=300)
def statistics_for_player(player_id: int) -> dict[str, Any]:
    """Aggregate numbers for the statistics page. Memoized per player; see ``invalidate_statistics``."""
    player = db.session.get(Player, player_id)
    if player is None:
        return empty_statistics()

    participations = participation_records(GameParticipant.player_id == player_id)
    total_games = len(participations)
    wins = sum(1 for entry in participations if entry.won)
    usage = stats.deck_usage(participations)
    most = stats.most_played(usage, 1)
    least = stats.least_played(usage, 1)

    game_ids = sorted({entry.game_id for entry in participations})
    games = (
        Game.query.options(selectinload(Game.participants).selectinload(GameParticipant.player))
        .filter(Game.id.in_(game_ids))
        .all()
        if game_ids
        else []
    )
    rosters = [[participant.player.username for participant in game.participants] for game in games]
    recent = stats.recent_games(
        stats.RecentGame(
            game_id=game.id,
            played_at=game.played_at,
            winner=game.winner.player.label if game.winner else None,
        )
        for game in games
    )

    return {
        "total_games": total_games,
        "total_decks": Deck.query.filter_by(player_id=player_id).count(),
        "win_rate": stats.win_rate(wins, total_games),
        "wins": wins,
        "total_players": len(stats.players_faced(rosters, player.username)),
        "most_played_deck": _deck_summary(most[0] if most else None),
        "least_played_deck": _deck_summary(least[0] if least else None),
        "recent_games": [
            {
                "id": game.game_id,
                "played_at": game.played_at,
                "played_at_label": game.played_at.strftime("%b %d, %Y"),
                "winner": game.winner or "Unknown",
            }
            for game in recent
        ],
    }


def empty_statistics() -> dict[str, Any]:
    return {
        "total_games": 0,
        "total_decks": 0,
        "win_rate": 0,
        "wins": 0,
        "total_players": 0,
        "most_played_deck": None,
        "least_played_deck": None,
        "recent_games": [],
    }


def invalidate_statistics() -> None:
    """Drop every memoized statistics payload; any game or deck change can affect several players."""
    cache.delete_memoized(statistics_for_player)


def statistics_page():
    player = current_player()
    return render_template("statistics/index.html", stats=statistics_for_player(player.id))
