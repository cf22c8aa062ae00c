"""Player directory with per-player totals."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from flask import current_app, render_template, request
from sqlalchemy import func

from models import Player
from services import stats
from services.participations import participation_records
from utils.time import utcnow


def players_with_stats() -> list[dict[str, Any]]:
    players = Player.query.order_by(func.lower(Player.username)).all()
    by_player: dict[int, list[stats.Participation]] = {player.id: [] for player in players}
    for entry in participation_records():
        by_player.setdefault(entry.player_id, []).append(entry)

    now = utcnow()
    window = current_app.config.get("INACTIVE_AFTER_DAYS", stats.INACTIVE_AFTER_DAYS)
    payloads = []
    for player in players:
        entries = by_player.get(player.id, [])
        wins = sum(1 for entry in entries if entry.won)
        payloads.append(
            {
                "id": player.id,
                "username": player.username,
                "display_name": player.display_name,
                "label": player.label,
                "total_games": len(entries),
                "wins": wins,
                "win_rate": stats.win_rate(wins, len(entries)),
                "favorite_decks": stats.favorite_decks(entries),
                "recent_games": stats.count_recent(entries, now, days=window),
            }
        )
    return payloads


def search_players(players: Iterable[Mapping[str, Any]], query: str | None) -> list[Mapping[str, Any]]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(players)
    matches = []
    for player in players:
        names = [player.get("username") or "", player.get("display_name") or ""]
        if any(needle in name.lower() for name in names):
            matches.append(player)
        elif any(needle in deck.lower() for deck in player.get("favorite_decks") or []):
            matches.append(player)
    return matches


def players_index():
    query = request.args.get("q", "")
    everyone = players_with_stats()
    return render_template(
        "players/index.html",
        players=search_players(everyone, query),
        total_players=len(everyone),
        q=query,
    )
