"""Query helpers that flatten game participants into stats records."""

from __future__ import annotations

from typing import Any

from sqlalchemy import case, func

from extensions import db
from models import Deck, Game, GameParticipant
from services.stats import Participation


def participation_records(*filters: Any) -> list[Participation]:
    rows = (
        db.session.query(
            GameParticipant.game_id,
            GameParticipant.deck_id,
            Deck.name,
            GameParticipant.won,
            Game.played_at,
            GameParticipant.player_id,
        )
        .join(Deck, Deck.id == GameParticipant.deck_id)
        .join(Game, Game.id == GameParticipant.game_id)
        .filter(*filters)
        .order_by(Game.played_at.asc(), GameParticipant.id.asc())
        .all()
    )
    return [
        Participation(
            game_id=row[0],
            deck_id=row[1],
            deck_name=row[2],
            won=bool(row[3]),
            played_at=row[4],
            player_id=row[5],
        )
        for row in rows
    ]


def deck_totals(deck_ids: list[int]) -> dict[int, dict[str, Any]]:
    """Per-deck play count, win count and last played timestamp."""
    if not deck_ids:
        return {}
    plays_expr = func.count(GameParticipant.id)
    wins_expr = func.coalesce(func.sum(case((GameParticipant.won.is_(True), 1), else_=0)), 0)
    rows = (
        db.session.query(
            GameParticipant.deck_id,
            plays_expr.label("plays"),
            wins_expr.label("wins"),
            func.max(Game.played_at).label("last_played_at"),
        )
        .join(Game, Game.id == GameParticipant.game_id)
        .filter(GameParticipant.deck_id.in_(deck_ids))
        .group_by(GameParticipant.deck_id)
        .all()
    )
    return {
        row.deck_id: {
            "plays": int(row.plays or 0),
            "wins": int(row.wins or 0),
            "last_played_at": row.last_played_at,
        }
        for row in rows
    }
