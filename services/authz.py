"""Authorization helpers for DeckLedger."""
from __future__ import annotations

from flask import abort
from flask_login import current_user
from sqlalchemy import func

from extensions import db
from models import Deck, Game, Player


def current_player() -> Player:
    """Return the player linked to the signed-in account, creating it on first use."""
    if not current_user.is_authenticated:
        abort(401)
    player = Player.query.filter_by(user_id=current_user.id).first()
    if player is not None:
        return player
    player = Player(
        user_id=current_user.id,
        username=_free_username(current_user.username),
    )
    db.session.add(player)
    db.session.commit()
    return player


def _free_username(preferred: str) -> str:
    candidate = preferred
    suffix = 1
    while Player.query.filter(func.lower(Player.username) == candidate.lower()).first():
        suffix += 1
        candidate = f"{preferred}{suffix}"
    return candidate


def ensure_deck_owner(deck: Deck | None, player: Player) -> Deck:
    if deck is None:
        abort(404)
    if deck.player_id != player.id:
        abort(404)
    return deck


def ensure_game_participant(game: Game | None, player: Player) -> Game:
    """Only players who sat at the table may change a game."""
    if game is None:
        abort(404)
    if not any(p.player_id == player.id for p in game.participants):
        abort(403)
    return game
