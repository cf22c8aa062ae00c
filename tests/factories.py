"""Factory helpers for quickly seeding the test database."""
from __future__ import annotations

import itertools
from datetime import datetime
from typing import Iterable, Optional

from extensions import db
from models import Deck, Game, GameParticipant, Player
from models.deck import default_properties
from utils.time import utcnow

_player_counter = itertools.count(1)
_deck_counter = itertools.count(1)


def create_player(*, username: Optional[str] = None, display_name: Optional[str] = None) -> Player:
    player = Player(
        username=username or f"guest{_next_value(_player_counter)}",
        display_name=display_name,
    )
    db.session.add(player)
    db.session.flush()
    return player


def create_deck(
    *,
    player: Player,
    name: Optional[str] = None,
    deck_format: str = "Commander",
    commander: Optional[str] = None,
    colors: Iterable[str] = (),
    inactive: bool = False,
) -> Deck:
    properties = default_properties()
    properties["format"] = deck_format
    properties["commander"] = commander
    properties["inactive"] = inactive
    for color in colors:
        properties["colorIdentity"][color] = True
    deck = Deck(player_id=player.id, name=name or f"Deck {_next_value(_deck_counter)}", properties=properties)
    db.session.add(deck)
    db.session.flush()
    return deck


def create_game(
    *,
    seats: Iterable[Deck],
    winner: Optional[Deck] = None,
    played_at: Optional[datetime] = None,
    location: Optional[str] = None,
) -> Game:
    """Log a game where each deck's owner sits at the table; ``winner`` defaults to the first seat."""
    seats = list(seats)
    winning = winner or seats[0]
    game = Game(played_at=played_at or utcnow(), location=location)
    for deck in seats:
        game.participants.append(
            GameParticipant(player_id=deck.player_id, deck_id=deck.id, won=deck.id == winning.id)
        )
    db.session.add(game)
    db.session.flush()
    return game


def _next_value(counter: itertools.count) -> int:
    return next(counter)


__all__ = ["create_player", "create_deck", "create_game"]
