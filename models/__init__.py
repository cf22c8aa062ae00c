"""SQLAlchemy models package for DeckLedger.
Re-exports the shared `db` instance to avoid import loops and provides
convenient names for the model classes.

Usage:
    from models import db, Player, Deck, Game, GameParticipant
"""
from __future__ import annotations

from extensions import db  # shared SQLAlchemy() instance

# Import models only after db exists to avoid circular imports
from .user import User, AuditLog  # type: ignore F401
from .player import Player  # type: ignore F401
from .deck import Deck  # type: ignore F401
from .game import Game, GameParticipant  # type: ignore F401

__all__ = [
    "db",
    "User",
    "AuditLog",
    "Player",
    "Deck",
    "Game",
    "GameParticipant",
]
