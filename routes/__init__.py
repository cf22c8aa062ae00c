"""Aggregate blueprints for DeckLedger routes."""

from __future__ import annotations

from .base import views
from .api import api_bp

# Register route modules (import order not critical but keeps sections grouped)
from . import (
    auth,       # noqa: F401
    dashboard,  # noqa: F401
    decks,      # noqa: F401
    games,      # noqa: F401
    players,    # noqa: F401
)

__all__ = ["views", "api_bp"]
