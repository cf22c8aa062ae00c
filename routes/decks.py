"""Deck registration and editing routes."""

from __future__ import annotations

from flask_login import login_required

from services import deck_service
from .base import views


@views.route("/decks")
@login_required
def decks_index():
    return deck_service.decks_index()


@views.route("/decks/new", methods=["GET", "POST"])
@login_required
def decks_new():
    return deck_service.decks_new()


@views.route("/decks/<int:deck_id>/edit", methods=["GET", "POST"])
@login_required
def decks_edit(deck_id: int):
    return deck_service.decks_edit(deck_id)


__all__ = ["decks_index", "decks_new", "decks_edit"]
