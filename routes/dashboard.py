"""Dashboard landing page: the signed-in player's decks."""

from __future__ import annotations

from flask_login import login_required

from services import deck_service
from .base import views


@views.route("/")
@login_required
def dashboard():
    return deck_service.dashboard()
