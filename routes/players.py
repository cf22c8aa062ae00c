"""Player directory and personal statistics routes."""

from __future__ import annotations

from flask_login import login_required

from services import player_service, statistics_service
from .base import views


@views.route("/players")
@login_required
def players_index():
    return player_service.players_index()


@views.route("/statistics")
@login_required
def statistics():
    return statistics_service.statistics_page()
