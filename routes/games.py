"""Game logging routes."""

from __future__ import annotations

from flask_login import login_required

from services import game_service
from .base import views


@views.route("/games")
@login_required
def games_index():
    return game_service.games_index()


@views.route("/games/new", methods=["GET", "POST"])
@login_required
def games_new():
    return game_service.games_new()


@views.route("/games/<int:game_id>/edit", methods=["GET", "POST"])
@login_required
def games_edit(game_id: int):
    return game_service.games_edit(game_id)


@views.route("/games/<int:game_id>/delete", methods=["POST"])
@login_required
def games_delete(game_id: int):
    return game_service.games_delete(game_id)


__all__ = ["games_index", "games_new", "games_edit", "games_delete"]
