"""JSON endpoints mirroring the dashboard, statistics and players pages."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from extensions import csrf
from services import deck_service, player_service
from services.authz import current_player
from services.statistics_service import statistics_for_player

api_bp = Blueprint("api", __name__, url_prefix="/api")
csrf.exempt(api_bp)


def _iso(value):
    return value.isoformat() if value else None


@api_bp.get("/decks")
@login_required
def api_decks():
    player = current_player()
    decks = deck_service.search_decks(deck_service.decks_with_stats(player), request.args.get("q"))
    return jsonify(
        {
            "decks": [
                {
                    "id": deck["id"],
                    "name": deck["name"],
                    "format": deck["format"],
                    "commander": deck["commander"],
                    "color_identity": deck["color_identity"],
                    "total_games": deck["total_games"],
                    "wins": deck["wins"],
                    "win_rate": deck["win_rate"],
                    "last_played_at": _iso(deck["last_played_at"]),
                    "inactive": deck["inactive"],
                }
                for deck in decks
            ]
        }
    )


@api_bp.get("/statistics")
@login_required
def api_statistics():
    player = current_player()
    payload = dict(statistics_for_player(player.id))
    payload["recent_games"] = [
        {"id": game["id"], "played_at": _iso(game["played_at"]), "winner": game["winner"]}
        for game in payload["recent_games"]
    ]
    return jsonify(payload)


@api_bp.get("/players")
@login_required
def api_players():
    players = player_service.search_players(player_service.players_with_stats(), request.args.get("q"))
    return jsonify({"players": players})
