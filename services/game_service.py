"""Game logging service layer."""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app, flash, redirect, render_template, request, url_for
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from extensions import db
from models import Deck, Game, GameParticipant, Player
from services import stats
from services.audit import record_audit_event
from services.authz import current_player, ensure_game_participant
from services.statistics_service import invalidate_statistics
from utils.time import parse_played_at, utcnow
from utils.validation import (
    ValidationError,
    log_validation_error,
    parse_optional_positive_int,
    sanitize_string,
)

MAX_PARTICIPANTS = 8
MAX_LOCATION_LENGTH = 200
PLAYED_AT_INPUT_FORMAT = "%Y-%m-%dT%H:%M"


def _form_list(form: Mapping[str, Any], key: str) -> list[Any]:
    getlist = getattr(form, "getlist", None)
    if getlist is not None:
        return list(getlist(key))
    value = form.get(key)
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def parse_game_form(form: Mapping[str, Any]) -> dict[str, Any]:
    """Turn a submitted game form into played_at, location and participant rows.

    Participants arrive as parallel ``player_id``/``deck_id`` lists, one entry
    per table row; ``winner`` is the 1-based row number of the winning seat.
    Rows with neither a player nor a deck are ignored.
    """
    played_at_raw = form.get("played_at")
    played_at = parse_played_at(played_at_raw)
    if played_at is None:
        if played_at_raw and str(played_at_raw).strip():
            raise ValidationError("Played at must be a valid date.", field="played_at", invalid=[played_at_raw])
        played_at = utcnow()
    location = sanitize_string(form.get("location"), max_length=MAX_LOCATION_LENGTH) or None

    player_ids = _form_list(form, "player_id")
    deck_ids = _form_list(form, "deck_id")
    winner_row = parse_optional_positive_int(form.get("winner"), field="winner")

    rows: list[tuple[int, int | None, int | None]] = []
    for index in range(max(len(player_ids), len(deck_ids))):
        raw_player = player_ids[index] if index < len(player_ids) else None
        raw_deck = deck_ids[index] if index < len(deck_ids) else None
        player_id = parse_optional_positive_int(raw_player, field="player")
        deck_id = parse_optional_positive_int(raw_deck, field="deck")
        if player_id is None and deck_id is None:
            continue
        rows.append((index + 1, player_id, deck_id))
    if len(rows) > MAX_PARTICIPANTS:
        raise ValidationError(
            f"A game can have at most {MAX_PARTICIPANTS} participants.",
            field="participants",
            invalid=[len(rows)],
        )

    return {
        "played_at": played_at,
        "location": location,
        "rows": rows,
        "winner_row": winner_row,
    }


def resolve_participants(parsed: Mapping[str, Any]) -> list[stats.ParticipantEntry]:
    """Check players and decks exist and match, then validate the table as a whole."""
    rows = parsed["rows"]
    deck_ids = {deck_id for _, _, deck_id in rows if deck_id}
    decks = {deck.id: deck for deck in Deck.query.filter(Deck.id.in_(deck_ids)).all()} if deck_ids else {}

    entries: list[stats.ParticipantEntry] = []
    for row_number, player_id, deck_id in rows:
        if deck_id is not None:
            deck = decks.get(deck_id)
            if deck is None:
                raise ValidationError("Selected deck does not exist.", field="deck_id", invalid=[deck_id])
            if player_id is None:
                player_id = deck.player_id
            elif deck.player_id != player_id:
                raise ValidationError(
                    "Each participant must play one of their own decks.",
                    field="deck_id",
                    invalid=[deck_id],
                )
        entries.append(
            stats.ParticipantEntry(
                player_id=player_id,
                deck_id=deck_id,
                won=row_number == parsed["winner_row"],
            )
        )

    player_ids = {entry.player_id for entry in entries if entry.player_id}
    if player_ids:
        known = {row[0] for row in db.session.query(Player.id).filter(Player.id.in_(player_ids)).all()}
        missing = sorted(player_ids - known)
        if missing:
            raise ValidationError("Selected player does not exist.", field="player_id", invalid=missing)

    stats.validate_participants(entries)
    return entries


def create_game(creator: Player, parsed: Mapping[str, Any], entries: list[stats.ParticipantEntry]) -> Game:
    game = Game(
        played_at=parsed["played_at"],
        location=parsed["location"],
        created_by_player_id=creator.id,
    )
    for entry in entries:
        game.participants.append(
            GameParticipant(player_id=entry.player_id, deck_id=entry.deck_id, won=entry.won)
        )
    db.session.add(game)
    db.session.flush()
    record_audit_event("game_created", {"game_id": game.id, "participants": len(entries)})
    db.session.commit()
    invalidate_statistics()
    return game


def update_game(game: Game, parsed: Mapping[str, Any], entries: list[stats.ParticipantEntry]) -> Game:
    game.played_at = parsed["played_at"]
    game.location = parsed["location"]

    # Update rows in place so the (game, player) unique constraint never sees a duplicate mid-flush.
    existing = {participant.player_id: participant for participant in game.participants}
    wanted = {entry.player_id for entry in entries}
    for player_id, participant in existing.items():
        if player_id not in wanted:
            game.participants.remove(participant)
    db.session.flush()
    for entry in entries:
        participant = existing.get(entry.player_id)
        if participant is None:
            game.participants.append(
                GameParticipant(player_id=entry.player_id, deck_id=entry.deck_id, won=entry.won)
            )
        else:
            participant.deck_id = entry.deck_id
            participant.won = entry.won

    record_audit_event("game_updated", {"game_id": game.id, "participants": len(entries)})
    db.session.commit()
    invalidate_statistics()
    return game


def delete_game(game: Game) -> None:
    record_audit_event("game_deleted", {"game_id": game.id})
    db.session.delete(game)
    db.session.commit()
    invalidate_statistics()


def game_payload(game: Game, viewer: Player | None = None) -> dict[str, Any]:
    participants = []
    winner_label = None
    for participant in game.participants:
        label = participant.player.label if participant.player else "Unknown"
        if participant.won:
            winner_label = label
        participants.append(
            {
                "id": participant.id,
                "player_id": participant.player_id,
                "deck_id": participant.deck_id,
                "player_label": label,
                "username": participant.player.username if participant.player else None,
                "deck_name": participant.deck.name if participant.deck else "Unknown deck",
                "won": bool(participant.won),
            }
        )
    return {
        "id": game.id,
        "played_at": game.played_at,
        "played_at_label": game.played_at.strftime("%b %d, %Y") if game.played_at else "Unknown",
        "location": game.location,
        "winner_label": winner_label,
        "participants": participants,
        "can_edit": bool(viewer and any(p["player_id"] == viewer.id for p in participants)),
    }


def games_for_player(player: Player) -> list[Game]:
    """Games the player sat in, newest first, with every participant loaded."""
    return (
        Game.query.options(
            selectinload(Game.participants).selectinload(GameParticipant.player),
            selectinload(Game.participants).selectinload(GameParticipant.deck),
        )
        .join(GameParticipant, GameParticipant.game_id == Game.id)
        .filter(GameParticipant.player_id == player.id)
        .order_by(Game.played_at.desc(), Game.id.desc())
        .all()
    )


# ---------------------------------------------------------------------------
# Form helpers
# ---------------------------------------------------------------------------

def _player_options() -> list[dict[str, Any]]:
    players = (
        Player.query.options(selectinload(Player.decks))
        .order_by(func.lower(Player.username))
        .all()
    )
    return [
        {
            "id": player.id,
            "label": player.label,
            "username": player.username,
            "decks": [{"id": deck.id, "name": deck.name} for deck in player.decks],
        }
        for player in players
    ]


def _blank_rows(count: int) -> list[dict[str, str]]:
    return [{"player_id": "", "deck_id": ""} for _ in range(count)]


def _default_form_data(player: Player, selected_deck_id: int | None) -> dict[str, Any]:
    rows = _blank_rows(MAX_PARTICIPANTS)
    own_decks = list(player.decks)
    if own_decks:
        deck_ids = {deck.id for deck in own_decks}
        initial_deck = selected_deck_id if selected_deck_id in deck_ids else own_decks[0].id
        rows[0] = {"player_id": str(player.id), "deck_id": str(initial_deck)}
    else:
        rows[0] = {"player_id": str(player.id), "deck_id": ""}
    return {
        "played_at": utcnow().strftime(PLAYED_AT_INPUT_FORMAT),
        "location": "",
        "rows": rows,
        "winner": "",
    }


def _form_data_from_request() -> dict[str, Any]:
    player_ids = request.form.getlist("player_id")
    deck_ids = request.form.getlist("deck_id")
    rows = _blank_rows(MAX_PARTICIPANTS)
    for index in range(min(MAX_PARTICIPANTS, max(len(player_ids), len(deck_ids)))):
        rows[index] = {
            "player_id": player_ids[index] if index < len(player_ids) else "",
            "deck_id": deck_ids[index] if index < len(deck_ids) else "",
        }
    return {
        "played_at": request.form.get("played_at", ""),
        "location": request.form.get("location", ""),
        "rows": rows,
        "winner": request.form.get("winner", ""),
    }


def _form_data_from_game(game: Game) -> dict[str, Any]:
    rows = _blank_rows(max(MAX_PARTICIPANTS, len(game.participants)))
    winner = ""
    for index, participant in enumerate(game.participants):
        rows[index] = {"player_id": str(participant.player_id), "deck_id": str(participant.deck_id)}
        if participant.won:
            winner = str(index + 1)
    return {
        "played_at": game.played_at.strftime(PLAYED_AT_INPUT_FORMAT),
        "location": game.location or "",
        "rows": rows,
        "winner": winner,
    }


def _render_form(form_data: dict[str, Any], *, game: Game | None = None, status: int = 200):
    body = render_template(
        "games/form.html",
        players=_player_options(),
        form_data=form_data,
        game=game,
        is_edit=game is not None,
    )
    return body, status


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def games_index():
    player = current_player()
    games = [game_payload(game, player) for game in games_for_player(player)]
    return render_template("games/index.html", games=games)


def games_new():
    player = current_player()
    if request.method == "GET":
        try:
            selected_deck_id = parse_optional_positive_int(request.args.get("deck_id"), field="deck")
        except ValidationError:
            selected_deck_id = None
        return _render_form(_default_form_data(player, selected_deck_id))

    form_data = _form_data_from_request()
    try:
        parsed = parse_game_form(request.form)
        entries = resolve_participants(parsed)
    except ValidationError as exc:
        log_validation_error(exc, context="game_create")
        flash(exc.message, "warning")
        return _render_form(form_data, status=400)

    try:
        game = create_game(player, parsed, entries)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to save game for player %s", player.id)
        flash("Unable to save the game right now.", "danger")
        return _render_form(form_data, status=500)

    current_app.logger.info("Game logged: game_id=%s participants=%s", game.id, len(entries))
    flash("Game logged.", "success")
    return redirect(url_for("views.games_index"))


def _load_game(game_id: int) -> Game | None:
    return (
        Game.query.options(selectinload(Game.participants))
        .filter(Game.id == game_id)
        .first()
    )


def games_edit(game_id: int):
    player = current_player()
    game = ensure_game_participant(_load_game(game_id), player)
    if request.method == "GET":
        return _render_form(_form_data_from_game(game), game=game)

    form_data = _form_data_from_request()
    try:
        parsed = parse_game_form(request.form)
        entries = resolve_participants(parsed)
    except ValidationError as exc:
        log_validation_error(exc, context="game_edit")
        flash(exc.message, "warning")
        return _render_form(form_data, game=game, status=400)

    try:
        update_game(game, parsed, entries)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to update game %s", game.id)
        flash("Unable to save the game right now.", "danger")
        return _render_form(form_data, game=game, status=500)

    flash("Game updated.", "success")
    return redirect(url_for("views.games_index"))


def games_delete(game_id: int):
    player = current_player()
    game = ensure_game_participant(_load_game(game_id), player)
    try:
        delete_game(game)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to delete game %s", game_id)
        flash("Unable to delete the game right now.", "danger")
        return redirect(url_for("views.games_index"))
    flash("Game deleted.", "info")
    return redirect(url_for("views.games_index"))
