"""Deck registration, editing and per-deck stats."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from flask import current_app, flash, redirect, render_template, request, url_for
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Deck, Player
from models.deck import COLOR_FLAGS, COLORS, DEFAULT_FORMAT, FORMATS
from services import stats
from services.authz import current_player, ensure_deck_owner
from services.participations import deck_totals
from services.statistics_service import invalidate_statistics
from utils.time import utcnow
from utils.validation import ValidationError, log_validation_error, sanitize_string

MAX_DECK_NAME_LENGTH = 200
MAX_COMMANDER_LENGTH = 200


def normalize_color_identity(selected: Iterable[str]) -> dict[str, bool]:
    """Build the six-flag color identity from the checked boxes.

    Colorless and the five colors are mutually exclusive; any real color wins.
    """
    chosen = {str(value).strip().lower() for value in selected if value}
    identity = {color: color in chosen for color in COLORS}
    identity["colorless"] = "colorless" in chosen and not any(identity.values())
    return identity


def parse_deck_form(form: Mapping[str, Any], *, allow_inactive: bool = False) -> dict[str, Any]:
    name = sanitize_string(form.get("name"), max_length=MAX_DECK_NAME_LENGTH + 1)
    if not name:
        raise ValidationError("Deck name is required.", field="name", invalid=[name])
    if len(name) > MAX_DECK_NAME_LENGTH:
        raise ValidationError(
            f"Deck name must be {MAX_DECK_NAME_LENGTH} characters or fewer.",
            field="name",
            invalid=[name],
        )
    deck_format = (form.get("format") or DEFAULT_FORMAT).strip()
    if deck_format not in FORMATS:
        raise ValidationError("Choose a supported format.", field="format", invalid=[deck_format])
    commander = None
    if deck_format == "Commander":
        commander = sanitize_string(form.get("commander"), max_length=MAX_COMMANDER_LENGTH) or None

    getlist = getattr(form, "getlist", None)
    selected = getlist("colors") if getlist else form.get("colors") or []
    if isinstance(selected, str):
        selected = [selected]

    properties: dict[str, Any] = {
        "format": deck_format,
        "commander": commander,
        "colorIdentity": normalize_color_identity(selected),
        "inactive": False,
    }
    if allow_inactive:
        properties["inactive"] = str(form.get("inactive") or "").lower() in {"1", "true", "on", "yes"}
    return {"name": name, "properties": properties}


def _ensure_unique_name(player: Player, name: str, *, exclude_id: int | None = None) -> None:
    query = Deck.query.filter(Deck.player_id == player.id, func.lower(Deck.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Deck.id != exclude_id)
    if query.first():
        raise ValidationError("You already have a deck with that name.", field="name", invalid=[name])


def create_deck(player: Player, data: Mapping[str, Any]) -> Deck:
    _ensure_unique_name(player, data["name"])
    deck = Deck(player_id=player.id, name=data["name"], properties=dict(data["properties"]))
    db.session.add(deck)
    db.session.commit()
    invalidate_statistics()
    return deck


def update_deck(deck: Deck, data: Mapping[str, Any]) -> Deck:
    _ensure_unique_name(deck.player, data["name"], exclude_id=deck.id)
    deck.name = data["name"]
    deck.properties = dict(data["properties"])
    db.session.commit()
    invalidate_statistics()
    return deck


def deck_payload(deck: Deck, totals: Mapping[str, Any] | None = None, *, now=None) -> dict[str, Any]:
    totals = totals or {}
    plays = int(totals.get("plays") or 0)
    wins = int(totals.get("wins") or 0)
    last_played_at = totals.get("last_played_at")
    threshold = current_app.config.get("INACTIVE_AFTER_DAYS", stats.INACTIVE_AFTER_DAYS)
    colors = deck.color_identity
    return {
        "id": deck.id,
        "name": deck.name,
        "format": deck.format,
        "commander": deck.commander,
        "color_identity": colors,
        "colors": [flag for flag in COLOR_FLAGS if colors.get(flag)],
        "flagged_inactive": deck.flagged_inactive,
        "total_games": plays,
        "wins": wins,
        "win_rate": stats.win_rate(wins, plays),
        "last_played_at": last_played_at,
        "last_played_label": last_played_at.strftime("%b %d, %Y") if last_played_at else None,
        "inactive": stats.deck_is_inactive(deck.flagged_inactive, last_played_at, now, threshold),
    }


def decks_with_stats(player: Player) -> list[dict[str, Any]]:
    """The player's decks with totals, in dashboard order."""
    decks = Deck.query.filter(Deck.player_id == player.id).order_by(func.lower(Deck.name)).all()
    totals = deck_totals([deck.id for deck in decks])
    now = utcnow()
    payloads = [deck_payload(deck, totals.get(deck.id), now=now) for deck in decks]
    return stats.order_for_dashboard(payloads)


def search_decks(decks: Iterable[Mapping[str, Any]], query: str | None) -> list[Mapping[str, Any]]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(decks)
    return [
        deck
        for deck in decks
        if needle in (deck.get("name") or "").lower()
        or needle in (deck.get("format") or "").lower()
        or needle in (deck.get("commander") or "").lower()
    ]


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def dashboard():
    player = current_player()
    return render_template("dashboard.html", player=player, decks=decks_with_stats(player))


def decks_index():
    player = current_player()
    query = request.args.get("q", "")
    decks = search_decks(decks_with_stats(player), query)
    inactive_count = sum(1 for deck in decks if deck["inactive"])
    return render_template("decks/index.html", decks=decks, q=query, inactive_count=inactive_count)


def _deck_form_context(form_data: Mapping[str, Any], *, deck: Deck | None = None) -> dict[str, Any]:
    return {
        "formats": FORMATS,
        "colors": COLOR_FLAGS,
        "form_data": form_data,
        "deck": deck,
        "is_edit": deck is not None,
    }


def _form_data_from_request() -> dict[str, Any]:
    return {
        "name": request.form.get("name", ""),
        "format": request.form.get("format", DEFAULT_FORMAT),
        "commander": request.form.get("commander", ""),
        "colors": request.form.getlist("colors"),
        "inactive": bool(request.form.get("inactive")),
    }


def _form_data_from_deck(deck: Deck) -> dict[str, Any]:
    colors = deck.color_identity
    return {
        "name": deck.name,
        "format": deck.format,
        "commander": deck.commander or "",
        "colors": [flag for flag in COLOR_FLAGS if colors.get(flag)],
        "inactive": deck.flagged_inactive,
    }


def decks_new():
    player = current_player()
    if request.method == "GET":
        empty = {"name": "", "format": DEFAULT_FORMAT, "commander": "", "colors": [], "inactive": False}
        return render_template("decks/form.html", **_deck_form_context(empty))

    form_data = _form_data_from_request()
    try:
        data = parse_deck_form(request.form)
        deck = create_deck(player, data)
    except ValidationError as exc:
        log_validation_error(exc, context="deck_create")
        flash(exc.message, "warning")
        return render_template("decks/form.html", **_deck_form_context(form_data)), 400
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to create deck for player %s", player.id)
        flash("Unable to save the deck right now.", "danger")
        return render_template("decks/form.html", **_deck_form_context(form_data)), 500

    current_app.logger.info("Deck created: deck_id=%s player_id=%s", deck.id, player.id)
    flash(f"Deck “{deck.name}” created.", "success")
    return redirect(url_for("views.dashboard"))


def decks_edit(deck_id: int):
    player = current_player()
    deck = ensure_deck_owner(db.session.get(Deck, deck_id), player)
    if request.method == "GET":
        return render_template("decks/form.html", **_deck_form_context(_form_data_from_deck(deck), deck=deck))

    form_data = _form_data_from_request()
    try:
        data = parse_deck_form(request.form, allow_inactive=True)
        update_deck(deck, data)
    except ValidationError as exc:
        log_validation_error(exc, context="deck_edit")
        flash(exc.message, "warning")
        return render_template("decks/form.html", **_deck_form_context(form_data, deck=deck)), 400
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to update deck %s", deck.id)
        flash("Unable to save the deck right now.", "danger")
        return render_template("decks/form.html", **_deck_form_context(form_data, deck=deck)), 500

    flash("Deck updated.", "success")
    return redirect(url_for("views.decks_index"))
