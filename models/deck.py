"""Deck model and its free-form properties bag."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.mutable import MutableDict

from extensions import db
from utils.time import utcnow

FORMATS = ("Commander", "Standard", "Modern", "Legacy", "Vintage", "Pioneer", "Pauper")
DEFAULT_FORMAT = FORMATS[0]
COLORS = ("white", "blue", "black", "red", "green")
COLOR_FLAGS = COLORS + ("colorless",)


def empty_color_identity() -> dict[str, bool]:
    return {flag: False for flag in COLOR_FLAGS}


def default_properties() -> dict[str, Any]:
    return {
        "format": DEFAULT_FORMAT,
        "commander": None,
        "colorIdentity": empty_color_identity(),
        "inactive": False,
    }


class Deck(db.Model):
    __tablename__ = "decks"
    __table_args__ = (
        db.UniqueConstraint("player_id", "name", name="uq_deck_player_name"),
    )

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(
        db.Integer,
        db.ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    properties = db.Column(MutableDict.as_mutable(db.JSON), nullable=False, default=default_properties)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    player = db.relationship("Player", back_populates="decks")
    participations = db.relationship(
        "GameParticipant",
        back_populates="deck",
        passive_deletes=True,
    )

    @property
    def format(self) -> str:
        return (self.properties or {}).get("format") or DEFAULT_FORMAT

    @property
    def commander(self) -> str | None:
        return (self.properties or {}).get("commander") or None

    @property
    def color_identity(self) -> dict[str, bool]:
        stored = (self.properties or {}).get("colorIdentity") or {}
        return {flag: bool(stored.get(flag)) for flag in COLOR_FLAGS}

    @property
    def flagged_inactive(self) -> bool:
        return bool((self.properties or {}).get("inactive"))

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<Deck {self.id} {self.name!r}>"
