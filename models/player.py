"""Player identities, one per account plus account-less guests."""

from __future__ import annotations

from extensions import db
from utils.time import utcnow


class Player(db.Model):
    __tablename__ = "players"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        index=True,
    )
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(120), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship("User", back_populates="player")
    decks = db.relationship(
        "Deck",
        back_populates="player",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Deck.name",
    )
    participations = db.relationship(
        "GameParticipant",
        back_populates="player",
        passive_deletes=True,
    )

    @property
    def label(self) -> str:
        return self.display_name or self.username

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<Player {self.id} {self.username}>"
