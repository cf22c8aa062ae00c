"""Game tracking models."""

from __future__ import annotations

from extensions import db
from utils.time import utcnow


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)
    played_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    location = db.Column(db.String(200), nullable=True)
    created_by_player_id = db.Column(
        db.Integer,
        db.ForeignKey("players.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    participants = db.relationship(
        "GameParticipant",
        back_populates="game",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="GameParticipant.id",
    )
    created_by = db.relationship("Player", foreign_keys=[created_by_player_id])

    @property
    def winner(self):
        for participant in self.participants:
            if participant.won:
                return participant
        return None


class GameParticipant(db.Model):
    __tablename__ = "game_participants"
    __table_args__ = (
        db.UniqueConstraint("game_id", "player_id", name="uq_game_participant_player"),
    )

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(
        db.Integer,
        db.ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    player_id = db.Column(
        db.Integer,
        db.ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    deck_id = db.Column(
        db.Integer,
        db.ForeignKey("decks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    won = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())

    game = db.relationship("Game", back_populates="participants")
    player = db.relationship("Player", back_populates="participations")
    deck = db.relationship("Deck", back_populates="participations")
