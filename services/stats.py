"""Derived game statistics.

Everything in here is a pure function over rows that the service layer has
already loaded, so it can be exercised without an app context. Callers turn
ORM rows into ``Participation`` records first.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from fractions import Fraction
from typing import Iterable, Sequence

from utils.time import utcnow
from utils.validation import ValidationError

INACTIVE_AFTER_DAYS = 30
FAVORITE_DECK_COUNT = 2
RECENT_GAME_COUNT = 5

MIN_PARTICIPANTS = 2
WINNER_REQUIRED_MESSAGE = "Exactly one player must be marked as the winner"


@dataclass(frozen=True)
class Participation:
    """One player's seat in one game, flattened for aggregation."""

    game_id: int
    deck_id: int
    deck_name: str
    won: bool
    played_at: datetime | None = None
    player_id: int | None = None


@dataclass
class DeckUsage:
    deck_id: int
    name: str
    games_played: int = 0
    wins: int = 0

    @property
    def win_rate(self) -> int:
        return win_rate(self.wins, self.games_played)


@dataclass(frozen=True)
class ParticipantEntry:
    player_id: int | None
    deck_id: int | None
    won: bool = False


@dataclass(frozen=True)
class RecentGame:
    game_id: int
    played_at: datetime
    winner: str | None = None


def win_rate(wins: int, total: int) -> int:
    """Whole-number win percentage; 0 when nothing has been played.

    Halves round up (5 of 8 games is 63%), matching how the numbers have
    always been shown on the dashboard.
    """
    if total <= 0:
        return 0
    return math.floor(Fraction(100 * wins, total) + Fraction(1, 2))


def deck_usage(participations: Iterable[Participation]) -> list[DeckUsage]:
    """Group participations by deck, in first-seen order."""
    grouped: dict[int, DeckUsage] = {}
    for entry in participations:
        usage = grouped.get(entry.deck_id)
        if usage is None:
            usage = grouped[entry.deck_id] = DeckUsage(deck_id=entry.deck_id, name=entry.deck_name)
        usage.games_played += 1
        if entry.won:
            usage.wins += 1
    return list(grouped.values())


def most_played(usage: Sequence[DeckUsage], limit: int = 1) -> list[DeckUsage]:
    return sorted(usage, key=lambda item: -item.games_played)[:limit]


def least_played(usage: Sequence[DeckUsage], limit: int = 1) -> list[DeckUsage]:
    return sorted(usage, key=lambda item: item.games_played)[:limit]


def favorite_decks(participations: Iterable[Participation], limit: int = FAVORITE_DECK_COUNT) -> list[str]:
    return [item.name for item in most_played(deck_usage(participations), limit)]


def is_inactive(
    last_played_at: datetime | None,
    now: datetime | None = None,
    threshold_days: int = INACTIVE_AFTER_DAYS,
) -> bool:
    """True when a deck has never been played or its last game is over the threshold.

    A deck last played exactly ``threshold_days`` ago is still active.
    """
    if last_played_at is None:
        return True
    now = now or utcnow()
    return now - last_played_at > timedelta(days=threshold_days)


def deck_is_inactive(
    flagged: bool,
    last_played_at: datetime | None,
    now: datetime | None = None,
    threshold_days: int = INACTIVE_AFTER_DAYS,
) -> bool:
    return bool(flagged) or is_inactive(last_played_at, now, threshold_days)


def count_recent(
    participations: Iterable[Participation],
    now: datetime | None = None,
    days: int = INACTIVE_AFTER_DAYS,
) -> int:
    now = now or utcnow()
    cutoff = now - timedelta(days=days)
    return sum(1 for entry in participations if entry.played_at is not None and entry.played_at >= cutoff)


def order_for_dashboard(decks: Iterable[dict]) -> list[dict]:
    """Best win rate first, busier decks first among equal win rates."""
    return sorted(decks, key=lambda deck: (-deck["win_rate"], -deck["total_games"]))


def recent_games(games: Iterable[RecentGame], limit: int = RECENT_GAME_COUNT) -> list[RecentGame]:
    unique: dict[int, RecentGame] = {}
    for game in games:
        unique.setdefault(game.game_id, game)
    return sorted(unique.values(), key=lambda game: game.played_at, reverse=True)[:limit]


def players_faced(rosters: Iterable[Iterable[str]], me: str) -> set[str]:
    return {username for roster in rosters for username in roster if username != me}


def validate_participants(entries: Sequence[ParticipantEntry]) -> None:
    """Reject a game submission that cannot be recorded.

    A game needs at least two participants, each with a deck, no player
    twice, and exactly one winner.
    """
    if len(entries) < MIN_PARTICIPANTS:
        raise ValidationError(
            "A game needs at least two participants.",
            field="participants",
            invalid=[len(entries)],
        )
    missing_player = [index for index, entry in enumerate(entries, start=1) if not entry.player_id]
    if missing_player:
        raise ValidationError("Every participant needs a player.", field="player_id", invalid=missing_player)
    missing_deck = [entry.player_id for entry in entries if not entry.deck_id]
    if missing_deck:
        raise ValidationError("Every participant needs a deck.", field="deck_id", invalid=missing_deck)
    seen: set[int] = set()
    duplicates: list[int] = []
    for entry in entries:
        if entry.player_id in seen:
            duplicates.append(entry.player_id)
        seen.add(entry.player_id)
    if duplicates:
        raise ValidationError(
            "Each player can only appear once per game.",
            field="player_id",
            invalid=duplicates,
        )
    winners = [entry.player_id for entry in entries if entry.won]
    if len(winners) != 1:
        raise ValidationError(WINNER_REQUIRED_MESSAGE, field="winner", invalid=winners)


__all__ = [
    "DeckUsage",
    "Participation",
    "ParticipantEntry",
    "RecentGame",
    "count_recent",
    "deck_is_inactive",
    "deck_usage",
    "favorite_decks",
    "is_inactive",
    "least_played",
    "most_played",
    "order_for_dashboard",
    "players_faced",
    "recent_games",
    "validate_participants",
    "win_rate",
]
