"""
Single-elimination bracket construction.

Bracket size is the next power of two >= player count. Round 0 pairs follow
bracket-fold order so that, if seeds hold, seed 1 meets seed 2 only in the
final. Seeds beyond the player count are byes; they always land opposite a
top seed, so no match is ever bye-vs-bye.

Byes are written as completed round-0 matches (is_bye=True, winner = the
present player) and their winners are placed into round 1 immediately, not
through result submission.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from app.models.match import Match
from app.models.tournament import Tournament, TournamentFormat, TournamentStatus
from app.models.tournament_player import TournamentPlayer

logger = logging.getLogger(__name__)

MATCH_PENDING = "pending"
MATCH_IN_PROGRESS = "in_progress"
MATCH_COMPLETED = "completed"


class BracketError(Exception):
    """Base exception for bracket errors"""
    pass


class BracketValidationError(BracketError):
    """Request rejected; nothing was changed"""
    pass


class BracketConflictError(BracketError):
    """Request conflicts with recorded results"""
    pass


@dataclass
class MatchSlot:
    """Lightweight struct for one generated match."""
    round_number: int
    position: int
    player1_id: Optional[int] = None
    player2_id: Optional[int] = None
    winner_id: Optional[int] = None
    status: str = MATCH_PENDING
    is_bye: bool = False


def bracket_size(player_count: int) -> int:
    size = 2
    while size < player_count:
        size *= 2
    return size


def round_count(size: int) -> int:
    return size.bit_length() - 1


def bracket_fold_positions(n: int) -> List[int]:
    """Standard bracket-fold positions for *n* entries (n a power of two).

    Returns a flat list of seed numbers in bracket position order.
    Consecutive pairs indicate which seeds meet in round 0:
      4-entry  -> [1, 4, 2, 3]       -> (1v4), (2v3)
      8-entry  -> [1, 8, 4, 5, ...]   -> (1v8), (4v5), ...
    """
    if n == 2:
        return [1, 2]

    half = bracket_fold_positions(n // 2)

    expanded: List[int] = []
    for s in half:
        expanded.append(s)
        expanded.append(n + 1 - s)

    mid = len(expanded) // 2
    top = expanded[:mid]
    bot = expanded[mid:]
    if len(bot) >= 4:
        bot = bot[:-4] + bot[-2:] + bot[-4:-2]

    return top + bot


def next_slot(round_number: int, position: int) -> Tuple[int, int, str]:
    """Where the winner of (round, position) goes: (round + 1, position // 2, slot attribute)."""
    slot = "player1_id" if position % 2 == 0 else "player2_id"
    return round_number + 1, position // 2, slot


def seeded_order(players: Sequence[TournamentPlayer]) -> List[TournamentPlayer]:
    """Seed ascending (unseeded last), then registration order, then id."""
    return sorted(
        players,
        key=lambda p: (
            p.seed is None,
            p.seed if p.seed is not None else 0,
            p.registered_at or datetime.min,
            p.id or 0,
        ),
    )


def layout_single_elimination(player_ids: Sequence[int]) -> List[MatchSlot]:
    """
    Build every match of a single-elimination bracket.

    *player_ids* must already be in seed order (index 0 = seed 1).
    Returns matches ordered by (round, position) with byes resolved into round 1.
    """
    n = len(player_ids)
    if n < 2:
        raise BracketValidationError("At least 2 players are required")
    if len(set(player_ids)) != n:
        raise BracketValidationError("Player list contains duplicates")

    size = bracket_size(n)
    rounds = round_count(size)
    fold = bracket_fold_positions(size)

    def by_seed(seed: int) -> Optional[int]:
        return player_ids[seed - 1] if seed <= n else None

    slots: List[MatchSlot] = []
    for position in range(size // 2):
        p1 = by_seed(fold[2 * position])
        p2 = by_seed(fold[2 * position + 1])
        slot = MatchSlot(round_number=0, position=position, player1_id=p1, player2_id=p2)
        if p1 is None or p2 is None:
            slot.is_bye = True
            slot.winner_id = p1 if p1 is not None else p2
            slot.status = MATCH_COMPLETED
        slots.append(slot)

    for r in range(1, rounds):
        for position in range(size // 2 ** (r + 1)):
            slots.append(MatchSlot(round_number=r, position=position))

    index = {(s.round_number, s.position): s for s in slots}
    for s in slots:
        if s.round_number == 0 and s.is_bye and rounds > 1:
            r, p, attr = next_slot(s.round_number, s.position)
            setattr(index[(r, p)], attr, s.winner_id)

    return slots


def generate_bracket(session: Session, tournament: Tournament) -> List[Match]:
    """
    (Re)build the bracket for *tournament* from its registered players.

    Refused once any real (non-bye) result has been recorded. Existing
    pending matches are replaced. The tournament moves to active.
    """
    if tournament.format != TournamentFormat.single_elimination:
        raise BracketValidationError(
            f"Bracket generation is only supported for single_elimination (tournament is {TournamentFormat(tournament.format).value})"
        )

    existing = session.exec(select(Match).where(Match.tournament_id == tournament.id)).all()
    if any(m.status != MATCH_PENDING and not m.is_bye for m in existing):
        raise BracketConflictError("Results have already been recorded; bracket cannot be regenerated")

    players = session.exec(select(TournamentPlayer).where(TournamentPlayer.tournament_id == tournament.id)).all()
    ordered = seeded_order(players)
    slots = layout_single_elimination([p.id for p in ordered])

    for m in existing:
        session.delete(m)
    session.flush()

    now = datetime.utcnow()
    matches: List[Match] = []
    for s in slots:
        match = Match(
            tournament_id=tournament.id,
            round_number=s.round_number,
            position=s.position,
            player1_id=s.player1_id,
            player2_id=s.player2_id,
            winner_id=s.winner_id,
            status=s.status,
            is_bye=s.is_bye,
            completed_at=now if s.is_bye else None,
        )
        session.add(match)
        matches.append(match)

    tournament.status = TournamentStatus.active
    tournament.champion_player_id = None
    session.add(tournament)
    session.commit()
    for m in matches:
        session.refresh(m)

    logger.info(
        "Generated bracket for tournament %s: %d players, %d matches, %d byes",
        tournament.id,
        len(ordered),
        len(matches),
        sum(1 for s in slots if s.is_bye),
    )
    return matches
