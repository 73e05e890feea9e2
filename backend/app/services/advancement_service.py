"""
Bracket advancement: recording a match result fills the winner's slot in the next round.

Round r, position p feeds round r+1, position p // 2. The even feeder fills
player1_id, the odd feeder player2_id. Exactly one round is advanced per
result; the caller records each following round as it is played.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlmodel import Session, select

from app.models.match import Match
from app.models.tournament import Tournament, TournamentStatus
from app.services.bracket_builder import (
    MATCH_COMPLETED,
    MATCH_IN_PROGRESS,
    MATCH_PENDING,
    BracketConflictError,
    BracketValidationError,
    next_slot,
)

logger = logging.getLogger(__name__)


class MatchResultValidationError(BracketValidationError):
    """Result rejected (missing player, tied score); no state changed"""
    pass


class MatchResultConflictError(BracketConflictError):
    """Result would rewrite a slot the next round has already played"""
    pass


@dataclass
class AdvancementResult:
    match: Match
    propagated_match: Optional[Match] = None
    tournament_completed: bool = False


def find_next_match(session: Session, match: Match) -> Optional[Match]:
    next_round, next_position, _ = next_slot(match.round_number, match.position)
    return session.exec(
        select(Match).where(
            Match.tournament_id == match.tournament_id,
            Match.round_number == next_round,
            Match.position == next_position,
        )
    ).first()


def record_match_result(
    session: Session,
    tournament: Tournament,
    match: Match,
    score1: int,
    score2: int,
) -> AdvancementResult:
    """
    Complete *match* with the given scores and advance the winner one round.

    Preconditions (else MatchResultValidationError, nothing written):
      - both player slots are filled
      - score1 != score2 (there is no tie-break)

    Re-submitting a completed match overwrites it: the winner is recomputed
    and the same downstream slot is reassigned. If the downstream match has
    already started or been completed and the winner would change,
    MatchResultConflictError.

    When there is no next round the match was the final: the tournament is
    marked completed and its champion set.
    """
    if match.is_bye:
        raise MatchResultValidationError("Bye matches advance automatically and take no result")
    if match.player1_id is None or match.player2_id is None:
        raise MatchResultValidationError("Both players must be decided before a result can be recorded")
    if score1 == score2:
        raise MatchResultValidationError("Scores cannot be equal in a tournament match")

    winner_id = match.player1_id if score1 > score2 else match.player2_id
    downstream = find_next_match(session, match)

    if (
        downstream is not None
        and downstream.status in (MATCH_IN_PROGRESS, MATCH_COMPLETED)
        and match.winner_id is not None
        and match.winner_id != winner_id
    ):
        raise MatchResultConflictError(
            f"Round {downstream.round_number} match {downstream.id} is already {downstream.status}; "
            "cannot change the winner that advanced into it"
        )

    match.score1 = score1
    match.score2 = score2
    match.winner_id = winner_id
    match.status = MATCH_COMPLETED
    if match.completed_at is None:
        match.completed_at = datetime.utcnow()
    session.add(match)

    tournament_completed = False
    if downstream is not None:
        _, _, attr = next_slot(match.round_number, match.position)
        setattr(downstream, attr, winner_id)
        session.add(downstream)
        if tournament.status == TournamentStatus.upcoming:
            tournament.status = TournamentStatus.active
    else:
        tournament.status = TournamentStatus.completed
        tournament.champion_player_id = winner_id
        tournament_completed = True
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)

    session.commit()
    session.refresh(match)
    if downstream is not None:
        session.refresh(downstream)

    if tournament_completed:
        logger.info("Tournament %s decided: champion player %s", tournament.id, winner_id)
    else:
        logger.info(
            "Match %s (round %s, position %s) won by player %s; advanced to match %s",
            match.id,
            match.round_number,
            match.position,
            winner_id,
            downstream.id,
        )

    return AdvancementResult(match=match, propagated_match=downstream, tournament_completed=tournament_completed)


def start_match(session: Session, match: Match) -> Match:
    """Move a pending match with both players set to in_progress."""
    if match.status == MATCH_COMPLETED:
        raise BracketConflictError("Match is already completed")
    if match.player1_id is None or match.player2_id is None:
        raise MatchResultValidationError("Both players must be decided before the match can start")
    if match.status == MATCH_PENDING:
        match.status = MATCH_IN_PROGRESS
        match.started_at = datetime.utcnow()
        session.add(match)
        session.commit()
        session.refresh(match)
    return match


def resolve_bracket(session: Session, tournament_id: int) -> Dict[str, int]:
    """
    Re-apply advancement for every completed match of a tournament.

    Repairs brackets after interrupted writes or manual edits. Fills only
    empty (or already identical) downstream slots, in (round, position)
    order, so it is idempotent.

    Returns:
        Dict with:
        - matches_processed: completed matches with a winner
        - slots_filled: downstream slots that changed
        - unknown_before / unknown_after: matches missing a player
    """
    matches = session.exec(
        select(Match)
        .where(Match.tournament_id == tournament_id)
        .order_by(Match.round_number, Match.position)
    ).all()
    by_slot = {(m.round_number, m.position): m for m in matches}

    def unknown() -> int:
        return sum(1 for m in matches if m.player1_id is None or m.player2_id is None)

    unknown_before = unknown()
    matches_processed = 0
    slots_filled = 0

    for m in matches:
        if m.status != MATCH_COMPLETED or m.winner_id is None:
            continue
        matches_processed += 1
        r, p, attr = next_slot(m.round_number, m.position)
        down = by_slot.get((r, p))
        if down is None:
            continue
        if getattr(down, attr) is None:
            setattr(down, attr, m.winner_id)
            session.add(down)
            slots_filled += 1

    if slots_filled:
        session.commit()

    return {
        "matches_processed": matches_processed,
        "slots_filled": slots_filled,
        "unknown_before": unknown_before,
        "unknown_after": unknown(),
    }
