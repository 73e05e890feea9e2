import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, func, or_, select

from app.database import get_session
from app.models.game import Game
from app.models.match import Match
from app.models.series import Series
from app.models.tournament import Tournament, TournamentFormat, TournamentStatus
from app.models.tournament_player import TournamentPlayer
from app.services.advancement_service import (
    MatchResultConflictError,
    MatchResultValidationError,
    record_match_result,
    resolve_bracket,
    start_match,
)
from app.services.bracket_builder import (
    MATCH_PENDING,
    BracketConflictError,
    BracketValidationError,
    generate_bracket,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class PlayerCreate(BaseModel):
    name: str
    user_id: Optional[str] = None
    seed: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("seed")
    @classmethod
    def validate_seed(cls, v):
        if v is not None and v < 1:
            raise ValueError("seed must be >= 1")
        return v


class TournamentCreate(BaseModel):
    name: str
    game_id: int
    format: TournamentFormat = TournamentFormat.single_elimination
    series_id: Optional[int] = None
    created_by: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    players: List[PlayerCreate] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_players_and_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        names = [p.name.lower() for p in self.players]
        if len(names) != len(set(names)):
            raise ValueError("player names must be unique")
        return self


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    format: Optional[TournamentFormat] = None
    series_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class PlayerResponse(BaseModel):
    id: int
    tournament_id: int
    name: str
    user_id: Optional[str]
    seed: Optional[int]
    registered_at: datetime

    class Config:
        from_attributes = True


class TournamentResponse(BaseModel):
    id: int
    name: str
    game_id: int
    format: TournamentFormat
    status: TournamentStatus
    series_id: Optional[int]
    created_by: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    champion_player_id: Optional[int]
    created_at: datetime
    updated_at: datetime
    players: List[PlayerResponse] = []

    class Config:
        from_attributes = True


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    round_number: int
    position: int
    player1_id: Optional[int]
    player2_id: Optional[int]
    winner_id: Optional[int]
    score1: Optional[int]
    score2: Optional[int]
    status: str
    is_bye: bool
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchResultPayload(BaseModel):
    score1: int
    score2: int

    @model_validator(mode="after")
    def validate_scores(self):
        if self.score1 < 0 or self.score2 < 0:
            raise ValueError("scores must be >= 0")
        return self


class MatchResultResponse(BaseModel):
    match: MatchResponse
    propagated_match: Optional[MatchResponse] = None
    tournament_status: TournamentStatus
    champion_player_id: Optional[int] = None


class BracketResponse(BaseModel):
    tournament_id: int
    status: TournamentStatus
    champion_player_id: Optional[int]
    rounds: List[List[MatchResponse]]


def _get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def _get_match(session: Session, tournament_id: int, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if not match or match.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


def _check_series(session: Session, series_id: Optional[int], game_id: int) -> None:
    if series_id is None:
        return
    series = session.get(Series, series_id)
    if not series:
        raise HTTPException(status_code=404, detail="Series not found")
    if series.game_id != game_id:
        raise HTTPException(status_code=422, detail="Series belongs to a different game")


def _has_results(session: Session, tournament_id: int) -> bool:
    return (
        session.exec(
            select(func.count(Match.id)).where(
                Match.tournament_id == tournament_id,
                Match.status != MATCH_PENDING,
                Match.is_bye == False,  # noqa: E712
            )
        ).one()
        > 0
    )


def _ordered_matches(session: Session, tournament_id: int) -> List[Match]:
    return session.exec(
        select(Match).where(Match.tournament_id == tournament_id).order_by(Match.round_number, Match.position)
    ).all()


# ============================================================================
# Tournaments
# ============================================================================

@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(
    game_id: Optional[int] = None,
    status: Optional[TournamentStatus] = None,
    series_id: Optional[int] = None,
    session: Session = Depends(get_session),
):
    """List tournaments, newest first"""
    query = select(Tournament)
    if game_id is not None:
        query = query.where(Tournament.game_id == game_id)
    if status is not None:
        query = query.where(Tournament.status == status.value)
    if series_id is not None:
        query = query.where(Tournament.series_id == series_id)
    return session.exec(query.order_by(Tournament.created_at.desc(), Tournament.id.desc())).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament with its initial player list"""
    if not session.get(Game, tournament_data.game_id):
        raise HTTPException(status_code=404, detail="Game not found")
    _check_series(session, tournament_data.series_id, tournament_data.game_id)

    try:
        tournament = Tournament(
            **tournament_data.model_dump(exclude={"players", "format"}),
            format=tournament_data.format.value,
            status=TournamentStatus.upcoming.value,
        )
        session.add(tournament)
        session.flush()  # Get the ID

        for p in tournament_data.players:
            session.add(TournamentPlayer(tournament_id=tournament.id, **p.model_dump()))

        session.commit()
        session.refresh(tournament)
    except Exception as e:
        session.rollback()
        logger.exception("Failed to create tournament")
        raise HTTPException(status_code=500, detail=f"Failed to create tournament: {str(e)}")

    logger.info(
        "Created tournament %s (%s, %d players)", tournament.id, tournament.format, len(tournament_data.players)
    )
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    return _get_tournament(session, tournament_id)


@router.put("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    tournament = _get_tournament(session, tournament_id)
    update_data = tournament_data.model_dump(exclude_unset=True)

    if "format" in update_data and update_data["format"] != tournament.format:
        if session.exec(select(func.count(Match.id)).where(Match.tournament_id == tournament_id)).one():
            raise HTTPException(status_code=409, detail="Cannot change format once a bracket exists")
        update_data["format"] = update_data["format"].value
    if "series_id" in update_data:
        _check_series(session, update_data["series_id"], tournament.game_id)

    for key, value in update_data.items():
        setattr(tournament, key, value)

    start, end = tournament.start_date, tournament.end_date
    if start and end and end < start:
        raise HTTPException(status_code=422, detail="end_date must be >= start_date")

    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a tournament with its matches and players"""
    tournament = _get_tournament(session, tournament_id)
    try:
        for m in session.exec(select(Match).where(Match.tournament_id == tournament_id)).all():
            session.delete(m)
        session.flush()
        for p in session.exec(select(TournamentPlayer).where(TournamentPlayer.tournament_id == tournament_id)).all():
            session.delete(p)
        session.flush()
        session.delete(tournament)
        session.commit()
    except Exception as e:
        session.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to delete tournament: {str(e)}")
    return Response(status_code=204)


# ============================================================================
# Players
# ============================================================================

@router.get("/tournaments/{tournament_id}/players", response_model=List[PlayerResponse])
def list_players(tournament_id: int, session: Session = Depends(get_session)):
    _get_tournament(session, tournament_id)
    return session.exec(
        select(TournamentPlayer).where(TournamentPlayer.tournament_id == tournament_id).order_by(TournamentPlayer.id)
    ).all()


@router.post("/tournaments/{tournament_id}/players", response_model=PlayerResponse, status_code=201)
def add_player(tournament_id: int, payload: PlayerCreate, session: Session = Depends(get_session)):
    """Register a player. Closed once results have been recorded."""
    tournament = _get_tournament(session, tournament_id)
    if tournament.status == TournamentStatus.completed or _has_results(session, tournament_id):
        raise HTTPException(status_code=409, detail="Registration is closed for this tournament")

    duplicate = session.exec(
        select(TournamentPlayer).where(
            TournamentPlayer.tournament_id == tournament_id,
            func.lower(TournamentPlayer.name) == payload.name.lower(),
        )
    ).first()
    if duplicate:
        raise HTTPException(status_code=409, detail=f"Player '{payload.name}' is already registered")

    player = TournamentPlayer(tournament_id=tournament_id, **payload.model_dump())
    session.add(player)
    session.commit()
    session.refresh(player)
    return player


@router.delete("/tournaments/{tournament_id}/players/{player_id}", status_code=204)
def remove_player(tournament_id: int, player_id: int, session: Session = Depends(get_session)):
    _get_tournament(session, tournament_id)
    player = session.get(TournamentPlayer, player_id)
    if not player or player.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Player not found")

    in_bracket = session.exec(
        select(func.count(Match.id)).where(
            Match.tournament_id == tournament_id,
            or_(Match.player1_id == player_id, Match.player2_id == player_id),
        )
    ).one()
    if in_bracket:
        raise HTTPException(status_code=409, detail="Player is placed in the bracket; regenerate it without them first")

    session.delete(player)
    session.commit()
    return Response(status_code=204)


# ============================================================================
# Bracket
# ============================================================================

@router.post("/tournaments/{tournament_id}/bracket", response_model=List[MatchResponse], status_code=201)
def create_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Generate (or regenerate) the bracket from the registered players"""
    tournament = _get_tournament(session, tournament_id)
    try:
        matches = generate_bracket(session, tournament)
    except BracketValidationError as e:
        session.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    except BracketConflictError as e:
        session.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    return matches


@router.get("/tournaments/{tournament_id}/bracket", response_model=BracketResponse)
def get_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Matches grouped by round"""
    tournament = _get_tournament(session, tournament_id)
    rounds: Dict[int, List[Any]] = {}
    for m in _ordered_matches(session, tournament_id):
        rounds.setdefault(m.round_number, []).append(MatchResponse.model_validate(m))
    return BracketResponse(
        tournament_id=tournament.id,
        status=tournament.status,
        champion_player_id=tournament.champion_player_id,
        rounds=[rounds[r] for r in sorted(rounds)],
    )


@router.post("/tournaments/{tournament_id}/bracket/resolve", response_model=Dict[str, int])
def resolve_tournament_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Re-apply advancement for every completed match (repair). Idempotent."""
    _get_tournament(session, tournament_id)
    return resolve_bracket(session, tournament_id)


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(tournament_id: int, round_number: Optional[int] = None, session: Session = Depends(get_session)):
    """Stable order: round_number, position"""
    _get_tournament(session, tournament_id)
    matches = _ordered_matches(session, tournament_id)
    if round_number is not None:
        matches = [m for m in matches if m.round_number == round_number]
    return matches


@router.post("/tournaments/{tournament_id}/matches/{match_id}/start", response_model=MatchResponse)
def start_tournament_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    _get_tournament(session, tournament_id)
    match = _get_match(session, tournament_id, match_id)
    try:
        return start_match(session, match)
    except MatchResultValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except BracketConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.put("/tournaments/{tournament_id}/matches/{match_id}/result", response_model=MatchResultResponse)
def submit_match_result(
    tournament_id: int,
    match_id: int,
    payload: MatchResultPayload,
    session: Session = Depends(get_session),
):
    """Record a result and advance the winner into the next round"""
    tournament = _get_tournament(session, tournament_id)
    match = _get_match(session, tournament_id, match_id)
    try:
        result = record_match_result(session, tournament, match, payload.score1, payload.score2)
    except MatchResultValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except MatchResultConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    session.refresh(tournament)
    return MatchResultResponse(
        match=MatchResponse.model_validate(result.match),
        propagated_match=MatchResponse.model_validate(result.propagated_match) if result.propagated_match else None,
        tournament_status=tournament.status,
        champion_player_id=tournament.champion_player_id,
    )
