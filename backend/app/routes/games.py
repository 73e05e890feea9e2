import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, func, or_, select

from app.database import get_session
from app.models.game import Game
from app.models.game_legal_status import GameLegalStatus
from app.models.game_rules import GameRules
from app.models.game_source import GameSource
from app.models.scoresheet_template import ScoresheetTemplate
from app.models.tournament import Tournament
from app.models.user_favorite import UserFavorite
from app.services.legal_status import resolve_legal_status

logger = logging.getLogger(__name__)

router = APIRouter()

ATTRIBUTION = {
    "message": "Game information is provided with proper attribution to original sources.",
    "disclaimer": (
        "This app respects intellectual property rights and provides game information "
        "for educational purposes only."
    ),
}


class GameCreate(BaseModel):
    name: str
    description: Optional[str] = None
    min_players: Optional[int] = None
    max_players: Optional[int] = None
    duration_min: Optional[int] = None
    duration_max: Optional[int] = None
    category: Optional[str] = None
    complexity: Optional[float] = None
    created_by: Optional[str] = None
    is_official: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("complexity")
    @classmethod
    def validate_complexity(cls, v):
        if v is not None and not (1.0 <= v <= 5.0):
            raise ValueError("complexity must be between 1 and 5")
        return v

    @model_validator(mode="after")
    def validate_ranges(self):
        if self.min_players is not None and self.min_players < 1:
            raise ValueError("min_players must be >= 1")
        if self.min_players and self.max_players and self.max_players < self.min_players:
            raise ValueError("max_players must be >= min_players")
        if self.duration_min and self.duration_max and self.duration_max < self.duration_min:
            raise ValueError("duration_max must be >= duration_min")
        return self


class GameUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    min_players: Optional[int] = None
    max_players: Optional[int] = None
    duration_min: Optional[int] = None
    duration_max: Optional[int] = None
    category: Optional[str] = None
    complexity: Optional[float] = None
    is_official: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip() if v else v


class GameResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    min_players: Optional[int]
    max_players: Optional[int]
    duration_min: Optional[int]
    duration_max: Optional[int]
    category: Optional[str]
    complexity: Optional[float]
    created_by: Optional[str]
    is_official: bool
    search_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class RulesPayload(BaseModel):
    content: str
    components: List[str] = []
    setup: Optional[str] = None
    version: Optional[str] = "1.0"

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        if not v or not v.strip():
            raise ValueError("content is required")
        return v


class SourceCreate(BaseModel):
    name: str
    url: str
    is_official: bool = False
    license_info: Optional[str] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must be http(s)")
        return v


class SourceResponse(BaseModel):
    id: int
    game_id: int
    name: str
    url: str
    is_official: bool
    retrieved_at: datetime
    license_info: Optional[str]

    class Config:
        from_attributes = True


class LegalStatusPayload(BaseModel):
    can_play: bool
    reason: Optional[str] = None
    license_info: Optional[str] = None
    copyright_owner: Optional[str] = None
    play_restrictions: List[str] = []


class LegalStatusResponse(LegalStatusPayload):
    inferred: bool = False


def _get_game(session: Session, game_id: int) -> Game:
    game = session.get(Game, game_id)
    if not game:
        raise HTTPException(status_code=404, detail="Game not found")
    return game


def _legal_response(session: Session, game: Game) -> LegalStatusResponse:
    status = resolve_legal_status(session, game)
    return LegalStatusResponse(
        can_play=status.can_play,
        reason=status.reason,
        license_info=status.license_info,
        copyright_owner=status.copyright_owner,
        play_restrictions=status.play_restrictions,
        inferred=status.inferred,
    )


def _format_range(low: Optional[int], high: Optional[int], unit: str = "") -> Optional[str]:
    if low is None and high is None:
        return None
    if low is None or high is None or low == high:
        text = str(low if low is not None else high)
    else:
        text = f"{low}-{high}"
    return f"{text} {unit}".strip()


# ============================================================================
# Games
# ============================================================================

@router.get("/games", response_model=List[GameResponse])
def list_games(
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
):
    """List games, optionally filtered by category and name/description substring"""
    query = select(Game)
    if category:
        query = query.where(Game.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Game.name.ilike(pattern), Game.description.ilike(pattern)))
    return session.exec(query.order_by(Game.name, Game.id).offset(offset).limit(limit)).all()


@router.post("/games", response_model=GameResponse, status_code=201)
def create_game(game_data: GameCreate, session: Session = Depends(get_session)):
    game = Game(**game_data.model_dump())
    session.add(game)
    session.commit()
    session.refresh(game)
    logger.info("Created game %s (%s)", game.id, game.name)
    return game


@router.get("/games/popular", response_model=List[GameResponse])
def popular_games(limit: int = Query(default=10, ge=1, le=100), session: Session = Depends(get_session)):
    """Most searched games first"""
    return session.exec(
        select(Game).where(Game.search_count > 0).order_by(Game.search_count.desc(), Game.name).limit(limit)
    ).all()


@router.get("/search/games", response_model=List[GameResponse])
def search_games(
    query: str = Query(default=""),
    limit: int = Query(default=20, ge=1, le=100),
    session: Session = Depends(get_session),
):
    """Search games by name, description or category; every hit counts towards popularity"""
    if not query.strip():
        raise HTTPException(status_code=422, detail="Search query is required")

    pattern = f"%{query.strip()}%"
    games = session.exec(
        select(Game)
        .where(or_(Game.name.ilike(pattern), Game.description.ilike(pattern), Game.category.ilike(pattern)))
        .order_by(Game.name)
        .limit(limit)
    ).all()
    for game in games:
        game.search_count = (game.search_count or 0) + 1
        session.add(game)
    session.commit()
    for game in games:
        session.refresh(game)
    return games


@router.get("/games/{game_id}", response_model=GameResponse)
def get_game(game_id: int, session: Session = Depends(get_session)):
    return _get_game(session, game_id)


@router.put("/games/{game_id}", response_model=GameResponse)
def update_game(game_id: int, game_data: GameUpdate, session: Session = Depends(get_session)):
    game = _get_game(session, game_id)

    update_data = game_data.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(game, key, value)

    if game.min_players and game.max_players and game.max_players < game.min_players:
        raise HTTPException(status_code=422, detail="max_players must be >= min_players")

    session.add(game)
    session.commit()
    session.refresh(game)
    return game


@router.delete("/games/{game_id}", status_code=204)
def delete_game(game_id: int, session: Session = Depends(get_session)):
    """Delete a game with its rules, sources, legal status and favorites.

    Refused while scoresheets or tournaments still reference it.
    """
    game = _get_game(session, game_id)

    template_count = session.exec(
        select(func.count(ScoresheetTemplate.id)).where(ScoresheetTemplate.game_id == game_id)
    ).one()
    tournament_count = session.exec(select(func.count(Tournament.id)).where(Tournament.game_id == game_id)).one()
    if template_count or tournament_count:
        raise HTTPException(
            status_code=409,
            detail=f"Game is used by {template_count} scoresheet(s) and {tournament_count} tournament(s)",
        )

    for favorite in session.exec(select(UserFavorite).where(UserFavorite.game_id == game_id)).all():
        session.delete(favorite)
    session.delete(game)
    session.commit()
    logger.info("Deleted game %s", game_id)
    return Response(status_code=204)


# ============================================================================
# Rules, sources, legal status
# ============================================================================

@router.get("/games/{game_id}/rules")
def get_game_rules(game_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Rules with source attribution and legal status"""
    game = _get_game(session, game_id)

    rules = session.exec(select(GameRules).where(GameRules.game_id == game_id)).first()
    sources = session.exec(
        select(GameSource)
        .where(GameSource.game_id == game_id)
        .order_by(GameSource.is_official.desc(), GameSource.id)
    ).all()

    return {
        "game": {
            "id": game.id,
            "name": game.name,
            "description": game.description,
            "players": _format_range(game.min_players, game.max_players),
            "duration": _format_range(game.duration_min, game.duration_max, "minutes"),
            "category": game.category,
            "complexity": game.complexity,
        },
        "rules": (
            {
                "content": rules.content,
                "components": rules.components or [],
                "setup": rules.setup,
                "version": rules.version,
            }
            if rules
            else None
        ),
        "sources": [SourceResponse.model_validate(s).model_dump() for s in sources],
        "legal_status": _legal_response(session, game).model_dump(),
        "attribution": ATTRIBUTION,
    }


@router.put("/games/{game_id}/rules")
def put_game_rules(game_id: int, payload: RulesPayload, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Create or replace the rules for a game"""
    _get_game(session, game_id)

    rules = session.exec(select(GameRules).where(GameRules.game_id == game_id)).first()
    if rules is None:
        rules = GameRules(game_id=game_id, content=payload.content)
    rules.content = payload.content
    rules.components = list(payload.components)
    rules.setup = payload.setup
    rules.version = payload.version
    rules.updated_at = datetime.utcnow()
    session.add(rules)
    session.commit()
    session.refresh(rules)
    return {
        "game_id": game_id,
        "content": rules.content,
        "components": rules.components or [],
        "setup": rules.setup,
        "version": rules.version,
        "updated_at": rules.updated_at,
    }


@router.get("/games/{game_id}/sources", response_model=List[SourceResponse])
def list_game_sources(game_id: int, session: Session = Depends(get_session)):
    _get_game(session, game_id)
    return session.exec(
        select(GameSource)
        .where(GameSource.game_id == game_id)
        .order_by(GameSource.is_official.desc(), GameSource.id)
    ).all()


@router.post("/games/{game_id}/sources", response_model=SourceResponse, status_code=201)
def add_game_source(game_id: int, payload: SourceCreate, session: Session = Depends(get_session)):
    _get_game(session, game_id)

    existing = session.exec(
        select(GameSource).where(GameSource.game_id == game_id, GameSource.url == payload.url)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Source with this URL already recorded for the game")

    source = GameSource(game_id=game_id, **payload.model_dump())
    session.add(source)
    session.commit()
    session.refresh(source)
    return source


@router.get("/games/{game_id}/legal", response_model=LegalStatusResponse)
def get_game_legal_status(game_id: int, session: Session = Depends(get_session)):
    """Stored legal status, or one inferred from the game's name and category"""
    game = _get_game(session, game_id)
    return _legal_response(session, game)


@router.put("/games/{game_id}/legal", response_model=LegalStatusResponse)
def put_game_legal_status(game_id: int, payload: LegalStatusPayload, session: Session = Depends(get_session)):
    game = _get_game(session, game_id)

    status = session.exec(select(GameLegalStatus).where(GameLegalStatus.game_id == game_id)).first()
    if status is None:
        status = GameLegalStatus(game_id=game_id)
    status.can_play = payload.can_play
    status.reason = payload.reason
    status.license_info = payload.license_info
    status.copyright_owner = payload.copyright_owner
    status.play_restrictions = list(payload.play_restrictions)
    session.add(status)
    session.commit()
    return _legal_response(session, game)
