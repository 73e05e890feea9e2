from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel
from sqlmodel import Session, select

from app.database import get_session
from app.models.game import Game
from app.models.user_favorite import UserFavorite

router = APIRouter()


class FavoriteCreate(BaseModel):
    game_id: int


class FavoriteResponse(BaseModel):
    id: int
    user_id: str
    game_id: int
    added_at: datetime
    name: str
    description: Optional[str] = None
    category: Optional[str] = None


def _to_response(favorite: UserFavorite, game: Game) -> FavoriteResponse:
    return FavoriteResponse(
        id=favorite.id,
        user_id=favorite.user_id,
        game_id=favorite.game_id,
        added_at=favorite.added_at,
        name=game.name,
        description=game.description,
        category=game.category,
    )


@router.get("/users/{user_id}/favorites", response_model=List[FavoriteResponse])
def list_favorites(user_id: str, session: Session = Depends(get_session)):
    """A user's favorite games, most recently added first"""
    rows = session.exec(
        select(UserFavorite, Game)
        .join(Game, Game.id == UserFavorite.game_id)
        .where(UserFavorite.user_id == user_id)
        .order_by(UserFavorite.added_at.desc(), UserFavorite.id.desc())
    ).all()
    return [_to_response(favorite, game) for favorite, game in rows]


@router.post("/users/{user_id}/favorites", response_model=FavoriteResponse)
def add_favorite(user_id: str, payload: FavoriteCreate, response: Response, session: Session = Depends(get_session)):
    """Add a game to favorites. Adding an existing favorite returns it unchanged."""
    game = session.get(Game, payload.game_id)
    if not game:
        raise HTTPException(status_code=404, detail="Game not found")

    existing = session.exec(
        select(UserFavorite).where(UserFavorite.user_id == user_id, UserFavorite.game_id == payload.game_id)
    ).first()
    if existing:
        response.status_code = 200
        return _to_response(existing, game)

    favorite = UserFavorite(user_id=user_id, game_id=payload.game_id)
    session.add(favorite)
    session.commit()
    session.refresh(favorite)
    response.status_code = 201
    return _to_response(favorite, game)


@router.delete("/users/{user_id}/favorites/{game_id}", status_code=204)
def remove_favorite(user_id: str, game_id: int, session: Session = Depends(get_session)):
    favorite = session.exec(
        select(UserFavorite).where(UserFavorite.user_id == user_id, UserFavorite.game_id == game_id)
    ).first()
    if not favorite:
        raise HTTPException(status_code=404, detail="Favorite not found")
    session.delete(favorite)
    session.commit()
    return Response(status_code=204)
