from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, field_validator
from sqlmodel import Session, func, select

from app.database import get_session
from app.models.game import Game
from app.models.series import Series
from app.models.tournament import Tournament
from app.routes.tournaments import TournamentResponse

router = APIRouter()

SERIES_STATUSES = ("upcoming", "active", "completed")


class SeriesCreate(BaseModel):
    name: str
    game_id: int
    created_by: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class SeriesUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in SERIES_STATUSES:
            raise ValueError(f"status must be one of {', '.join(SERIES_STATUSES)}")
        return v


class SeriesResponse(BaseModel):
    id: int
    name: str
    game_id: int
    created_by: Optional[str]
    status: str
    created_at: datetime
    tournament_count: int = 0


def _to_response(session: Session, series: Series) -> SeriesResponse:
    count = session.exec(select(func.count(Tournament.id)).where(Tournament.series_id == series.id)).one()
    return SeriesResponse(
        id=series.id,
        name=series.name,
        game_id=series.game_id,
        created_by=series.created_by,
        status=series.status,
        created_at=series.created_at,
        tournament_count=count,
    )


def _get_series(session: Session, series_id: int) -> Series:
    series = session.get(Series, series_id)
    if not series:
        raise HTTPException(status_code=404, detail="Series not found")
    return series


@router.get("/series", response_model=List[SeriesResponse])
def list_series(game_id: Optional[int] = None, session: Session = Depends(get_session)):
    query = select(Series)
    if game_id is not None:
        query = query.where(Series.game_id == game_id)
    return [_to_response(session, s) for s in session.exec(query.order_by(Series.created_at.desc(), Series.id)).all()]


@router.post("/series", response_model=SeriesResponse, status_code=201)
def create_series(payload: SeriesCreate, session: Session = Depends(get_session)):
    if not session.get(Game, payload.game_id):
        raise HTTPException(status_code=404, detail="Game not found")
    series = Series(**payload.model_dump())
    session.add(series)
    session.commit()
    session.refresh(series)
    return _to_response(session, series)


@router.get("/series/{series_id}", response_model=SeriesResponse)
def get_series(series_id: int, session: Session = Depends(get_session)):
    return _to_response(session, _get_series(session, series_id))


@router.put("/series/{series_id}", response_model=SeriesResponse)
def update_series(series_id: int, payload: SeriesUpdate, session: Session = Depends(get_session)):
    series = _get_series(session, series_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(series, key, value)
    session.add(series)
    session.commit()
    session.refresh(series)
    return _to_response(session, series)


@router.delete("/series/{series_id}", status_code=204)
def delete_series(series_id: int, session: Session = Depends(get_session)):
    """Delete a series; its tournaments are kept and detached"""
    series = _get_series(session, series_id)
    for t in session.exec(select(Tournament).where(Tournament.series_id == series_id)).all():
        t.series_id = None
        session.add(t)
    session.delete(series)
    session.commit()
    return Response(status_code=204)


@router.get("/series/{series_id}/tournaments", response_model=List[TournamentResponse])
def list_series_tournaments(series_id: int, session: Session = Depends(get_session)):
    """Tournaments in the series, in start order"""
    _get_series(session, series_id)
    return session.exec(
        select(Tournament)
        .where(Tournament.series_id == series_id)
        .order_by(Tournament.start_date, Tournament.created_at, Tournament.id)
    ).all()
