"""
Multiplayer rooms. Only games whose legal status allows play can host a room.
"""
import logging
import secrets
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.game import Game
from app.models.multiplayer_player import MultiplayerPlayer
from app.models.multiplayer_session import MultiplayerSession
from app.services.legal_status import resolve_legal_status

logger = logging.getLogger(__name__)

router = APIRouter()

# No 0/O or 1/I
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
ROOM_CODE_ATTEMPTS = 10

# status -> statuses it may move to
ROOM_TRANSITIONS = {
    "waiting": {"active", "finished"},
    "active": {"finished"},
    "finished": set(),
}


class RoomPlayerIn(BaseModel):
    name: str
    user_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class RoomCreate(BaseModel):
    game_id: int
    host_id: str = "guest"
    players: List[RoomPlayerIn]
    max_players: Optional[int] = None

    @model_validator(mode="after")
    def validate_players(self):
        if not self.players:
            raise ValueError("at least one player is required")
        names = [p.name.lower() for p in self.players]
        if len(names) != len(set(names)):
            raise ValueError("player names must be unique")
        if self.max_players is not None and self.max_players < len(self.players):
            raise ValueError("max_players is smaller than the number of players")
        return self


class RoomJoin(BaseModel):
    player_name: str
    user_id: Optional[str] = None

    @field_validator("player_name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("player_name is required")
        return v.strip()


class RoomStatusUpdate(BaseModel):
    status: str


class RoomPlayerResponse(BaseModel):
    id: int
    player_name: str
    user_id: Optional[str]
    is_host: bool
    joined_at: datetime

    class Config:
        from_attributes = True


class RoomResponse(BaseModel):
    id: int
    game_id: int
    host_id: str
    room_code: str
    max_players: int
    status: str
    created_at: datetime
    players: List[RoomPlayerResponse] = []

    class Config:
        from_attributes = True


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def _unused_room_code(session: Session) -> str:
    for _ in range(ROOM_CODE_ATTEMPTS):
        code = generate_room_code()
        taken = session.exec(select(MultiplayerSession).where(MultiplayerSession.room_code == code)).first()
        if not taken:
            return code
    raise HTTPException(status_code=500, detail="Could not allocate a room code")


def _get_room(session: Session, room_code: str) -> MultiplayerSession:
    room = session.exec(
        select(MultiplayerSession).where(MultiplayerSession.room_code == room_code.strip().upper())
    ).first()
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


@router.post("/multiplayer/sessions", response_model=RoomResponse, status_code=201)
def create_room(payload: RoomCreate, session: Session = Depends(get_session)):
    """Open a room for a playable game"""
    game = session.get(Game, payload.game_id)
    if not game:
        raise HTTPException(status_code=404, detail="Game not found")

    legal = resolve_legal_status(session, game)
    if not legal.can_play:
        raise HTTPException(
            status_code=403,
            detail={
                "message": "This game cannot be played due to legal restrictions",
                "reason": legal.reason,
                "play_restrictions": legal.play_restrictions,
            },
        )

    max_players = payload.max_players or len(payload.players)
    if game.max_players and max_players > game.max_players:
        raise HTTPException(status_code=422, detail=f"{game.name} allows at most {game.max_players} players")

    try:
        room = MultiplayerSession(
            game_id=game.id,
            host_id=payload.host_id,
            room_code=_unused_room_code(session),
            max_players=max_players,
            status="waiting",
        )
        session.add(room)
        session.flush()  # Get the ID
        for p in payload.players:
            session.add(
                MultiplayerPlayer(
                    session_id=room.id,
                    user_id=p.user_id,
                    player_name=p.name,
                    is_host=p.user_id is not None and p.user_id == payload.host_id,
                )
            )
        session.commit()
        session.refresh(room)
    except HTTPException:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception("Failed to create multiplayer session")
        raise HTTPException(status_code=500, detail=f"Failed to create multiplayer session: {str(e)}")

    logger.info("Opened room %s for game %s", room.room_code, game.id)
    return room


@router.get("/multiplayer/sessions/{room_code}", response_model=RoomResponse)
def get_room(room_code: str, session: Session = Depends(get_session)):
    return _get_room(session, room_code)


@router.post("/multiplayer/sessions/{room_code}/join", response_model=RoomResponse)
def join_room(room_code: str, payload: RoomJoin, session: Session = Depends(get_session)):
    """Join a waiting room by its code"""
    room = _get_room(session, room_code)
    if room.status != "waiting":
        raise HTTPException(status_code=409, detail=f"Room is {room.status}; it can no longer be joined")

    players = room.players
    if any(p.player_name.lower() == payload.player_name.lower() for p in players):
        raise HTTPException(status_code=409, detail=f"'{payload.player_name}' is already in the room")
    if len(players) >= room.max_players:
        raise HTTPException(status_code=409, detail="Room is full")

    session.add(MultiplayerPlayer(session_id=room.id, user_id=payload.user_id, player_name=payload.player_name))
    session.commit()
    session.refresh(room)
    return room


@router.put("/multiplayer/sessions/{room_code}/status", response_model=RoomResponse)
def update_room_status(room_code: str, payload: RoomStatusUpdate, session: Session = Depends(get_session)):
    room = _get_room(session, room_code)
    if payload.status not in ROOM_TRANSITIONS:
        raise HTTPException(status_code=422, detail=f"Invalid status: {payload.status}")
    if payload.status != room.status and payload.status not in ROOM_TRANSITIONS[room.status]:
        raise HTTPException(status_code=409, detail=f"Cannot move room from {room.status} to {payload.status}")

    room.status = payload.status
    session.add(room)
    session.commit()
    session.refresh(room)
    return room
