from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.game import Game


class GameLegalStatus(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="game.id", unique=True)
    can_play: bool = Field(default=False)
    reason: Optional[str] = None
    license_info: Optional[str] = None
    copyright_owner: Optional[str] = None
    play_restrictions: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))

    game: "Game" = Relationship(back_populates="legal_status")
