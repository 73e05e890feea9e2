from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.game import Game


class GameRules(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="game.id", unique=True)
    content: str
    components: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    setup: Optional[str] = None
    version: Optional[str] = Field(default="1.0")
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    game: "Game" = Relationship(back_populates="rules")
