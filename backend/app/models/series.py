from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.tournament import Tournament


class Series(SQLModel, table=True):
    """A named run of tournaments for the same game (league season, weekly night, ...)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    game_id: int = Field(foreign_key="game.id", index=True)
    created_by: Optional[str] = None
    status: str = Field(default="upcoming")  # "upcoming" | "active" | "completed"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    tournaments: List["Tournament"] = Relationship(back_populates="series")
