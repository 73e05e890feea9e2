from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.game import Game


class GameSource(SQLModel, table=True):
    """Attribution record for where a game's data or rules came from."""

    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="game.id", index=True)
    name: str
    url: str
    is_official: bool = Field(default=False)
    retrieved_at: datetime = Field(default_factory=datetime.utcnow)
    license_info: Optional[str] = None

    game: "Game" = Relationship(back_populates="sources")
