from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.multiplayer_player import MultiplayerPlayer


class MultiplayerSession(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="game.id", index=True)
    host_id: str
    room_code: str = Field(unique=True, index=True)
    max_players: int
    status: str = Field(default="waiting")  # "waiting" | "active" | "finished"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    players: List["MultiplayerPlayer"] = Relationship(
        back_populates="session",
        sa_relationship_kwargs={"order_by": "MultiplayerPlayer.id", "cascade": "all, delete-orphan"},
    )
