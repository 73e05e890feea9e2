from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.multiplayer_session import MultiplayerSession


class MultiplayerPlayer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="multiplayersession.id", index=True)
    user_id: Optional[str] = None
    player_name: str
    is_host: bool = Field(default=False)
    joined_at: datetime = Field(default_factory=datetime.utcnow)

    session: "MultiplayerSession" = Relationship(back_populates="players")
