from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.tournament import Tournament


class TournamentPlayer(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "name", name="uq_tournament_player_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    user_id: Optional[str] = None
    seed: Optional[int] = Field(default=None)  # 1-based (1=highest); nulls seeded last
    registered_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="players")
