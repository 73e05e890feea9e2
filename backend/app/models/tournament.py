from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.match import Match
    from app.models.series import Series
    from app.models.tournament_player import TournamentPlayer


class TournamentFormat(str, Enum):
    single_elimination = "single_elimination"
    double_elimination = "double_elimination"
    round_robin = "round_robin"
    swiss = "swiss"


class TournamentStatus(str, Enum):
    upcoming = "upcoming"
    active = "active"
    completed = "completed"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    game_id: int = Field(foreign_key="game.id", index=True)
    format: TournamentFormat = Field(sa_column=Column(String, nullable=False))
    status: TournamentStatus = Field(
        default=TournamentStatus.upcoming, sa_column=Column(String, nullable=False, index=True)
    )
    series_id: Optional[int] = Field(default=None, foreign_key="series.id", index=True)
    created_by: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    # Set when the final is recorded
    champion_player_id: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    series: Optional["Series"] = Relationship(back_populates="tournaments")
    players: List["TournamentPlayer"] = Relationship(
        back_populates="tournament",
        sa_relationship_kwargs={"order_by": "TournamentPlayer.id"},
    )
    matches: List["Match"] = Relationship(back_populates="tournament")
