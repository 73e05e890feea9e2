from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.tournament import Tournament


class Match(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "round_number", "position", name="uq_match_round_position"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round_number: int  # 0-based
    position: int  # 0-based within round; feeds position // 2 of the next round

    # Player slots (nullable - filled by seeding or by advancement from the previous round)
    player1_id: Optional[int] = Field(default=None, foreign_key="tournamentplayer.id")
    player2_id: Optional[int] = Field(default=None, foreign_key="tournamentplayer.id")

    winner_id: Optional[int] = Field(default=None, foreign_key="tournamentplayer.id")
    score1: Optional[int] = Field(default=None)
    score2: Optional[int] = Field(default=None)
    status: str = Field(default="pending")  # "pending" | "in_progress" | "completed"
    is_bye: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    tournament: "Tournament" = Relationship(back_populates="matches")
