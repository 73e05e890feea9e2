from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.game_legal_status import GameLegalStatus
    from app.models.game_rules import GameRules
    from app.models.game_source import GameSource
    from app.models.scoresheet_template import ScoresheetTemplate


class Game(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    min_players: Optional[int] = None
    max_players: Optional[int] = None
    duration_min: Optional[int] = None  # minutes
    duration_max: Optional[int] = None
    category: Optional[str] = Field(default=None, index=True)
    complexity: Optional[float] = None  # 1.0 (light) .. 5.0 (heavy)
    created_by: Optional[str] = None
    is_official: bool = Field(default=True)
    search_count: int = Field(default=0)  # bumped by /search/games hits
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    rules: Optional["GameRules"] = Relationship(
        back_populates="game", sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"}
    )
    sources: List["GameSource"] = Relationship(
        back_populates="game", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    legal_status: Optional["GameLegalStatus"] = Relationship(
        back_populates="game", sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"}
    )
    scoresheets: List["ScoresheetTemplate"] = Relationship(back_populates="game")
