from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.game import Game
    from app.models.scoresheet_subcategory import ScoresheetSubcategory


class ScoresheetTemplate(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="game.id", index=True)
    name: str
    created_by: Optional[str] = None
    is_official: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    game: "Game" = Relationship(back_populates="scoresheets")
    subcategories: List["ScoresheetSubcategory"] = Relationship(
        back_populates="template",
        sa_relationship_kwargs={
            "order_by": "ScoresheetSubcategory.display_order",
            "cascade": "all, delete-orphan",
        },
    )
