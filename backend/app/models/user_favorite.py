from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class UserFavorite(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("user_id", "game_id", name="uq_user_favorite"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    game_id: int = Field(foreign_key="game.id")
    added_at: datetime = Field(default_factory=datetime.utcnow)
