from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class ScoresheetSession(SQLModel, table=True):
    """One filled-in instance of a scoresheet template."""

    id: Optional[int] = Field(default=None, primary_key=True)
    template_id: int = Field(foreign_key="scoresheettemplate.id", index=True)
    game_id: int = Field(foreign_key="game.id", index=True)
    player_name: Optional[str] = None
    # field_id -> current value; always replaced wholesale, never mutated in place
    field_values: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    status: str = Field(default="active")  # "active" | "completed"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
    completed_at: Optional[datetime] = Field(default=None)
