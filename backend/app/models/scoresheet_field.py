from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional

from sqlalchemy import JSON, String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.scoresheet_subcategory import ScoresheetSubcategory


class FieldType(str, Enum):
    number = "number"
    text = "text"
    checkbox = "checkbox"
    dropdown = "dropdown"
    calculation = "calculation"


class ScoresheetField(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    subcategory_id: int = Field(foreign_key="scoresheetsubcategory.id", index=True)
    # Identifier referenced by formulas; unique across the whole template
    field_id: str
    name: str
    type: FieldType = Field(sa_column=Column(String, nullable=False))
    default_value: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    options: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))  # dropdown only
    formula: Optional[str] = None  # calculation only
    min_value: Optional[float] = None  # number only
    max_value: Optional[float] = None
    display_order: int

    subcategory: "ScoresheetSubcategory" = Relationship(back_populates="fields")
