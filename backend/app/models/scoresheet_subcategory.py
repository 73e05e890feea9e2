from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.scoresheet_field import ScoresheetField
    from app.models.scoresheet_template import ScoresheetTemplate


class ScoresheetSubcategory(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    template_id: int = Field(foreign_key="scoresheettemplate.id", index=True)
    name: str
    display_order: int  # 0-based position within the template

    # Relationships
    template: "ScoresheetTemplate" = Relationship(back_populates="subcategories")
    fields: List["ScoresheetField"] = Relationship(
        back_populates="subcategory",
        sa_relationship_kwargs={
            "order_by": "ScoresheetField.display_order",
            "cascade": "all, delete-orphan",
        },
    )
