"""
Persistence for scoresheet templates.

A template is stored as template -> subcategories -> fields rows, with
display_order carrying the position. Updates replace the whole
subcategory/field set; field ids (the names formulas use) survive because
they live on the field rows, not in the surrogate primary keys.
"""
from typing import Optional

from sqlmodel import Session, func, select

from app.models.scoresheet_field import FieldType, ScoresheetField
from app.models.scoresheet_session import ScoresheetSession
from app.models.scoresheet_subcategory import ScoresheetSubcategory
from app.models.scoresheet_template import ScoresheetTemplate
from app.services.scoresheet_values import (
    FieldSpec,
    ScoresheetError,
    SubcategorySpec,
    TemplateSpec,
    validate_template,
)


class TemplateInUseError(ScoresheetError):
    """Template still has sessions referencing it"""
    pass


def template_to_spec(template: ScoresheetTemplate) -> TemplateSpec:
    subcategories = []
    for sub in sorted(template.subcategories, key=lambda s: s.display_order):
        fields = [
            FieldSpec(
                field_id=f.field_id,
                name=f.name,
                type=FieldType(f.type),
                default_value=f.default_value,
                options=list(f.options) if f.options else None,
                formula=f.formula,
                min_value=f.min_value,
                max_value=f.max_value,
            )
            for f in sorted(sub.fields, key=lambda f: f.display_order)
        ]
        subcategories.append(SubcategorySpec(name=sub.name, fields=fields))
    return TemplateSpec(
        id=template.id,
        name=template.name,
        game_id=template.game_id,
        subcategories=subcategories,
    )


def _add_structure(session: Session, template_id: int, spec: TemplateSpec) -> None:
    for i, sub_spec in enumerate(spec.subcategories):
        sub = ScoresheetSubcategory(template_id=template_id, name=sub_spec.name.strip(), display_order=i)
        session.add(sub)
        session.flush()  # Get the ID
        for j, f in enumerate(sub_spec.fields):
            session.add(
                ScoresheetField(
                    subcategory_id=sub.id,
                    field_id=f.field_id,
                    name=f.name,
                    type=FieldType(f.type).value,
                    default_value=f.default_value,
                    options=f.options,
                    formula=f.formula,
                    min_value=f.min_value,
                    max_value=f.max_value,
                    display_order=j,
                )
            )


def create_template(
    session: Session,
    game_id: int,
    spec: TemplateSpec,
    created_by: Optional[str] = None,
    is_official: bool = False,
) -> ScoresheetTemplate:
    """Validate and store a new template. Raises ScoresheetValidationError."""
    validate_template(spec)

    template = ScoresheetTemplate(
        game_id=game_id,
        name=spec.name.strip(),
        created_by=created_by,
        is_official=is_official,
    )
    session.add(template)
    session.flush()
    _add_structure(session, template.id, spec)
    session.commit()
    session.refresh(template)
    return template


def replace_template(session: Session, template: ScoresheetTemplate, spec: TemplateSpec) -> ScoresheetTemplate:
    """Replace name and the whole subcategory/field set of *template*."""
    validate_template(spec)

    template.subcategories.clear()  # delete-orphan removes old subcategories and their fields
    session.flush()

    template.name = spec.name.strip()
    session.add(template)
    _add_structure(session, template.id, spec)
    session.commit()
    session.refresh(template)
    return template


def count_sessions(session: Session, template_id: int) -> int:
    return session.exec(
        select(func.count(ScoresheetSession.id)).where(ScoresheetSession.template_id == template_id)
    ).one()


def delete_template(session: Session, template: ScoresheetTemplate) -> None:
    in_use = count_sessions(session, template.id)
    if in_use:
        raise TemplateInUseError(f"Scoresheet is used by {in_use} session(s)")
    session.delete(template)
    session.commit()
