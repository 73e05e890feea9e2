"""
Scoresheet template authoring: CRUD, built-in presets, default values.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.game import Game
from app.models.scoresheet_field import FieldType
from app.models.scoresheet_template import ScoresheetTemplate
from app.services.scoresheet_presets import PRESETS
from app.services.scoresheet_templates import (
    TemplateInUseError,
    create_template,
    delete_template,
    replace_template,
    template_to_spec,
)
from app.services.scoresheet_values import (
    FieldSpec,
    ScoresheetValidationError,
    SubcategorySpec,
    TemplateSpec,
    initialize_values,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class FieldPayload(BaseModel):
    field_id: str
    name: str
    type: FieldType
    default_value: Optional[Any] = None
    options: Optional[List[str]] = None
    formula: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    @field_validator("field_id", "name")
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class SubcategoryPayload(BaseModel):
    name: str
    fields: List[FieldPayload] = []


class TemplatePayload(BaseModel):
    name: str
    subcategories: List[SubcategoryPayload] = []
    created_by: Optional[str] = None
    is_official: bool = False


class FieldResponse(BaseModel):
    id: int
    field_id: str
    name: str
    type: FieldType
    default_value: Optional[Any] = None
    options: Optional[List[str]] = None
    formula: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    display_order: int

    class Config:
        from_attributes = True


class SubcategoryResponse(BaseModel):
    id: int
    name: str
    display_order: int
    fields: List[FieldResponse] = []

    class Config:
        from_attributes = True


class TemplateResponse(BaseModel):
    id: int
    game_id: int
    name: str
    created_by: Optional[str]
    is_official: bool
    created_at: datetime
    subcategories: List[SubcategoryResponse] = []

    class Config:
        from_attributes = True


class TemplateSummary(BaseModel):
    id: int
    game_id: int
    name: str
    is_official: bool
    created_at: datetime

    class Config:
        from_attributes = True


class DefaultValuesResponse(BaseModel):
    template_id: int
    values: Dict[str, Any]
    formula_errors: Dict[str, str] = {}


def payload_to_spec(payload: TemplatePayload, game_id: Optional[int] = None) -> TemplateSpec:
    return TemplateSpec(
        name=payload.name,
        game_id=game_id,
        subcategories=[
            SubcategorySpec(
                name=sub.name,
                fields=[FieldSpec(**f.model_dump()) for f in sub.fields],
            )
            for sub in payload.subcategories
        ],
    )


def get_template_or_404(session: Session, template_id: int) -> ScoresheetTemplate:
    template = session.get(ScoresheetTemplate, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Scoresheet not found")
    return template


def _require_game(session: Session, game_id: int) -> Game:
    game = session.get(Game, game_id)
    if not game:
        raise HTTPException(status_code=404, detail="Game not found")
    return game


@router.get("/games/{game_id}/scoresheets", response_model=List[TemplateSummary])
def list_game_scoresheets(game_id: int, session: Session = Depends(get_session)):
    """Scoresheets for a game, official ones first"""
    _require_game(session, game_id)
    return session.exec(
        select(ScoresheetTemplate)
        .where(ScoresheetTemplate.game_id == game_id)
        .order_by(ScoresheetTemplate.is_official.desc(), ScoresheetTemplate.id)
    ).all()


@router.post("/games/{game_id}/scoresheets", response_model=TemplateResponse, status_code=201)
def create_game_scoresheet(game_id: int, payload: TemplatePayload, session: Session = Depends(get_session)):
    _require_game(session, game_id)
    try:
        template = create_template(
            session,
            game_id,
            payload_to_spec(payload, game_id),
            created_by=payload.created_by,
            is_official=payload.is_official,
        )
    except ScoresheetValidationError as e:
        session.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    logger.info("Created scoresheet %s for game %s", template.id, game_id)
    return template


@router.post("/games/{game_id}/scoresheets/presets/{preset}", response_model=TemplateResponse, status_code=201)
def create_scoresheet_from_preset(game_id: int, preset: str, session: Session = Depends(get_session)):
    """Stamp a built-in template (e.g. dnd5e) onto a game"""
    _require_game(session, game_id)
    builder = PRESETS.get(preset)
    if builder is None:
        raise HTTPException(status_code=404, detail=f"Unknown preset '{preset}'")
    try:
        template = create_template(session, game_id, builder(), created_by="system", is_official=True)
    except ScoresheetValidationError as e:
        # Presets are built in; failing validation is a bug, not bad input
        session.rollback()
        logger.error("Preset %s failed validation: %s", preset, e)
        raise HTTPException(status_code=500, detail=f"Preset '{preset}' is invalid: {e}")
    return template


@router.get("/scoresheets/presets", response_model=List[str])
def list_presets():
    return sorted(PRESETS)


@router.get("/scoresheets/{template_id}", response_model=TemplateResponse)
def get_scoresheet(template_id: int, session: Session = Depends(get_session)):
    """Template with ordered subcategories and fields"""
    return get_template_or_404(session, template_id)


@router.put("/scoresheets/{template_id}", response_model=TemplateResponse)
def update_scoresheet(template_id: int, payload: TemplatePayload, session: Session = Depends(get_session)):
    """Replace the name and the whole subcategory/field set"""
    template = get_template_or_404(session, template_id)
    try:
        template = replace_template(session, template, payload_to_spec(payload, template.game_id))
    except ScoresheetValidationError as e:
        session.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    return template


@router.delete("/scoresheets/{template_id}", status_code=204)
def delete_scoresheet(template_id: int, session: Session = Depends(get_session)):
    template = get_template_or_404(session, template_id)
    try:
        delete_template(session, template)
    except TemplateInUseError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return Response(status_code=204)


@router.get("/scoresheets/{template_id}/defaults", response_model=DefaultValuesResponse)
def get_scoresheet_defaults(template_id: int, session: Session = Depends(get_session)):
    """Starting values a new session would get, calculations included"""
    template = get_template_or_404(session, template_id)
    result = initialize_values(template_to_spec(template))
    return DefaultValuesResponse(template_id=template.id, values=result.values, formula_errors=result.errors)
