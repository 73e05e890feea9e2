"""
Scoresheet sessions: one filled-in sheet per player.

Every write recomputes calculation fields before persisting. Completed
sessions are read-only. Active sessions are reconciled with the current
template on each read or write, so fields added to the template appear with
their defaults and removed fields drop out.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.scoresheet_session import ScoresheetSession
from app.models.scoresheet_template import ScoresheetTemplate
from app.services.formula_engine import RecomputeResult
from app.services.scoresheet_templates import template_to_spec
from app.services.scoresheet_values import (
    ScoresheetFieldNotFoundError,
    ScoresheetValidationError,
    TemplateSpec,
    apply_bulk_values,
    apply_field_edit,
    initialize_values,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SESSION_ACTIVE = "active"
SESSION_COMPLETED = "completed"


class SessionCreate(BaseModel):
    template_id: int
    player_name: Optional[str] = None
    values: Optional[Dict[str, Any]] = None

    @field_validator("player_name")
    @classmethod
    def strip_player_name(cls, v):
        return v.strip() if v else None


class FieldValueUpdate(BaseModel):
    value: Any


class BulkValuesUpdate(BaseModel):
    values: Dict[str, Any]


class SessionResponse(BaseModel):
    id: int
    template_id: int
    game_id: int
    player_name: Optional[str]
    values: Dict[str, Any]
    status: str
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    formula_errors: Dict[str, str] = {}


def _to_response(sheet: ScoresheetSession, errors: Optional[Dict[str, str]] = None) -> SessionResponse:
    return SessionResponse(
        id=sheet.id,
        template_id=sheet.template_id,
        game_id=sheet.game_id,
        player_name=sheet.player_name,
        values=dict(sheet.field_values or {}),
        status=sheet.status,
        created_at=sheet.created_at,
        updated_at=sheet.updated_at,
        completed_at=sheet.completed_at,
        formula_errors=errors or {},
    )


def _get_session_or_404(session: Session, session_id: int) -> ScoresheetSession:
    sheet = session.get(ScoresheetSession, session_id)
    if not sheet:
        raise HTTPException(status_code=404, detail="Scoresheet session not found")
    return sheet


def _load_spec(session: Session, template_id: int) -> TemplateSpec:
    template = session.get(ScoresheetTemplate, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Scoresheet not found")
    return template_to_spec(template)


def _require_active(sheet: ScoresheetSession) -> None:
    if sheet.status == SESSION_COMPLETED:
        raise HTTPException(status_code=409, detail="Scoresheet session is completed and read-only")


def _store(session: Session, sheet: ScoresheetSession, result: RecomputeResult) -> SessionResponse:
    # Assign a fresh dict so the JSON column is flagged dirty
    sheet.field_values = dict(result.values)
    sheet.updated_at = datetime.utcnow()
    session.add(sheet)
    session.commit()
    session.refresh(sheet)
    return _to_response(sheet, result.errors)


@router.post("/scoresheet-sessions", response_model=SessionResponse, status_code=201)
def create_session(payload: SessionCreate, session: Session = Depends(get_session)):
    """Start a session seeded with template defaults (plus any initial values)"""
    template = session.get(ScoresheetTemplate, payload.template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Scoresheet not found")
    spec = template_to_spec(template)

    result = initialize_values(spec)
    if payload.values:
        try:
            result = apply_bulk_values(spec, result.values, payload.values)
        except ScoresheetValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))

    sheet = ScoresheetSession(
        template_id=template.id,
        game_id=template.game_id,
        player_name=payload.player_name,
        field_values=result.values,
        status=SESSION_ACTIVE,
    )
    session.add(sheet)
    session.commit()
    session.refresh(sheet)
    logger.info("Started scoresheet session %s on template %s", sheet.id, template.id)
    return _to_response(sheet, result.errors)


@router.get("/scoresheet-sessions", response_model=List[SessionResponse])
def list_sessions(
    template_id: Optional[int] = None,
    game_id: Optional[int] = None,
    status: Optional[str] = None,
    session: Session = Depends(get_session),
):
    query = select(ScoresheetSession)
    if template_id is not None:
        query = query.where(ScoresheetSession.template_id == template_id)
    if game_id is not None:
        query = query.where(ScoresheetSession.game_id == game_id)
    if status:
        query = query.where(ScoresheetSession.status == status)
    sheets = session.exec(query.order_by(ScoresheetSession.updated_at.desc(), ScoresheetSession.id)).all()
    return [_to_response(s) for s in sheets]


@router.get("/scoresheet-sessions/{session_id}", response_model=SessionResponse)
def get_session_values(session_id: int, session: Session = Depends(get_session)):
    """Current values. Active sessions are recomputed against the current template."""
    sheet = _get_session_or_404(session, session_id)
    if sheet.status == SESSION_COMPLETED:
        return _to_response(sheet)
    result = initialize_values(_load_spec(session, sheet.template_id), saved=sheet.field_values)
    return _to_response(sheet, result.errors).model_copy(update={"values": result.values})


@router.patch("/scoresheet-sessions/{session_id}/fields/{field_id}", response_model=SessionResponse)
def set_session_field(
    session_id: int,
    field_id: str,
    payload: FieldValueUpdate,
    session: Session = Depends(get_session),
):
    """Set one input field and recompute every calculation field"""
    sheet = _get_session_or_404(session, session_id)
    _require_active(sheet)
    spec = _load_spec(session, sheet.template_id)

    current = initialize_values(spec, saved=sheet.field_values).values
    try:
        result = apply_field_edit(spec, current, field_id, payload.value)
    except ScoresheetFieldNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ScoresheetValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _store(session, sheet, result)


@router.put("/scoresheet-sessions/{session_id}/values", response_model=SessionResponse)
def save_session_values(session_id: int, payload: BulkValuesUpdate, session: Session = Depends(get_session)):
    """Save a batch of input values; all-or-nothing"""
    sheet = _get_session_or_404(session, session_id)
    _require_active(sheet)
    spec = _load_spec(session, sheet.template_id)

    current = initialize_values(spec, saved=sheet.field_values).values
    try:
        result = apply_bulk_values(spec, current, payload.values)
    except ScoresheetValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _store(session, sheet, result)


@router.post("/scoresheet-sessions/{session_id}/complete", response_model=SessionResponse)
def complete_session(session_id: int, session: Session = Depends(get_session)):
    """Freeze the session with a final recompute"""
    sheet = _get_session_or_404(session, session_id)
    _require_active(sheet)
    result = initialize_values(_load_spec(session, sheet.template_id), saved=sheet.field_values)

    sheet.status = SESSION_COMPLETED
    sheet.completed_at = datetime.utcnow()
    response = _store(session, sheet, result)
    logger.info("Completed scoresheet session %s", sheet.id)
    return response


@router.delete("/scoresheet-sessions/{session_id}", status_code=204)
def delete_session(session_id: int, session: Session = Depends(get_session)):
    sheet = _get_session_or_404(session, session_id)
    session.delete(sheet)
    session.commit()
    return Response(status_code=204)
