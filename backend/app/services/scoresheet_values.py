"""
Scoresheet values: default seeding, field edits, recompute, template checks.

Works on lightweight specs detached from the ORM so the same code serves
route handlers and pure unit tests. Value maps are never mutated in place:
every operation takes a mapping and returns a new dict.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from app.models.scoresheet_field import FieldType
from app.services.formula_engine import (
    FUNCTIONS,
    FormulaError,
    RecomputeResult,
    normalize_result,
    parse_formula,
    recompute_with_errors,
)

FIELD_ID_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
RESERVED_FIELD_IDS = {"true", "false", "True", "False", "and", "or", "not", "Math"}


class ScoresheetError(Exception):
    """Base exception for scoresheet errors"""
    pass


class ScoresheetValidationError(ScoresheetError):
    """Input rejected; nothing was changed"""
    pass


class ScoresheetFieldNotFoundError(ScoresheetError):
    """Field id does not exist in the template"""
    pass


@dataclass
class FieldSpec:
    field_id: str
    name: str
    type: FieldType
    default_value: Any = None
    options: Optional[List[str]] = None
    formula: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None


@dataclass
class SubcategorySpec:
    name: str
    fields: List[FieldSpec] = field(default_factory=list)


@dataclass
class TemplateSpec:
    name: str
    subcategories: List[SubcategorySpec] = field(default_factory=list)
    id: Optional[int] = None
    game_id: Optional[int] = None

    def iter_fields(self) -> List[FieldSpec]:
        """All fields in template order (subcategory order, then field order)."""
        return [f for sub in self.subcategories for f in sub.fields]

    def field_map(self) -> Dict[str, FieldSpec]:
        return {f.field_id: f for f in self.iter_fields()}

    def calculations(self) -> List[Tuple[str, str]]:
        return [
            (f.field_id, f.formula)
            for f in self.iter_fields()
            if f.type == FieldType.calculation and f.formula
        ]


def type_default(spec: FieldSpec) -> Any:
    if spec.type == FieldType.number:
        return 0
    if spec.type == FieldType.checkbox:
        return False
    if spec.type == FieldType.dropdown:
        return spec.options[0] if spec.options else ""
    return ""


def recompute_values(template: TemplateSpec, values: Mapping[str, Any]) -> RecomputeResult:
    return recompute_with_errors(values, template.calculations())


def initialize_values(template: TemplateSpec, saved: Optional[Mapping[str, Any]] = None) -> RecomputeResult:
    """
    Build the starting value map for a new (or resumed) session.

    Explicit default_value wins, otherwise the type default. Saved values for
    known fields override defaults. One recompute runs before the sheet is
    shown so calculation fields are populated.
    """
    values: Dict[str, Any] = {}
    for spec in template.iter_fields():
        values[spec.field_id] = spec.default_value if spec.default_value is not None else type_default(spec)
    if saved:
        known = template.field_map()
        for field_id, value in saved.items():
            if field_id in known:
                values[field_id] = value
    return recompute_values(template, values)


def validate_field_value(spec: FieldSpec, value: Any) -> Any:
    """Return the value to store, or raise ScoresheetValidationError."""
    if spec.type == FieldType.calculation:
        raise ScoresheetValidationError(f"Field '{spec.field_id}' is calculated and cannot be set directly")

    if spec.type == FieldType.number:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ScoresheetValidationError(f"Field '{spec.field_id}' expects a number, got {value!r}")
        if spec.min_value is not None and value < spec.min_value:
            raise ScoresheetValidationError(
                f"Field '{spec.field_id}' must be >= {normalize_result(spec.min_value)}, got {value}"
            )
        if spec.max_value is not None and value > spec.max_value:
            raise ScoresheetValidationError(
                f"Field '{spec.field_id}' must be <= {normalize_result(spec.max_value)}, got {value}"
            )
        return normalize_result(value)

    if spec.type == FieldType.checkbox:
        if not isinstance(value, bool):
            raise ScoresheetValidationError(f"Field '{spec.field_id}' expects true/false, got {value!r}")
        return value

    if spec.type == FieldType.dropdown:
        if not isinstance(value, str):
            raise ScoresheetValidationError(f"Field '{spec.field_id}' expects one of its options, got {value!r}")
        if spec.options and value not in spec.options:
            raise ScoresheetValidationError(
                f"'{value}' is not an option for field '{spec.field_id}' ({', '.join(spec.options)})"
            )
        return value

    if not isinstance(value, str):
        raise ScoresheetValidationError(f"Field '{spec.field_id}' expects text, got {value!r}")
    return value


def apply_field_edit(
    template: TemplateSpec, values: Mapping[str, Any], field_id: str, new_value: Any
) -> RecomputeResult:
    spec = template.field_map().get(field_id)
    if spec is None:
        raise ScoresheetFieldNotFoundError(f"Field '{field_id}' not found in template")
    stored = validate_field_value(spec, new_value)
    return recompute_values(template, {**values, field_id: stored})


def set_field_value(
    template: TemplateSpec, values: Mapping[str, Any], field_id: str, new_value: Any
) -> Dict[str, Any]:
    """Apply a single edit and return the recomputed value map."""
    return apply_field_edit(template, values, field_id, new_value).values


def apply_bulk_values(
    template: TemplateSpec, values: Mapping[str, Any], incoming: Mapping[str, Any]
) -> RecomputeResult:
    """
    Merge a batch of edits (a full save from the client).

    Calculation fields in *incoming* are ignored since they are recomputed.
    Every other entry is validated first; any failure rejects the whole batch.
    """
    known = template.field_map()
    unknown = sorted(k for k in incoming if k not in known)
    if unknown:
        raise ScoresheetValidationError(f"Unknown field(s): {', '.join(unknown)}")

    merged: Dict[str, Any] = dict(values)
    problems: List[str] = []
    for field_id, value in incoming.items():
        spec = known[field_id]
        if spec.type == FieldType.calculation:
            continue
        try:
            merged[field_id] = validate_field_value(spec, value)
        except ScoresheetValidationError as e:
            problems.append(str(e))
    if problems:
        raise ScoresheetValidationError("; ".join(problems))
    return recompute_values(template, merged)


# ============================================================================
# Template authoring checks
# ============================================================================

def _check_field(spec: FieldSpec) -> List[str]:
    problems: List[str] = []
    fid = spec.field_id
    if spec.type == FieldType.calculation:
        if not spec.formula or not spec.formula.strip():
            problems.append(f"Calculation field '{fid}' needs a formula")
    elif spec.formula:
        problems.append(f"Only calculation fields may have a formula ('{fid}' is {spec.type.value})")

    if spec.type == FieldType.number:
        if spec.min_value is not None and spec.max_value is not None and spec.min_value > spec.max_value:
            problems.append(f"Field '{fid}': min_value must be <= max_value")
    elif spec.min_value is not None or spec.max_value is not None:
        problems.append(f"Only number fields may have min/max ('{fid}' is {spec.type.value})")

    if spec.type != FieldType.dropdown and spec.options:
        problems.append(f"Only dropdown fields may have options ('{fid}' is {spec.type.value})")

    if spec.default_value is not None and spec.type != FieldType.calculation:
        try:
            validate_field_value(spec, spec.default_value)
        except ScoresheetValidationError as e:
            problems.append(f"Invalid default: {e}")
    return problems


def _find_cycle(graph: Mapping[str, Set[str]]) -> Optional[List[str]]:
    """Return one reference cycle among calculation fields, if any."""
    WHITE, GREY, BLACK = 0, 1, 2
    color = {node: WHITE for node in graph}
    stack: List[str] = []

    def visit(node: str) -> Optional[List[str]]:
        color[node] = GREY
        stack.append(node)
        for nxt in sorted(graph[node]):
            if color[nxt] == GREY:
                return stack[stack.index(nxt):] + [nxt]
            if color[nxt] == WHITE:
                found = visit(nxt)
                if found:
                    return found
        stack.pop()
        color[node] = BLACK
        return None

    for node in graph:
        if color[node] == WHITE:
            found = visit(node)
            if found:
                return found
    return None


def validate_template(template: TemplateSpec) -> None:
    """
    Raise ScoresheetValidationError listing every structural problem:
    bad/duplicate field ids, type-specific attributes, unparsable formulas,
    references to unknown fields, self references and reference cycles.
    """
    problems: List[str] = []
    if not template.name or not template.name.strip():
        problems.append("Template name is required")

    seen: Set[str] = set()
    for sub in template.subcategories:
        if not sub.name or not sub.name.strip():
            problems.append("Subcategory name is required")
        for spec in sub.fields:
            fid = spec.field_id
            if not FIELD_ID_RE.match(fid or ""):
                problems.append(f"Field id '{fid}' must be letters, digits and underscores, not starting with a digit")
            elif fid in RESERVED_FIELD_IDS or fid in FUNCTIONS:
                problems.append(f"Field id '{fid}' is reserved")
            if fid in seen:
                problems.append(f"Duplicate field id '{fid}'")
            seen.add(fid)
            problems.extend(_check_field(spec))

    calc_refs: Dict[str, Set[str]] = {}
    for spec in template.iter_fields():
        if spec.type != FieldType.calculation or not spec.formula:
            continue
        try:
            refs = parse_formula(spec.formula).references
        except FormulaError as e:
            problems.append(f"Formula for '{spec.field_id}' is invalid: {e}")
            continue
        missing = sorted(r for r in refs if r not in seen)
        if missing:
            problems.append(f"Formula for '{spec.field_id}' references unknown field(s): {', '.join(missing)}")
        calc_refs[spec.field_id] = set(refs)

    calc_ids = set(calc_refs)
    graph = {fid: {r for r in refs if r in calc_ids} for fid, refs in calc_refs.items()}
    cycle = _find_cycle(graph)
    if cycle:
        problems.append(f"Calculation fields reference each other in a cycle: {' -> '.join(cycle)}")

    if problems:
        raise ScoresheetValidationError("; ".join(problems))
