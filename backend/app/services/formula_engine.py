"""
Formula engine for scoresheet calculation fields.

Formulas are small arithmetic/boolean expressions over field ids, e.g.

  "Math.floor((strength - 10) / 2)"   -> ability modifier
  "dex_mod + (proficient ? 2 : 0)"    -> skill bonus
  "hits * 3 + misses"                 -> round score

Pipeline: tokenize -> parse to an expression tree -> evaluate against a value
mapping. Nothing is ever handed to the Python interpreter, so a formula can only
read field values and call the whitelisted math functions below.

Operator semantics follow the JavaScript-flavoured formulas templates are
written in: "/" is true division, "%" keeps the sign of the dividend, "round"
rounds half up, "&&"/"||" return booleans.
"""

from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Hard cap for fixpoint recompute; 0 means "calculation field count + 1"
FORMULA_MAX_PASSES = int(os.getenv("FORMULA_MAX_PASSES", "0"))

MAX_EXPONENT = 1000
# Integer results wider than this are rejected before they can grow further
MAX_INT_BITS = 4096


class FormulaError(Exception):
    """Base exception for formula parse/evaluation failures"""
    pass


class FormulaSyntaxError(FormulaError):
    """Formula text could not be tokenized or parsed"""
    pass


class FormulaEvaluationError(FormulaError):
    """Formula parsed but could not be evaluated against the current values"""
    pass


# ============================================================================
# Tokenizer
# ============================================================================

@dataclass(frozen=True)
class Token:
    kind: str  # NUMBER | STRING | BOOL | NAME | OP | EOF
    value: Any
    pos: int


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
  | (?P<op>===|!==|\*\*|==|!=|<=|>=|&&|\|\||[-+*/%<>!?:(),])
    """,
    re.VERBOSE,
)

_KEYWORD_LITERALS = {"true": True, "True": True, "false": False, "False": False}
_WORD_OPERATORS = {"and": "&&", "or": "||", "not": "!"}


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if not m:
            raise FormulaSyntaxError(f"Unexpected character {text[pos]!r} at position {pos}")
        kind = m.lastgroup
        raw = m.group(kind)
        if kind == "number":
            try:
                value = float(raw) if any(c in raw for c in ".eE") else int(raw)
            except ValueError as e:
                raise FormulaSyntaxError(f"Invalid number at position {pos}: {e}")
            if isinstance(value, int) and value.bit_length() > MAX_INT_BITS:
                raise FormulaSyntaxError(f"Number at position {pos} is too large")
            tokens.append(Token("NUMBER", value, pos))
        elif kind == "string":
            body = raw[1:-1]
            tokens.append(Token("STRING", re.sub(r"\\(.)", r"\1", body), pos))
        elif kind == "name":
            if raw in _KEYWORD_LITERALS:
                tokens.append(Token("BOOL", _KEYWORD_LITERALS[raw], pos))
            elif raw in _WORD_OPERATORS:
                tokens.append(Token("OP", _WORD_OPERATORS[raw], pos))
            else:
                tokens.append(Token("NAME", raw, pos))
        elif kind == "op":
            tokens.append(Token("OP", raw, pos))
        pos = m.end()
    tokens.append(Token("EOF", None, len(text)))
    return tokens


# ============================================================================
# Expression tree
# ============================================================================

Lookup = Callable[[str], Any]


def _is_number(v: Any) -> bool:
    # bools count: checkbox values take part in arithmetic as 0/1
    return isinstance(v, (int, float))


def _require_numbers(op: str, *operands: Any) -> None:
    for v in operands:
        if not _is_number(v):
            raise FormulaEvaluationError(f"Operator {op!r} needs numbers, got {type(v).__name__} {v!r}")


def _check_magnitude(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool) and value.bit_length() > MAX_INT_BITS:
        raise FormulaEvaluationError(f"Result exceeds {MAX_INT_BITS} bits")
    return value


@dataclass(frozen=True)
class Literal:
    value: Any

    def evaluate(self, lookup: Lookup) -> Any:
        return self.value

    def names(self) -> FrozenSet[str]:
        return frozenset()


@dataclass(frozen=True)
class Name:
    name: str

    def evaluate(self, lookup: Lookup) -> Any:
        return lookup(self.name)

    def names(self) -> FrozenSet[str]:
        return frozenset([self.name])


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Any

    def evaluate(self, lookup: Lookup) -> Any:
        v = self.operand.evaluate(lookup)
        if self.op == "!":
            return not v
        _require_numbers(self.op, v)
        return _check_magnitude(-v if self.op == "-" else +v)

    def names(self) -> FrozenSet[str]:
        return self.operand.names()


def _divide(a: Any, b: Any) -> Any:
    if b == 0:
        raise FormulaEvaluationError("Division by zero")
    return a / b


def _modulo(a: Any, b: Any) -> Any:
    if b == 0:
        raise FormulaEvaluationError("Division by zero")
    if isinstance(a, float) or isinstance(b, float):
        return math.fmod(a, b)
    remainder = abs(a) % abs(b)
    return remainder if a >= 0 else -remainder


def _power(a: Any, b: Any) -> Any:
    if abs(b) > MAX_EXPONENT:
        raise FormulaEvaluationError(f"Exponent {b} too large")
    # bit length of the result is about b * log2(|a|)
    if b > 0 and abs(a) > 1 and b * math.log2(abs(a)) > MAX_INT_BITS:
        raise FormulaEvaluationError(f"Result of {a} ** {b} too large")
    try:
        result = a ** b
    except (OverflowError, ZeroDivisionError) as e:
        raise FormulaEvaluationError(f"Invalid power {a} ** {b}: {e}")
    if isinstance(result, complex):
        raise FormulaEvaluationError(f"Invalid power {a} ** {b}")
    return result


def _add(a: Any, b: Any) -> Any:
    if isinstance(a, str) and isinstance(b, str):
        return a + b
    _require_numbers("+", a, b)
    return a + b


_ARITHMETIC: Dict[str, Callable[[Any, Any], Any]] = {
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _divide,
    "%": _modulo,
    "**": _power,
}

_EQUALITY: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "===": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "!==": lambda a, b: a != b,
}

_ORDERING: Dict[str, Callable[[Any, Any], bool]] = {
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


@dataclass(frozen=True)
class Binary:
    op: str
    left: Any
    right: Any

    def evaluate(self, lookup: Lookup) -> Any:
        if self.op == "&&":
            return bool(self.left.evaluate(lookup)) and bool(self.right.evaluate(lookup))
        if self.op == "||":
            return bool(self.left.evaluate(lookup)) or bool(self.right.evaluate(lookup))

        a = self.left.evaluate(lookup)
        b = self.right.evaluate(lookup)
        if self.op == "+":
            return _check_magnitude(_add(a, b))
        if self.op in _ARITHMETIC:
            _require_numbers(self.op, a, b)
            return _check_magnitude(_ARITHMETIC[self.op](a, b))
        if self.op in _EQUALITY:
            return _EQUALITY[self.op](a, b)
        if self.op in _ORDERING:
            if not ((_is_number(a) and _is_number(b)) or (isinstance(a, str) and isinstance(b, str))):
                raise FormulaEvaluationError(f"Cannot compare {a!r} {self.op} {b!r}")
            return _ORDERING[self.op](a, b)
        raise FormulaEvaluationError(f"Unknown operator {self.op!r}")

    def names(self) -> FrozenSet[str]:
        return self.left.names() | self.right.names()


@dataclass(frozen=True)
class Conditional:
    test: Any
    if_true: Any
    if_false: Any

    def evaluate(self, lookup: Lookup) -> Any:
        if self.test.evaluate(lookup):
            return self.if_true.evaluate(lookup)
        return self.if_false.evaluate(lookup)

    def names(self) -> FrozenSet[str]:
        return self.test.names() | self.if_true.names() | self.if_false.names()


def _round_half_up(x: Any) -> int:
    return math.floor(x + 0.5)


def _sqrt(x: Any) -> float:
    if x < 0:
        raise FormulaEvaluationError(f"sqrt of negative number {x}")
    return math.sqrt(x)


# name -> (callable, min_args, max_args); max_args None = variadic
FUNCTIONS: Dict[str, Tuple[Callable[..., Any], int, Optional[int]]] = {
    "floor": (math.floor, 1, 1),
    "ceil": (math.ceil, 1, 1),
    "round": (_round_half_up, 1, 1),
    "trunc": (math.trunc, 1, 1),
    "abs": (abs, 1, 1),
    "sqrt": (_sqrt, 1, 1),
    "min": (min, 1, None),
    "max": (max, 1, None),
}


@dataclass(frozen=True)
class Call:
    function: str
    args: Tuple[Any, ...]

    def evaluate(self, lookup: Lookup) -> Any:
        func, _, _ = FUNCTIONS[self.function]
        values = [arg.evaluate(lookup) for arg in self.args]
        _require_numbers(self.function, *values)
        try:
            return func(*values)
        except (OverflowError, ValueError) as e:
            raise FormulaEvaluationError(f"{self.function}() failed: {e}")

    def names(self) -> FrozenSet[str]:
        out: FrozenSet[str] = frozenset()
        for arg in self.args:
            out = out | arg.names()
        return out


# ============================================================================
# Parser (recursive descent, lowest precedence first)
#
#   conditional := or ('?' conditional ':' conditional)?
#   or          := and ('||' and)*
#   and         := equality ('&&' equality)*
#   equality    := comparison (('=='|'!='|'==='|'!==') comparison)*
#   comparison  := additive (('<'|'<='|'>'|'>=') additive)*
#   additive    := term (('+'|'-') term)*
#   term        := unary (('*'|'/'|'%') unary)*
#   unary       := ('-'|'+'|'!') unary | power
#   power       := primary ('**' unary)?
#   primary     := NUMBER | STRING | BOOL | NAME | NAME '(' args ')' | '(' conditional ')'
# ============================================================================

class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def _at_op(self, *ops: str) -> bool:
        return self.current.kind == "OP" and self.current.value in ops

    def _expect_op(self, op: str) -> None:
        if not self._at_op(op):
            found = "end of formula" if self.current.kind == "EOF" else repr(self.current.value)
            raise FormulaSyntaxError(f"Expected {op!r} at position {self.current.pos}, found {found}")
        self._advance()

    def parse(self):
        if self.current.kind == "EOF":
            raise FormulaSyntaxError("Formula is empty")
        node = self._conditional()
        if self.current.kind != "EOF":
            raise FormulaSyntaxError(f"Unexpected {self.current.value!r} at position {self.current.pos}")
        return node

    def _conditional(self):
        test = self._binary_level(0)
        if self._at_op("?"):
            self._advance()
            if_true = self._conditional()
            self._expect_op(":")
            if_false = self._conditional()
            return Conditional(test, if_true, if_false)
        return test

    _LEVELS: Sequence[Tuple[str, ...]] = (
        ("||",),
        ("&&",),
        ("==", "!=", "===", "!=="),
        ("<", "<=", ">", ">="),
        ("+", "-"),
        ("*", "/", "%"),
    )

    def _binary_level(self, level: int):
        if level == len(self._LEVELS):
            return self._unary()
        node = self._binary_level(level + 1)
        while self._at_op(*self._LEVELS[level]):
            op = self._advance().value
            node = Binary(op, node, self._binary_level(level + 1))
        return node

    def _unary(self):
        if self._at_op("-", "+", "!"):
            op = self._advance().value
            return Unary(op, self._unary())
        return self._power()

    def _power(self):
        base = self._primary()
        if self._at_op("**"):
            self._advance()
            return Binary("**", base, self._unary())
        return base

    def _primary(self):
        tok = self.current
        if tok.kind in ("NUMBER", "STRING", "BOOL"):
            self._advance()
            return Literal(tok.value)
        if tok.kind == "NAME":
            self._advance()
            if self._at_op("("):
                return self._call(tok)
            return Name(tok.value)
        if self._at_op("("):
            self._advance()
            node = self._conditional()
            self._expect_op(")")
            return node
        found = "end of formula" if tok.kind == "EOF" else repr(tok.value)
        raise FormulaSyntaxError(f"Unexpected {found} at position {tok.pos}")

    def _call(self, name_tok: Token):
        name = name_tok.value
        if name.startswith("Math."):
            name = name[len("Math."):]
        if name not in FUNCTIONS:
            raise FormulaSyntaxError(f"Unknown function {name_tok.value!r}")
        self._expect_op("(")
        args: List[Any] = []
        if not self._at_op(")"):
            args.append(self._conditional())
            while self._at_op(","):
                self._advance()
                args.append(self._conditional())
        self._expect_op(")")
        _, min_args, max_args = FUNCTIONS[name]
        if len(args) < min_args or (max_args is not None and len(args) > max_args):
            raise FormulaSyntaxError(f"{name}() got {len(args)} argument(s)")
        return Call(name, tuple(args))


@dataclass(frozen=True)
class Formula:
    source: str
    tree: Any

    @property
    def references(self) -> FrozenSet[str]:
        """Field ids this formula reads."""
        return self.tree.names()

    def evaluate(self, values: Mapping[str, Any], self_id: Optional[str] = None) -> Any:
        """Evaluate against *values*. *self_id* is never resolvable (no self reference)."""

        def lookup(name: str) -> Any:
            if name == self_id or name not in values:
                raise FormulaEvaluationError(f"Unknown field {name!r}")
            return values[name]

        try:
            result = self.tree.evaluate(lookup)
        except RecursionError:
            raise FormulaEvaluationError("Formula nested too deeply")
        except (TypeError, ArithmeticError, ValueError) as e:
            raise FormulaEvaluationError(f"{type(e).__name__}: {e}")
        return normalize_result(result)


def normalize_result(value: Any) -> Any:
    """Collapse integral floats to int so 4 / 2 stores as 2, not 2.0."""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return value


@lru_cache(maxsize=1024)
def parse_formula(text: str) -> Formula:
    if text is None or not str(text).strip():
        raise FormulaSyntaxError("Formula is empty")
    try:
        return Formula(source=text, tree=_Parser(text).parse())
    except RecursionError:
        raise FormulaSyntaxError("Formula nested too deeply")


def evaluate_formula(text: str, values: Mapping[str, Any], self_id: Optional[str] = None) -> Any:
    return parse_formula(text).evaluate(values, self_id=self_id)


# ============================================================================
# Recompute
# ============================================================================

@dataclass
class RecomputeResult:
    values: Dict[str, Any]
    errors: Dict[str, str]  # field_id -> error message (last failure)
    passes: int
    converged: bool


def recompute_with_errors(
    values: Mapping[str, Any],
    calculations: Sequence[Tuple[str, str]],
    max_passes: Optional[int] = None,
) -> RecomputeResult:
    """
    Recompute every calculation field from the current values.

    *calculations* is the ordered list of (field_id, formula) pairs in template
    order. Each pass evaluates them in that order, so a field sees the values
    produced earlier in the same pass. Passes repeat until nothing changes,
    which settles forward references (a field reading a calculation declared
    after it). A reference cycle never settles; recompute stops after
    *max_passes* and keeps the last pass.

    A failing formula leaves that field's previous value in place and never
    stops the other fields.

    The input mapping is not modified; a new dict is returned.
    """
    current: Dict[str, Any] = dict(values)
    if max_passes is None:
        max_passes = FORMULA_MAX_PASSES or len(calculations) + 1
    max_passes = max(1, max_passes)

    errors: Dict[str, str] = {}
    passes = 0
    converged = False
    while passes < max_passes:
        passes += 1
        errors = {}
        changed = False
        for field_id, formula in calculations:
            try:
                result = evaluate_formula(formula, current, self_id=field_id)
            except FormulaError as e:
                errors[field_id] = str(e)
                continue
            if field_id not in current or current[field_id] != result or type(current[field_id]) is not type(result):
                current[field_id] = result
                changed = True
        if not changed:
            converged = True
            break

    for field_id, message in errors.items():
        logger.warning("Formula for field %s failed: %s", field_id, message)
    if not converged:
        logger.warning(
            "Calculation fields did not settle after %d passes (reference cycle?)", passes
        )

    return RecomputeResult(values=current, errors=errors, passes=passes, converged=converged)


def recompute(
    values: Mapping[str, Any],
    calculations: Sequence[Tuple[str, str]],
    max_passes: Optional[int] = None,
) -> Dict[str, Any]:
    return recompute_with_errors(values, calculations, max_passes=max_passes).values
