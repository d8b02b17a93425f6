"""Rule condition tree: a closed set of node kinds plus legacy payload conversion.

A condition is one of:
    {"kind": "field", "field": "amount", "op": "gt", "value": 5000}
    {"kind": "and", "children": [...]}
    {"kind": "or", "children": [...]}
    {"kind": "not", "child": {...}}

Older rule payloads use the ``{"operator": "and", "conditions": [...]}``
shape; ``parse_condition`` converts those on read.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..models import FACTOR_NAMES, ClaimContext, RiskFactorSet
from ..signals import member_age


class ConditionError(ValueError):
    """A condition cannot be parsed or evaluated against a claim."""


class Operator(StrEnum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"
    IN = "in"
    BETWEEN = "between"


class FieldCondition(BaseModel):
    kind: Literal["field"] = "field"
    field: str
    op: Operator
    value: Any = None


class AndCondition(BaseModel):
    kind: Literal["and"] = "and"
    children: list["Condition"] = Field(min_length=1)


class OrCondition(BaseModel):
    kind: Literal["or"] = "or"
    children: list["Condition"] = Field(min_length=1)


class NotCondition(BaseModel):
    kind: Literal["not"] = "not"
    child: "Condition"


Condition = Annotated[
    FieldCondition | AndCondition | OrCondition | NotCondition,
    Field(discriminator="kind"),
]

AndCondition.model_rebuild()
OrCondition.model_rebuild()
NotCondition.model_rebuild()

_condition_adapter: TypeAdapter[Condition] = TypeAdapter(Condition)


# --- Parsing ---


def _from_legacy(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ConditionError(f"Condition must be an object, got {type(raw).__name__}")
    if "conditions" in raw:
        group = str(raw.get("operator", "and")).lower()
        if group not in ("and", "or"):
            raise ConditionError(f"Unsupported group operator: {group}")
        items = raw["conditions"]
        if not isinstance(items, list) or not items:
            raise ConditionError("Legacy condition group has no conditions")
        return {"kind": group, "children": [_from_legacy(item) for item in items]}
    if "field" in raw and "operator" in raw:
        return {"kind": "field", "field": raw["field"], "op": raw["operator"], "value": raw.get("value")}
    raise ConditionError(f"Unrecognized condition payload: {sorted(raw)}")


def parse_condition(raw: Any) -> Condition:
    """Validate a stored condition payload, converting the legacy shape if needed."""
    if isinstance(raw, FieldCondition | AndCondition | OrCondition | NotCondition):
        return raw
    if not isinstance(raw, dict):
        raise ConditionError(f"Condition must be an object, got {type(raw).__name__}")
    payload = raw if "kind" in raw else _from_legacy(raw)
    try:
        return _condition_adapter.validate_python(payload)
    except ValidationError as exc:
        raise ConditionError(str(exc)) from exc


def dump_condition(condition: Condition) -> dict[str, Any]:
    return _condition_adapter.dump_python(condition, mode="json")


# --- Field resolution ---

CLAIM_FIELDS = frozenset(
    {
        "id",
        "amount",
        "claim_date",
        "service_date",
        "diagnosis_code",
        "description",
        "member_id",
        "provider_id",
        "provider_region",
    }
)
MEMBER_FIELDS = frozenset({"gender", "date_of_birth", "age"})
PROVIDER_FIELDS = frozenset({"provider_type", "approval_status", "created_at", "region"})


def resolve_field(path: str, context: ClaimContext, factors: RiskFactorSet) -> Any:
    """Look up a dotted field path; raises ConditionError for unknown paths."""
    if path == "member_history_count":
        return len(context.prior_member_claims())
    if path == "provider_history_count":
        return len(context.prior_provider_claims())

    head, _, attr = path.partition(".")
    if not attr:
        head, attr = "claim", head

    if head == "claim" and attr in CLAIM_FIELDS:
        return getattr(context.claim, attr)
    if head == "factors" and attr in FACTOR_NAMES:
        return getattr(factors, attr)
    if head == "member" and attr in MEMBER_FIELDS:
        if attr == "age":
            return member_age(context.member, context.now)
        return getattr(context.member, attr) if context.member else None
    if head == "provider" and attr in PROVIDER_FIELDS:
        return getattr(context.provider, attr) if context.provider else None

    raise ConditionError(f"Unknown field: {path}")


# --- Evaluation ---


def _compare(op: Operator, actual: Any, expected: Any) -> bool:
    if op == Operator.EQ:
        return actual == expected
    if op == Operator.NE:
        return actual != expected
    # Missing data never satisfies an ordering or membership test
    if actual is None:
        return False
    try:
        if op == Operator.GT:
            return actual > expected
        if op == Operator.GTE:
            return actual >= expected
        if op == Operator.LT:
            return actual < expected
        if op == Operator.LTE:
            return actual <= expected
        if op == Operator.CONTAINS:
            if isinstance(actual, str):
                return str(expected).lower() in actual.lower()
            return expected in actual
        if op == Operator.IN:
            if not isinstance(expected, list | tuple | set):
                raise ConditionError("'in' expects a list value")
            return actual in expected
        if op == Operator.BETWEEN:
            if not isinstance(expected, list | tuple) or len(expected) != 2:
                raise ConditionError("'between' expects a [low, high] value")
            low, high = expected
            return low <= actual <= high
    except TypeError as exc:
        raise ConditionError(f"Cannot apply {op.value} to {actual!r} and {expected!r}") from exc
    raise ConditionError(f"Unsupported operator: {op}")


def evaluate_condition(condition: Condition, context: ClaimContext, factors: RiskFactorSet) -> bool:
    if isinstance(condition, FieldCondition):
        actual = resolve_field(condition.field, context, factors)
        return _compare(condition.op, actual, condition.value)
    if isinstance(condition, AndCondition):
        return all(evaluate_condition(c, context, factors) for c in condition.children)
    if isinstance(condition, OrCondition):
        return any(evaluate_condition(c, context, factors) for c in condition.children)
    if isinstance(condition, NotCondition):
        return not evaluate_condition(condition.child, context, factors)
    raise ConditionError(f"Unknown condition node: {type(condition).__name__}")
