"""Externally configured fraud rules."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..models import RuleStatus, Severity
from .conditions import dump_condition, parse_condition


class FraudRule(BaseModel):
    """A stored rule.

    ``condition`` is kept as the raw stored payload so a malformed or legacy
    rule can still be loaded; the evaluator parses it per evaluation.
    """

    rule_id: int
    name: str
    rule_type: str = "threshold"  # "threshold" | "pattern" | "behavioral" | "network"
    description: str = ""
    condition: dict[str, Any]
    severity: Severity = Severity.MEDIUM
    weight: float = Field(default=10.0, gt=0)
    priority: int = 0
    status: RuleStatus = RuleStatus.ACTIVE
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None


def _normalize(raw: Any) -> dict[str, Any]:
    # Reject bad conditions at write time; store the tagged form
    return dump_condition(parse_condition(raw))


class RuleCreate(BaseModel):
    name: str = Field(min_length=1)
    rule_type: str = "threshold"
    description: str = ""
    condition: dict[str, Any]
    severity: Severity = Severity.MEDIUM
    weight: float = Field(default=10.0, gt=0)
    priority: int = 0
    status: RuleStatus = RuleStatus.ACTIVE

    @field_validator("condition", mode="before")
    @classmethod
    def _valid_condition(cls, v: Any) -> dict[str, Any]:
        return _normalize(v)


class RuleUpdate(BaseModel):
    """Partial update; every applied update bumps the rule version."""

    name: str | None = None
    rule_type: str | None = None
    description: str | None = None
    condition: dict[str, Any] | None = None
    severity: Severity | None = None
    weight: float | None = Field(default=None, gt=0)
    priority: int | None = None
    status: RuleStatus | None = None

    @field_validator("condition", mode="before")
    @classmethod
    def _valid_condition(cls, v: Any) -> dict[str, Any] | None:
        return None if v is None else _normalize(v)
