"""Fraud rules package.

Exports the condition tree, the FraudRule record and RuleEvaluator.
"""

from .conditions import (
    AndCondition,
    Condition,
    ConditionError,
    FieldCondition,
    NotCondition,
    Operator,
    OrCondition,
    dump_condition,
    evaluate_condition,
    parse_condition,
    resolve_field,
)
from .evaluator import RuleEvaluator, evaluation_order
from .models import FraudRule, RuleCreate, RuleUpdate

__all__ = [
    "AndCondition",
    "Condition",
    "ConditionError",
    "FieldCondition",
    "FraudRule",
    "NotCondition",
    "Operator",
    "OrCondition",
    "RuleCreate",
    "RuleEvaluator",
    "RuleUpdate",
    "dump_condition",
    "evaluate_condition",
    "evaluation_order",
    "parse_condition",
    "resolve_field",
]
