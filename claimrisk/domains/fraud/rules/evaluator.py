"""Evaluates configured rules against a claim and its risk factors."""

import structlog

from ..models import ClaimContext, RiskFactorSet, RuleStatus, TriggeredRule
from .conditions import ConditionError, evaluate_condition, parse_condition
from .models import FraudRule

logger = structlog.get_logger()


def evaluation_order(rules: list[FraudRule]) -> list[FraudRule]:
    """Active rules by priority descending, ties by rule id ascending."""
    active = [r for r in rules if r.status == RuleStatus.ACTIVE]
    return sorted(active, key=lambda r: (-r.priority, r.rule_id))


class RuleEvaluator:
    """Side-effect free rule evaluation.

    A rule whose condition cannot be parsed, references an unknown field or
    compares incompatible types is skipped with a warning. One TriggeredRule
    is produced per firing rule.
    """

    def evaluate(
        self,
        context: ClaimContext,
        factors: RiskFactorSet,
        rules: list[FraudRule],
    ) -> list[TriggeredRule]:
        triggered: list[TriggeredRule] = []

        for rule in evaluation_order(rules):
            try:
                condition = parse_condition(rule.condition)
                fired = evaluate_condition(condition, context, factors)
            except ConditionError as exc:
                logger.warning(
                    "rule_skipped_invalid",
                    rule_id=rule.rule_id,
                    rule_name=rule.name,
                    version=rule.version,
                    claim_id=context.claim_id,
                    error=str(exc),
                )
                continue

            if fired:
                triggered.append(
                    TriggeredRule(
                        rule_id=rule.rule_id,
                        name=rule.name,
                        rule_type=rule.rule_type,
                        severity=rule.severity,
                        weight=rule.weight,
                        priority=rule.priority,
                        version=rule.version,
                        description=rule.description,
                    )
                )

        logger.debug(
            "rules_evaluated",
            claim_id=context.claim_id,
            rule_count=len(rules),
            triggered_count=len(triggered),
        )
        return triggered
