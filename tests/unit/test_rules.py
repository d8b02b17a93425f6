"""Unit tests for rule conditions, rule records and the rule evaluator."""

import pytest
from pydantic import ValidationError

from claimrisk.domains.fraud.models import MemberInfo, RiskFactorSet, RuleStatus, Severity
from claimrisk.domains.fraud.rules import (
    AndCondition,
    ConditionError,
    FieldCondition,
    FraudRule,
    NotCondition,
    Operator,
    RuleCreate,
    RuleEvaluator,
    RuleUpdate,
    dump_condition,
    evaluate_condition,
    evaluation_order,
    parse_condition,
    resolve_field,
)
from tests.conftest import make_claim, make_context

FACTORS = RiskFactorSet(amount=65.0, frequency=10.0)


def _rule(rule_id: int, condition: dict, **kwargs) -> FraudRule:
    defaults = {"name": f"rule-{rule_id}", "condition": condition}
    defaults.update(kwargs)
    return FraudRule(rule_id=rule_id, **defaults)


def _field(field: str, op: str, value) -> dict:
    return {"kind": "field", "field": field, "op": op, "value": value}


class TestParseCondition:
    def test_tagged_tree(self):
        cond = parse_condition(
            {
                "kind": "and",
                "children": [
                    _field("amount", "gt", 1000),
                    {"kind": "not", "child": _field("diagnosis_code", "eq", "Z00.0")},
                ],
            }
        )
        assert isinstance(cond, AndCondition)
        assert isinstance(cond.children[1], NotCondition)

    def test_legacy_group_converted(self):
        cond = parse_condition(
            {
                "operator": "or",
                "conditions": [
                    {"field": "amount", "operator": "gte", "value": 5000},
                    {"field": "description", "operator": "contains", "value": "complex"},
                ],
            }
        )
        dumped = dump_condition(cond)
        assert dumped["kind"] == "or"
        assert dumped["children"][0] == _field("amount", "gte", 5000)

    def test_legacy_single_field(self):
        cond = parse_condition({"field": "amount", "operator": "lt", "value": 10})
        assert cond == FieldCondition(field="amount", op=Operator.LT, value=10)

    @pytest.mark.parametrize(
        "raw",
        [
            "amount > 5",
            {"kind": "field", "field": "amount", "op": "approx", "value": 1},
            {"kind": "and", "children": []},
            {"operator": "xor", "conditions": [{"field": "amount", "operator": "gt", "value": 1}]},
            {"something": "else"},
        ],
    )
    def test_malformed_raises_condition_error(self, raw):
        with pytest.raises(ConditionError):
            parse_condition(raw)


class TestResolveField:
    def test_claim_factor_member_and_counts(self):
        ctx = make_context(
            make_claim(amount=750),
            member=MemberInfo(member_id="member-1", gender="F"),
            member_history=[make_claim("old", amount=10)],
        )
        assert resolve_field("amount", ctx, FACTORS) == 750
        assert resolve_field("claim.amount", ctx, FACTORS) == 750
        assert resolve_field("factors.amount", ctx, FACTORS) == 65.0
        assert resolve_field("member.gender", ctx, FACTORS) == "F"
        assert resolve_field("member_history_count", ctx, FACTORS) == 1

    def test_unknown_field(self, sample_context):
        with pytest.raises(ConditionError):
            resolve_field("claim.secret", sample_context, FACTORS)


class TestEvaluateCondition:
    @pytest.mark.parametrize(
        ("condition", "expected"),
        [
            (_field("amount", "eq", 500), True),
            (_field("amount", "ne", 500), False),
            (_field("amount", "gt", 499), True),
            (_field("amount", "lte", 499), False),
            (_field("description", "contains", "OFFICE"), True),
            (_field("diagnosis_code", "in", ["J06.9", "J20.9"]), True),
            (_field("amount", "between", [100, 600]), True),
            (_field("factors.amount", "gte", 70), False),
            ({"kind": "not", "child": _field("amount", "gt", 1000)}, True),
            ({"kind": "or", "children": [_field("amount", "gt", 1000), _field("amount", "lt", 600)]}, True),
        ],
    )
    def test_operators(self, sample_context, condition, expected):
        assert evaluate_condition(parse_condition(condition), sample_context, FACTORS) is expected

    def test_missing_value_never_satisfies_ordering(self, sample_context):
        cond = parse_condition(_field("service_date", "gt", "2020-01-01"))
        assert evaluate_condition(cond, sample_context, FACTORS) is False

    def test_type_mismatch(self, sample_context):
        cond = parse_condition(_field("amount", "gt", "a lot"))
        with pytest.raises(ConditionError):
            evaluate_condition(cond, sample_context, FACTORS)


class TestRuleModels:
    def test_create_normalizes_legacy_condition(self):
        rule = RuleCreate(name="big", condition={"field": "amount", "operator": "gt", "value": 5000})
        assert rule.condition == _field("amount", "gt", 5000)

    def test_create_rejects_bad_condition(self):
        with pytest.raises(ValidationError):
            RuleCreate(name="bad", condition={"kind": "field", "field": "amount"})

    def test_update_allows_partial(self):
        update = RuleUpdate(weight=20)
        assert update.condition is None
        assert update.model_dump(exclude_none=True) == {"weight": 20}


class TestRuleEvaluator:
    def test_order_by_priority_then_id(self):
        rules = [
            _rule(3, _field("amount", "gt", 0), priority=1),
            _rule(1, _field("amount", "gt", 0), priority=5),
            _rule(2, _field("amount", "gt", 0), priority=5),
            _rule(4, _field("amount", "gt", 0), priority=9, status=RuleStatus.INACTIVE),
        ]
        assert [r.rule_id for r in evaluation_order(rules)] == [1, 2, 3]

    def test_one_triggered_rule_per_firing_rule(self, sample_context):
        rules = [
            _rule(1, _field("amount", "gt", 100), severity=Severity.HIGH, weight=25, version=3),
            _rule(2, _field("amount", "gt", 100_000)),
        ]
        triggered = RuleEvaluator().evaluate(sample_context, FACTORS, rules)
        assert len(triggered) == 1
        assert triggered[0].rule_id == 1
        assert triggered[0].severity == Severity.HIGH
        assert triggered[0].version == 3

    def test_malformed_rules_are_skipped(self, sample_context):
        rules = [
            _rule(1, {"nonsense": True}),
            _rule(2, _field("claim.unknown", "eq", 1)),
            _rule(3, _field("amount", "gt", "text")),
            _rule(4, _field("amount", "gt", 100)),
        ]
        triggered = RuleEvaluator().evaluate(sample_context, FACTORS, rules)
        assert [t.rule_id for t in triggered] == [4]

    def test_inactive_rules_not_evaluated(self, sample_context):
        rules = [_rule(1, _field("amount", "gt", 0), status=RuleStatus.INACTIVE)]
        assert RuleEvaluator().evaluate(sample_context, FACTORS, rules) == []
