"""Risk aggregation: every evaluation input becomes weighted indicators.

Score = 100 * sum(weight * multiplier(severity)) / sum(weight), with
multipliers HIGH 1.0, MEDIUM 0.7, LOW 0.4. Model predictions stay advisory
(reported as model_confidence) unless a model carries an indicator weight.
"""

import structlog

from claimrisk.domains.behavior.models import BehavioralAnalysis
from claimrisk.domains.network.models import NetworkAnalysisResult

from .config import FraudConfig, default_config
from .detectors import DUPLICATE_BILLING, UNBUNDLING, UPCODING
from .models import (
    SEVERITY_MULTIPLIERS,
    AggregateResult,
    FraudIndicator,
    FraudType,
    IndicatorSource,
    ModelPrediction,
    RiskFactorSet,
    RiskLevel,
    Severity,
    TriggeredRule,
)

logger = structlog.get_logger()


def classify_risk_level(score: float, config: FraudConfig | None = None) -> RiskLevel:
    levels = (config or default_config).levels
    if score >= levels.critical:
        return RiskLevel.CRITICAL
    if score >= levels.high:
        return RiskLevel.HIGH
    if score >= levels.medium:
        return RiskLevel.MEDIUM
    if score > 0:
        return RiskLevel.LOW
    return RiskLevel.NONE


def weighted_score(indicators: list[FraudIndicator]) -> float:
    total_weight = sum(i.weight for i in indicators)
    if total_weight <= 0:
        return 0.0
    weighted = sum(i.weight * SEVERITY_MULTIPLIERS[i.severity] for i in indicators)
    return max(0.0, min(100.0, 100.0 * weighted / total_weight))


def classify_fraud_type(indicators: list[FraudIndicator]) -> FraudType:
    types = {i.type for i in indicators}
    if DUPLICATE_BILLING in types:
        return FraudType.DUPLICATE
    if UNBUNDLING in types:
        return FraudType.UNBUNDLING
    if UPCODING in types or any(i.severity in (Severity.HIGH, Severity.MEDIUM) for i in indicators):
        return FraudType.BILLING_FRAUD
    return FraudType.NONE


class RiskAggregator:
    def __init__(self, config: FraudConfig | None = None) -> None:
        self._config = config or default_config

    def score(
        self,
        factors: RiskFactorSet,
        triggered_rules: list[TriggeredRule],
        behavioral: BehavioralAnalysis | None = None,
        network: NetworkAnalysisResult | None = None,
        model_predictions: list[ModelPrediction] | None = None,
        patterns: list[FraudIndicator] | None = None,
    ) -> AggregateResult:
        predictions = model_predictions or []
        indicators = [
            *(patterns or []),
            *self.factor_indicators(factors),
            *self.rule_indicators(triggered_rules),
            *self.behavioral_indicators(behavioral),
            *self.network_indicators(network),
            *self.model_indicators(predictions),
        ]

        risk_score = round(weighted_score(indicators), 2)
        risk_level = classify_risk_level(risk_score, self._config)
        fraud_type = classify_fraud_type(indicators)
        model_confidence = (
            round(sum(p.confidence for p in predictions) / len(predictions), 4) if predictions else None
        )

        logger.debug(
            "risk_aggregated",
            risk_score=risk_score,
            risk_level=risk_level.value,
            fraud_type=fraud_type.value,
            indicator_count=len(indicators),
        )

        return AggregateResult(
            risk_score=risk_score,
            risk_level=risk_level,
            fraud_type=fraud_type,
            indicators=indicators,
            investigation_required=risk_level not in (RiskLevel.NONE, RiskLevel.LOW),
            model_confidence=model_confidence,
            rule_violations=[
                f"{i.type}: {i.description}" for i in indicators if i.severity == Severity.HIGH
            ],
        )

    # --- Indicator conversion ---

    def factor_indicators(self, factors: RiskFactorSet) -> list[FraudIndicator]:
        cfg = self._config.indicators
        indicators = []
        for name, value in factors.as_dict().items():
            if value < cfg.factor_indicator_min:
                continue
            if value >= cfg.factor_high_min:
                severity = Severity.HIGH
            elif value >= cfg.factor_medium_min:
                severity = Severity.MEDIUM
            else:
                severity = Severity.LOW
            indicators.append(
                FraudIndicator(
                    type=f"{name.upper()}_RISK",
                    severity=severity,
                    description=f"Elevated {name} risk factor",
                    weight=cfg.factor_weight,
                    evidence={"factor": name, "value": value},
                    source=IndicatorSource.SIGNAL,
                )
            )
        return indicators

    @staticmethod
    def rule_indicators(rules: list[TriggeredRule]) -> list[FraudIndicator]:
        return [
            FraudIndicator(
                type=f"RULE:{rule.name}",
                severity=rule.severity,
                description=rule.description or f"Rule {rule.name} triggered",
                weight=rule.weight,
                evidence={"rule_id": rule.rule_id, "version": rule.version, "rule_type": rule.rule_type},
                source=IndicatorSource.RULE,
            )
            for rule in rules
        ]

    def behavioral_indicators(self, behavioral: BehavioralAnalysis | None) -> list[FraudIndicator]:
        if behavioral is None:
            return []
        return [
            FraudIndicator(
                type="BEHAVIORAL_ANOMALY",
                severity=Severity.MEDIUM,
                description=anomaly.description,
                weight=self._config.indicators.behavioral_weight,
                evidence=anomaly.model_dump(mode="json"),
                source=IndicatorSource.BEHAVIORAL,
            )
            for anomaly in behavioral.anomalies
        ]

    def network_indicators(self, network: NetworkAnalysisResult | None) -> list[FraudIndicator]:
        if network is None:
            return []
        return [
            FraudIndicator(
                type=f"NETWORK_{pattern.value.upper()}",
                severity=Severity.HIGH,
                description=f"Suspicious network pattern: {pattern.value}",
                weight=self._config.indicators.network_weight,
                evidence={"analysis_id": network.analysis_id, "node_count": network.node_count},
                source=IndicatorSource.NETWORK,
            )
            for pattern in network.suspicious_patterns
        ]

    def model_indicators(self, predictions: list[ModelPrediction]) -> list[FraudIndicator]:
        threshold = self._config.indicators.model_flag_probability
        indicators = []
        for p in predictions:
            if p.indicator_weight <= 0 or p.probability < threshold:
                continue
            if p.probability >= 0.8:
                severity = Severity.HIGH
            elif p.probability >= 0.65:
                severity = Severity.MEDIUM
            else:
                severity = Severity.LOW
            indicators.append(
                FraudIndicator(
                    type=f"MODEL:{p.model_id}",
                    severity=severity,
                    description=f"Model {p.model_id} flagged the claim",
                    weight=p.indicator_weight,
                    evidence={"probability": p.probability, "confidence": p.confidence},
                    source=IndicatorSource.MODEL,
                )
            )
        return indicators
