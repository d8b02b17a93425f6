"""Claim fraud evaluation pipeline.

factors -> patterns -> rules -> behavior -> (network | models) -> aggregate
-> persist assessment -> alert -> recommendations.

Optional collaborators (rule store, profile store, network analysis, model
ensemble) degrade independently: a failing step is logged, left out of the
score and listed in ``degraded_steps``. Persisting the assessment and the
alert are required writes and propagate their errors.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any, Awaitable, TypeVar

import structlog

from claimrisk.domains.behavior.models import BehavioralAnalysis
from claimrisk.domains.behavior.profiler import BehavioralProfiler
from claimrisk.domains.network.analyzer import NetworkAnalyzer
from claimrisk.domains.network.models import NetworkAnalysisResult

from .aggregator import RiskAggregator
from .alerts import AlertManager
from .analytics import FraudAnalytics, summarize
from .claims_client import ClaimsReader
from .config import FraudConfig, default_config
from .detectors import detect_patterns
from .ensemble import ModelEnsemble
from .errors import NotFoundError, ServiceUnavailableError
from .models import (
    AlertFilter,
    ClaimContext,
    EvaluationResult,
    FraudAlert,
    ModelPrediction,
    RiskAssessment,
    RiskLevel,
)
from .recommendations import build_action_items, build_recommendations
from .repositories import AssessmentRepository, InvestigationRepository, RuleRepository
from .rules import FraudRule, RuleCreate, RuleEvaluator, RuleUpdate
from .signals import compute_factors

logger = structlog.get_logger()

T = TypeVar("T")

UNUSUAL_FREQUENCY = "UNUSUAL_FREQUENCY"


class FraudEngine:
    def __init__(
        self,
        rules: RuleRepository,
        assessments: AssessmentRepository,
        alerts: AlertManager,
        profiler: BehavioralProfiler | None = None,
        network: NetworkAnalyzer | None = None,
        ensemble: ModelEnsemble | None = None,
        claims: ClaimsReader | None = None,
        investigations: InvestigationRepository | None = None,
        config: FraudConfig | None = None,
    ) -> None:
        self._rules = rules
        self._assessments = assessments
        self._alerts = alerts
        self._profiler = profiler
        self._network = network
        self._ensemble = ensemble
        self._claims = claims
        self._investigations = investigations
        self._config = config or default_config
        self._evaluator = RuleEvaluator()
        self._aggregator = RiskAggregator(self._config)

    # --- Evaluation ---

    async def evaluate_claim(self, context: ClaimContext) -> EvaluationResult:
        claim_id = context.claim_id
        degraded: list[str] = []
        log = logger.bind(claim_id=claim_id, member_id=context.member_id, provider_id=context.provider_id)

        # 1-2. Pure, local computation
        factors = compute_factors(context, self._config)
        patterns = detect_patterns(context, self._config)

        # 3. Rules
        rules: list[FraudRule] = await self._guard(self._rules.list_active_rules(), "rules", [], degraded, log)
        triggered = self._evaluator.evaluate(context, factors, rules)

        # 4. Behavior (serialized per member inside the profiler)
        behavioral: BehavioralAnalysis | None = None
        if self._profiler is not None:
            behavioral = await self._guard(
                self._profiler.analyze(context.member_id, context), "behavioral", None, degraded, log
            )

        # 5. Network and models concurrently
        network, predictions = await asyncio.gather(
            self._network_step(context, degraded, log),
            self._model_step(context, factors, degraded, log),
        )

        # 6. Aggregate
        aggregate = self._aggregator.score(
            factors,
            triggered,
            behavioral=behavioral,
            network=network,
            model_predictions=predictions,
            patterns=patterns,
        )
        evaluated_at = datetime.now(UTC)

        # 7. Persist assessment (latest wins per claim)
        await self._assessments.upsert(
            RiskAssessment(
                claim_id=claim_id,
                member_id=context.member_id,
                provider_id=context.provider_id,
                risk_score=aggregate.risk_score,
                risk_level=aggregate.risk_level,
                fraud_type=aggregate.fraud_type,
                factors=factors.as_dict(),
                indicators=[i.model_dump(mode="json") for i in aggregate.indicators],
                rule_violations=aggregate.rule_violations,
                model_confidence=aggregate.model_confidence,
                investigation_required=aggregate.investigation_required,
                evaluated_at=evaluated_at,
            )
        )

        # 8. Alert
        alert = await self._alerts.create_alert(context, aggregate)

        log.info(
            "claim_evaluated",
            risk_score=aggregate.risk_score,
            risk_level=aggregate.risk_level.value,
            fraud_type=aggregate.fraud_type.value,
            indicator_count=len(aggregate.indicators),
            rules_triggered=len(triggered),
            alert_id=alert.alert_id if alert else None,
            degraded_steps=degraded,
        )

        return EvaluationResult(
            claim_id=claim_id,
            risk_score=aggregate.risk_score,
            risk_level=aggregate.risk_level,
            fraud_type=aggregate.fraud_type,
            factors=factors,
            indicators=aggregate.indicators,
            triggered_rules=triggered,
            alerts=[alert] if alert else [],
            recommendations=build_recommendations(aggregate.risk_level, aggregate.indicators),
            action_items=build_action_items(
                aggregate.risk_level, aggregate.investigation_required, aggregate.fraud_type
            ),
            rule_violations=aggregate.rule_violations,
            model_confidence=aggregate.model_confidence,
            model_predictions=predictions,
            investigation_required=aggregate.investigation_required,
            degraded_steps=degraded,
            evaluated_at=evaluated_at,
        )

    async def evaluate_claim_by_id(self, claim_id: str, evaluated_at: datetime | None = None) -> EvaluationResult:
        """Load the claim and its context from the claims service, then evaluate."""
        context = await self.load_context(claim_id, evaluated_at)
        return await self.evaluate_claim(context)

    async def load_context(self, claim_id: str, evaluated_at: datetime | None = None) -> ClaimContext:
        claims = self._require_claims()
        claim = await claims.get_claim(claim_id)
        if claim is None:
            raise NotFoundError("claim", claim_id)

        member, provider, member_history, provider_history = await asyncio.gather(
            claims.get_member(claim.member_id),
            claims.get_provider(claim.provider_id),
            claims.get_member_history(claim.member_id),
            claims.get_provider_history(claim.provider_id),
        )
        if member is None:
            raise NotFoundError("member", claim.member_id)
        if provider is None:
            raise NotFoundError("provider", claim.provider_id)

        return ClaimContext(
            claim=claim,
            member=member,
            provider=provider,
            member_history=tuple(member_history),
            provider_history=tuple(provider_history),
            evaluated_at=evaluated_at,
        )

    async def _network_step(self, context: ClaimContext, degraded: list[str], log) -> NetworkAnalysisResult | None:
        if self._network is None:
            return None
        return await self._guard(self._network.analyze_connections(context), "network", None, degraded, log)

    async def _model_step(self, context: ClaimContext, factors, degraded: list[str], log) -> list[ModelPrediction]:
        if self._ensemble is None:
            return []
        return await self._guard(self._ensemble.predict(context, factors), "models", [], degraded, log)

    @staticmethod
    async def _guard(step: Awaitable[T], name: str, fallback: T, degraded: list[str], log) -> T:
        try:
            return await step
        except Exception:
            log.exception("evaluation_step_failed", step=name)
            degraded.append(name)
            return fallback

    # --- Alerts and rules ---

    async def get_alerts(self, alert_filter: AlertFilter | None = None) -> list[FraudAlert]:
        return await self._alerts.list_alerts(alert_filter)

    async def list_rules(self) -> list[FraudRule]:
        return await self._rules.list_rules()

    async def create_rule(self, rule: RuleCreate) -> FraudRule:
        created = await self._rules.create(rule)
        logger.info("fraud_rule_created", rule_id=created.rule_id, name=created.name)
        return created

    async def update_rule(self, rule_id: int, changes: RuleUpdate) -> FraudRule:
        updated = await self._rules.update(rule_id, changes)
        logger.info("fraud_rule_updated", rule_id=rule_id, version=updated.version)
        return updated

    # --- Monitoring and reporting ---

    async def monitor_member_patterns(
        self, member_id: str, window_hours: int | None = None, now: datetime | None = None
    ) -> FraudAlert | None:
        """Alert when a member files more claims than allowed within the window."""
        settings = self._config.alerts
        hours = window_hours or settings.monitor_window_hours
        now = now or datetime.now(UTC)
        since = now - timedelta(hours=hours)

        history = await self._require_claims().get_member_history(member_id, since)
        recent = [c for c in history if since <= c.claim_date <= now]

        if len(recent) <= settings.monitor_max_claims:
            logger.debug("member_monitor_clear", member_id=member_id, claim_count=len(recent))
            return None

        indicators: list[dict[str, Any]] = [
            {
                "type": UNUSUAL_FREQUENCY,
                "severity": "HIGH",
                "description": f"{len(recent)} claims in {hours} hours",
                "weight": 20,
                "evidence": {
                    "claim_ids": [c.id for c in recent],
                    "window_hours": hours,
                    "threshold": settings.monitor_max_claims,
                },
                "source": "pattern",
            }
        ]
        return await self._alerts.create_member_alert(
            member_id=member_id,
            alert_type=UNUSUAL_FREQUENCY,
            severity=RiskLevel.HIGH,
            risk_score=self._config.levels.high,
            description=f"Member {member_id} submitted {len(recent)} claims within {hours} hours",
            indicators=indicators,
        )

    async def fraud_analytics(self, since: datetime | None = None) -> FraudAnalytics:
        alerts = await self._alerts.alerts_since(since)
        investigations = await self._investigations.list_since(since) if self._investigations else []
        return summarize(alerts, investigations, since)

    def _require_claims(self) -> ClaimsReader:
        if self._claims is None:
            raise ServiceUnavailableError("No claims reader configured")
        return self._claims
