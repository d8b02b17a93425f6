"""Claim fraud evaluation, alert, rule and investigation endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from claimrisk.api.deps import get_alert_manager, get_engine, get_investigation_manager
from claimrisk.domains.fraud.alerts import AlertManager
from claimrisk.domains.fraud.analytics import FraudAnalytics
from claimrisk.domains.fraud.engine import FraudEngine
from claimrisk.domains.fraud.investigations import InvestigationManager
from claimrisk.domains.fraud.models import (
    AlertFilter,
    AlertStatus,
    ClaimContext,
    EvaluationResult,
    FraudAlert,
    FraudType,
    Investigation,
    RiskLevel,
)
from claimrisk.domains.fraud.rules import FraudRule, RuleCreate, RuleUpdate

router = APIRouter(prefix="/api/v1/fraud", tags=["fraud"])


# --- Request models ---


class AssignRequest(BaseModel):
    assignee: str = Field(min_length=1)


class EscalateRequest(BaseModel):
    reason: str | None = None


class InvestigationCreateRequest(BaseModel):
    alert_id: str
    assignee: str | None = None
    title: str | None = None


class FindingRequest(BaseModel):
    description: str = Field(min_length=1)
    finding_type: str = "evidence"
    evidence: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class InvestigationCloseRequest(BaseModel):
    fraud_confirmed: bool
    fraud_type: FraudType | None = None
    summary: str | None = None


class MonitorResponse(BaseModel):
    member_id: str
    alert: FraudAlert | None = None


# --- Evaluation ---


@router.post("/evaluate")
async def evaluate_claim(
    context: ClaimContext,
    engine: FraudEngine = Depends(get_engine),  # noqa: B008
) -> EvaluationResult:
    return await engine.evaluate_claim(context)


@router.post("/claims/{claim_id}/evaluate")
async def evaluate_claim_by_id(
    claim_id: str,
    engine: FraudEngine = Depends(get_engine),  # noqa: B008
) -> EvaluationResult:
    return await engine.evaluate_claim_by_id(claim_id)


# --- Alerts ---


@router.get("/alerts")
async def list_alerts(
    status: AlertStatus | None = Query(default=None, description="Filter by alert status"),
    min_severity: RiskLevel | None = Query(default=None, description="Minimum severity"),
    claim_id: str | None = Query(default=None),
    member_id: str | None = Query(default=None),
    provider_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    engine: FraudEngine = Depends(get_engine),  # noqa: B008
) -> list[FraudAlert]:
    alert_filter = AlertFilter(
        status=status,
        min_severity=min_severity,
        claim_id=claim_id,
        member_id=member_id,
        provider_id=provider_id,
        limit=limit,
        offset=offset,
    )
    return await engine.get_alerts(alert_filter)


@router.post("/alerts/{alert_id}/assign")
async def assign_alert(
    alert_id: str,
    body: AssignRequest,
    alerts: AlertManager = Depends(get_alert_manager),  # noqa: B008
) -> FraudAlert:
    return await alerts.assign_alert(alert_id, body.assignee)


@router.post("/alerts/{alert_id}/escalate")
async def escalate_alert(
    alert_id: str,
    body: EscalateRequest,
    alerts: AlertManager = Depends(get_alert_manager),  # noqa: B008
) -> FraudAlert:
    return await alerts.escalate_alert(alert_id, body.reason)


# --- Rules ---


@router.get("/rules")
async def list_rules(engine: FraudEngine = Depends(get_engine)) -> list[FraudRule]:  # noqa: B008
    return await engine.list_rules()


@router.post("/rules", status_code=201)
async def create_rule(
    body: RuleCreate,
    engine: FraudEngine = Depends(get_engine),  # noqa: B008
) -> FraudRule:
    return await engine.create_rule(body)


@router.put("/rules/{rule_id}")
async def update_rule(
    rule_id: int,
    body: RuleUpdate,
    engine: FraudEngine = Depends(get_engine),  # noqa: B008
) -> FraudRule:
    return await engine.update_rule(rule_id, body)


# --- Investigations ---


@router.post("/investigations", status_code=201)
async def open_investigation(
    body: InvestigationCreateRequest,
    investigations: InvestigationManager = Depends(get_investigation_manager),  # noqa: B008
) -> Investigation:
    return await investigations.open_investigation(body.alert_id, body.assignee, body.title)


@router.post("/investigations/{investigation_id}/start")
async def start_investigation(
    investigation_id: str,
    investigations: InvestigationManager = Depends(get_investigation_manager),  # noqa: B008
) -> Investigation:
    return await investigations.start_investigation(investigation_id)


@router.post("/investigations/{investigation_id}/escalate")
async def escalate_investigation(
    investigation_id: str,
    body: EscalateRequest,
    investigations: InvestigationManager = Depends(get_investigation_manager),  # noqa: B008
) -> Investigation:
    return await investigations.escalate_investigation(investigation_id, body.reason)


@router.post("/investigations/{investigation_id}/findings")
async def add_finding(
    investigation_id: str,
    body: FindingRequest,
    investigations: InvestigationManager = Depends(get_investigation_manager),  # noqa: B008
) -> Investigation:
    return await investigations.add_finding(
        investigation_id,
        body.description,
        finding_type=body.finding_type,
        evidence=body.evidence,
        confidence=body.confidence,
    )


@router.post("/investigations/{investigation_id}/close")
async def close_investigation(
    investigation_id: str,
    body: InvestigationCloseRequest,
    investigations: InvestigationManager = Depends(get_investigation_manager),  # noqa: B008
) -> Investigation:
    return await investigations.close_investigation(
        investigation_id, body.fraud_confirmed, body.fraud_type, body.summary
    )


# --- Monitoring and analytics ---


@router.post("/members/{member_id}/monitor")
async def monitor_member(
    member_id: str,
    window_hours: int | None = Query(default=None, ge=1, le=24 * 30),
    engine: FraudEngine = Depends(get_engine),  # noqa: B008
) -> MonitorResponse:
    alert = await engine.monitor_member_patterns(member_id, window_hours)
    return MonitorResponse(member_id=member_id, alert=alert)


@router.get("/analytics")
async def fraud_analytics(
    since: datetime | None = Query(default=None, description="Only alerts created from this time"),
    engine: FraudEngine = Depends(get_engine),  # noqa: B008
) -> FraudAnalytics:
    return await engine.fraud_analytics(since)
