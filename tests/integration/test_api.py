"""HTTP tests for the fraud API with in-memory stores behind the dependencies."""

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from claimrisk.api.deps import get_alert_manager, get_engine, get_investigation_manager
from claimrisk.domains.behavior.profiler import BehavioralProfiler
from claimrisk.domains.fraud.alerts import AlertManager
from claimrisk.domains.fraud.engine import FraudEngine
from claimrisk.domains.fraud.investigations import InvestigationManager
from claimrisk.main import app
from claimrisk.shared.locks import KeyedLock
from tests.conftest import (
    NOW,
    FakeClaimsReader,
    InMemoryAlertRepository,
    InMemoryAssessmentRepository,
    InMemoryInvestigationRepository,
    InMemoryProfileRepository,
    InMemoryRuleRepository,
    make_claim,
)

pytestmark = pytest.mark.integration


def _claim_payload(claim_id: str = "claim-1", amount: float = 500.0, **kwargs) -> dict:
    claim = {
        "id": claim_id,
        "amount": amount,
        "claim_date": NOW.isoformat(),
        "diagnosis_code": "J06.9",
        "description": "Office visit",
        "member_id": "member-1",
        "provider_id": "provider-1",
    }
    claim.update(kwargs)
    return claim


def _high_risk_context() -> dict:
    history = [
        _claim_payload(f"p-{i}", amount=a, member_id=f"m-{i}", claim_date=(NOW - timedelta(days=30 + i)).isoformat())
        for i, a in enumerate([90, 100, 110])
    ]
    return {
        "claim": _claim_payload(amount=300),
        "provider_history": history,
        "member": {"member_id": "member-1", "gender": "F", "date_of_birth": "1990-05-01T00:00:00"},
        "provider": {"provider_id": "provider-1", "approval_status": "approved"},
    }


@pytest.fixture
def wired():
    """Override the request-scoped dependencies with in-memory stores."""
    alert_repo = InMemoryAlertRepository()
    alerts = AlertManager(alert_repo, locks=KeyedLock())
    investigation_repo = InMemoryInvestigationRepository()
    investigations = InvestigationManager(investigation_repo, alerts)
    engine = FraudEngine(
        rules=InMemoryRuleRepository(),
        assessments=InMemoryAssessmentRepository(),
        alerts=alerts,
        profiler=BehavioralProfiler(InMemoryProfileRepository(), locks=KeyedLock()),
        claims=FakeClaimsReader(claims=[make_claim(f"b-{i}", claim_date=NOW - timedelta(hours=i)) for i in range(3)]),
        investigations=investigation_repo,
    )

    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_alert_manager] = lambda: alerts
    app.dependency_overrides[get_investigation_manager] = lambda: investigations
    yield alert_repo
    app.dependency_overrides.clear()


async def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestHealthEndpoints:
    @pytest.mark.asyncio
    async def test_health_endpoint(self):
        async with await _client() as client:
            response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "uptime_seconds" in data

    @pytest.mark.asyncio
    async def test_request_id_echoed(self):
        async with await _client() as client:
            response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestEvaluationEndpoints:
    @pytest.mark.asyncio
    async def test_evaluate_clean_claim(self, wired):
        async with await _client() as client:
            response = await client.post("/api/v1/fraud/evaluate", json={"claim": _claim_payload()})
        assert response.status_code == 200
        data = response.json()
        assert data["risk_level"] == "NONE"
        assert data["alerts"] == []
        assert set(data["factors"]) >= {"amount", "frequency", "temporal"}

    @pytest.mark.asyncio
    async def test_evaluate_high_risk_claim_creates_alert(self, wired):
        async with await _client() as client:
            response = await client.post("/api/v1/fraud/evaluate", json=_high_risk_context())
            alerts = await client.get("/api/v1/fraud/alerts", params={"min_severity": "HIGH"})

        assert response.status_code == 200
        assert response.json()["investigation_required"] is True
        assert len(alerts.json()) == 1
        assert alerts.json()[0]["claim_id"] == "claim-1"

    @pytest.mark.asyncio
    async def test_invalid_payload(self, wired):
        async with await _client() as client:
            response = await client.post("/api/v1/fraud/evaluate", json={"claim": {"id": "x", "amount": -5}})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_claim_is_404(self, wired):
        async with await _client() as client:
            response = await client.post("/api/v1/fraud/claims/missing/evaluate")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_claim_lookup_without_claims_service_is_503(self, wired):
        engine = FraudEngine(
            rules=InMemoryRuleRepository(),
            assessments=InMemoryAssessmentRepository(),
            alerts=AlertManager(wired, locks=KeyedLock()),
        )
        app.dependency_overrides[get_engine] = lambda: engine
        async with await _client() as client:
            evaluate = await client.post("/api/v1/fraud/claims/claim-1/evaluate")
            monitor = await client.post("/api/v1/fraud/members/member-1/monitor")
        assert evaluate.status_code == 503
        assert evaluate.json()["error"] == "service_unavailable"
        assert monitor.status_code == 503


class TestAlertWorkflow:
    @pytest.mark.asyncio
    async def test_investigation_round_trip(self, wired):
        async with await _client() as client:
            evaluated = await client.post("/api/v1/fraud/evaluate", json=_high_risk_context())
            alert_id = evaluated.json()["alerts"][0]["alert_id"]

            opened = await client.post(
                "/api/v1/fraud/investigations", json={"alert_id": alert_id, "assignee": "analyst-1"}
            )
            assert opened.status_code == 201
            investigation_id = opened.json()["investigation_id"]

            duplicate = await client.post("/api/v1/fraud/investigations", json={"alert_id": alert_id})
            assert duplicate.status_code == 400

            premature = await client.post(
                f"/api/v1/fraud/investigations/{investigation_id}/close", json={"fraud_confirmed": True}
            )
            assert premature.status_code == 400

            await client.post(f"/api/v1/fraud/investigations/{investigation_id}/start")
            finding = await client.post(
                f"/api/v1/fraud/investigations/{investigation_id}/findings",
                json={"description": "Amount far above provider norm"},
            )
            assert len(finding.json()["findings"]) == 1

            closed = await client.post(
                f"/api/v1/fraud/investigations/{investigation_id}/close",
                json={"fraud_confirmed": True, "fraud_type": "BILLING_FRAUD"},
            )
            assert closed.status_code == 200
            assert closed.json()["status"] == "RESOLVED"

        assert wired.alerts[alert_id].status == "RESOLVED"

    @pytest.mark.asyncio
    async def test_assign_unknown_alert(self, wired):
        async with await _client() as client:
            response = await client.post("/api/v1/fraud/alerts/nope/assign", json={"assignee": "a"})
        assert response.status_code == 404


class TestRulesAndReporting:
    @pytest.mark.asyncio
    async def test_create_and_update_rule(self, wired):
        async with await _client() as client:
            created = await client.post(
                "/api/v1/fraud/rules",
                json={"name": "big", "condition": {"field": "amount", "operator": "gt", "value": 5000}},
            )
            assert created.status_code == 201
            rule_id = created.json()["rule_id"]

            updated = await client.put(f"/api/v1/fraud/rules/{rule_id}", json={"weight": 30})
            rules = await client.get("/api/v1/fraud/rules")

        assert updated.json()["version"] == 2
        assert [r["weight"] for r in rules.json()] == [30]

    @pytest.mark.asyncio
    async def test_malformed_rule_rejected(self, wired):
        async with await _client() as client:
            response = await client.post(
                "/api/v1/fraud/rules", json={"name": "bad", "condition": {"kind": "field", "field": "amount"}}
            )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_monitor_and_analytics(self, wired):
        async with await _client() as client:
            monitored = await client.post("/api/v1/fraud/members/member-1/monitor")
            analytics = await client.get("/api/v1/fraud/analytics")

        assert monitored.status_code == 200
        assert monitored.json() == {"member_id": "member-1", "alert": None}
        assert analytics.json()["total_alerts"] == 0
