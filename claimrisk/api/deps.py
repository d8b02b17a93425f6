"""FastAPI dependency providers.

Process-wide collaborators (notification dispatcher, model ensemble, claims
reader) live in ``services`` and are set up by the application lifespan.
Repositories and managers are built per request around the request session.
"""

from dataclasses import dataclass, field

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from claimrisk.db.database import get_session
from claimrisk.db.repositories import (
    SqlAlertRepository,
    SqlAssessmentRepository,
    SqlInvestigationRepository,
    SqlNetworkAnalysisRepository,
    SqlProfileRepository,
    SqlRuleRepository,
)
from claimrisk.domains.behavior.config import BehaviorConfig
from claimrisk.domains.behavior.profiler import BehavioralProfiler
from claimrisk.domains.fraud.alerts import AlertManager
from claimrisk.domains.fraud.claims_client import ClaimsReader
from claimrisk.domains.fraud.config import FraudConfig
from claimrisk.domains.fraud.engine import FraudEngine
from claimrisk.domains.fraud.ensemble import ModelEnsemble
from claimrisk.domains.fraud.investigations import InvestigationManager
from claimrisk.domains.fraud.notifications import NotificationDispatcher
from claimrisk.domains.network.analyzer import NetworkAnalyzer
from claimrisk.domains.network.config import NetworkConfig


@dataclass
class Services:
    fraud_config: FraudConfig = field(default_factory=FraudConfig)
    behavior_config: BehaviorConfig = field(default_factory=BehaviorConfig)
    network_config: NetworkConfig = field(default_factory=NetworkConfig)
    dispatcher: NotificationDispatcher = field(default_factory=NotificationDispatcher)
    ensemble: ModelEnsemble = field(default_factory=lambda: ModelEnsemble(None))
    claims: ClaimsReader | None = None


services = Services()


def get_services() -> Services:
    return services


def get_alert_manager(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    svc: Services = Depends(get_services),  # noqa: B008
) -> AlertManager:
    return AlertManager(SqlAlertRepository(session), svc.dispatcher)


def get_investigation_manager(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    alerts: AlertManager = Depends(get_alert_manager),  # noqa: B008
) -> InvestigationManager:
    return InvestigationManager(SqlInvestigationRepository(session), alerts)


def get_engine(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    alerts: AlertManager = Depends(get_alert_manager),  # noqa: B008
    svc: Services = Depends(get_services),  # noqa: B008
) -> FraudEngine:
    return FraudEngine(
        rules=SqlRuleRepository(session),
        assessments=SqlAssessmentRepository(session),
        alerts=alerts,
        profiler=BehavioralProfiler(SqlProfileRepository(session), svc.behavior_config),
        network=NetworkAnalyzer(SqlNetworkAnalysisRepository(session), svc.network_config),
        ensemble=svc.ensemble,
        claims=svc.claims,
        investigations=SqlInvestigationRepository(session),
        config=svc.fraud_config,
    )
