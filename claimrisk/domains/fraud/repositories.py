"""Storage interfaces for alerts, rules, investigations and assessments.

SQLAlchemy-backed implementations live in ``claimrisk.db.repositories``.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import AlertFilter, FraudAlert, Investigation, RiskAssessment
from .rules.models import FraudRule, RuleCreate, RuleUpdate


class AlertRepository(ABC):
    @abstractmethod
    async def add(self, alert: FraudAlert) -> FraudAlert:
        ...

    @abstractmethod
    async def get(self, alert_id: str) -> FraudAlert | None:
        ...

    @abstractmethod
    async def update(self, alert: FraudAlert) -> FraudAlert:
        ...

    @abstractmethod
    async def find_open(
        self,
        *,
        claim_id: str | None = None,
        member_id: str | None = None,
        alert_type: str | None = None,
    ) -> FraudAlert | None:
        """An alert in OPEN, INVESTIGATING or ESCALATED matching every given key."""
        ...

    @abstractmethod
    async def list_alerts(self, alert_filter: AlertFilter) -> list[FraudAlert]:
        """Alerts matching the filter, highest risk score first."""
        ...

    @abstractmethod
    async def list_since(self, since: datetime | None = None) -> list[FraudAlert]:
        ...


class RuleRepository(ABC):
    @abstractmethod
    async def list_active_rules(self) -> list[FraudRule]:
        ...

    @abstractmethod
    async def list_rules(self) -> list[FraudRule]:
        ...

    @abstractmethod
    async def get(self, rule_id: int) -> FraudRule | None:
        ...

    @abstractmethod
    async def create(self, rule: RuleCreate) -> FraudRule:
        ...

    @abstractmethod
    async def update(self, rule_id: int, changes: RuleUpdate) -> FraudRule:
        """Apply a partial update and bump the version. NotFoundError if missing."""
        ...


class InvestigationRepository(ABC):
    @abstractmethod
    async def add(self, investigation: Investigation) -> Investigation:
        ...

    @abstractmethod
    async def get(self, investigation_id: str) -> Investigation | None:
        ...

    @abstractmethod
    async def update(self, investigation: Investigation) -> Investigation:
        ...

    @abstractmethod
    async def find_active_for_alert(self, alert_id: str) -> Investigation | None:
        ...

    @abstractmethod
    async def list_since(self, since: datetime | None = None) -> list[Investigation]:
        ...


class AssessmentRepository(ABC):
    @abstractmethod
    async def upsert(self, assessment: RiskAssessment) -> None:
        """Store the latest assessment for a claim, replacing any previous one."""
        ...

    @abstractmethod
    async def get(self, claim_id: str) -> RiskAssessment | None:
        ...
