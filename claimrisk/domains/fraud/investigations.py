"""Investigation lifecycle for fraud alerts.

An alert has at most one active investigation (PENDING, IN_PROGRESS or
ESCALATED). Closing an investigation resolves its alert when fraud was
confirmed and dismisses it otherwise.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

import structlog

from claimrisk.shared.locks import KeyedLock

from .alerts import AlertManager, can_transition
from .errors import ActiveInvestigationExistsError, InvalidTransitionError, NotFoundError
from .models import (
    AlertStatus,
    FraudType,
    Investigation,
    InvestigationFinding,
    InvestigationStatus,
)
from .repositories import InvestigationRepository

logger = structlog.get_logger()

INVESTIGATION_TRANSITIONS: dict[InvestigationStatus, set[InvestigationStatus]] = {
    InvestigationStatus.PENDING: {InvestigationStatus.IN_PROGRESS, InvestigationStatus.ESCALATED},
    InvestigationStatus.IN_PROGRESS: {InvestigationStatus.RESOLVED, InvestigationStatus.ESCALATED},
    InvestigationStatus.ESCALATED: {InvestigationStatus.IN_PROGRESS, InvestigationStatus.RESOLVED},
    InvestigationStatus.RESOLVED: set(),
}

_OPENABLE_ALERT_STATUSES = frozenset({AlertStatus.OPEN, AlertStatus.INVESTIGATING})

# Process-wide so managers built per request see each other's opens
INVESTIGATION_LOCKS = KeyedLock()


class InvestigationManager:
    def __init__(
        self,
        repository: InvestigationRepository,
        alerts: AlertManager,
        locks: KeyedLock | None = None,
    ) -> None:
        self._repository = repository
        self._alerts = alerts
        self._locks = locks or INVESTIGATION_LOCKS

    async def get_investigation(self, investigation_id: str) -> Investigation:
        investigation = await self._repository.get(investigation_id)
        if investigation is None:
            raise NotFoundError("investigation", investigation_id)
        return investigation

    async def open_investigation(
        self, alert_id: str, assignee: str | None = None, title: str | None = None
    ) -> Investigation:
        async with self._locks.hold(f"alert:{alert_id}"):
            alert = await self._alerts.get_alert(alert_id)
            if alert.status not in _OPENABLE_ALERT_STATUSES:
                raise InvalidTransitionError("alert", alert.status.value, "investigation")

            active = await self._repository.find_active_for_alert(alert_id)
            if active is not None:
                raise ActiveInvestigationExistsError(alert_id, active.investigation_id)

            if alert.status == AlertStatus.OPEN:
                await self._alerts.update_alert_status(
                    alert_id, AlertStatus.INVESTIGATING, assigned_to=assignee
                )

            investigation = Investigation(
                investigation_id=str(uuid.uuid4()),
                alert_id=alert_id,
                title=title or f"Investigation of alert {alert_id}",
                assignee=assignee or alert.assigned_to,
                created_at=datetime.now(UTC),
            )
            await self._repository.add(investigation)

        logger.info(
            "investigation_opened",
            investigation_id=investigation.investigation_id,
            alert_id=alert_id,
            assignee=investigation.assignee,
        )
        return investigation

    async def start_investigation(self, investigation_id: str) -> Investigation:
        return await self._transition(investigation_id, InvestigationStatus.IN_PROGRESS)

    async def escalate_investigation(self, investigation_id: str, reason: str | None = None) -> Investigation:
        investigation = await self._transition(investigation_id, InvestigationStatus.ESCALATED)
        alert = await self._alerts.get_alert(investigation.alert_id)
        if alert.status != AlertStatus.ESCALATED:
            await self._alerts.escalate_alert(investigation.alert_id, reason)
        return investigation

    async def add_finding(
        self,
        investigation_id: str,
        description: str,
        *,
        finding_type: str = "evidence",
        evidence: dict[str, Any] | None = None,
        confidence: float = 0.5,
    ) -> Investigation:
        investigation = await self.get_investigation(investigation_id)
        if investigation.status == InvestigationStatus.RESOLVED:
            raise InvalidTransitionError("investigation", investigation.status.value, "add_finding")

        finding = InvestigationFinding(
            finding_type=finding_type,
            description=description,
            evidence=evidence or {},
            confidence=confidence,
        )
        updated = await self._repository.update(
            investigation.model_copy(update={"findings": [*investigation.findings, finding]})
        )
        logger.info(
            "investigation_finding_added",
            investigation_id=investigation_id,
            finding_type=finding_type,
            finding_count=len(updated.findings),
        )
        return updated

    async def close_investigation(
        self,
        investigation_id: str,
        fraud_confirmed: bool,
        fraud_type: FraudType | None = None,
        summary: str | None = None,
    ) -> Investigation:
        investigation = await self.get_investigation(investigation_id)
        self._check(investigation, InvestigationStatus.RESOLVED)

        target = AlertStatus.RESOLVED if fraud_confirmed else AlertStatus.DISMISSED
        alert = await self._alerts.get_alert(investigation.alert_id)
        # Validate the alert side before anything is written
        if not can_transition(alert.status, target):
            raise InvalidTransitionError("alert", alert.status.value, target.value)

        closed = await self._repository.update(
            investigation.model_copy(
                update={
                    "status": InvestigationStatus.RESOLVED,
                    "fraud_confirmed": fraud_confirmed,
                    "fraud_type": fraud_type,
                    "completed_at": datetime.now(UTC),
                }
            )
        )

        outcome = {
            "investigation_id": investigation_id,
            "fraud_confirmed": fraud_confirmed,
            "fraud_type": fraud_type.value if fraud_type else None,
            "summary": summary,
            "finding_count": len(closed.findings),
        }
        await self._alerts.update_alert_status(investigation.alert_id, target, outcome=outcome)

        logger.info(
            "investigation_closed",
            investigation_id=investigation_id,
            alert_id=investigation.alert_id,
            fraud_confirmed=fraud_confirmed,
        )
        return closed

    async def _transition(self, investigation_id: str, target: InvestigationStatus) -> Investigation:
        investigation = await self.get_investigation(investigation_id)
        self._check(investigation, target)
        updated = await self._repository.update(investigation.model_copy(update={"status": target}))
        logger.info(
            "investigation_status_changed",
            investigation_id=investigation_id,
            from_status=investigation.status.value,
            to_status=target.value,
        )
        return updated

    @staticmethod
    def _check(investigation: Investigation, target: InvestigationStatus) -> None:
        if target not in INVESTIGATION_TRANSITIONS[investigation.status]:
            raise InvalidTransitionError("investigation", investigation.status.value, target.value)
