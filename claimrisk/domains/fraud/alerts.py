"""Fraud alert lifecycle: creation with deduplication, status transitions, notification."""

import uuid
from datetime import UTC, datetime
from typing import Any

import structlog

from claimrisk.shared.locks import KeyedLock

from .errors import InvalidTransitionError, NotFoundError
from .models import (
    AggregateResult,
    AlertFilter,
    AlertStatus,
    ClaimContext,
    FraudAlert,
    FraudType,
    RiskLevel,
)
from .notifications import NotificationDispatcher
from .repositories import AlertRepository

logger = structlog.get_logger()

ALERT_TRANSITIONS: dict[AlertStatus, set[AlertStatus]] = {
    AlertStatus.OPEN: {AlertStatus.INVESTIGATING, AlertStatus.ESCALATED},
    AlertStatus.INVESTIGATING: {AlertStatus.RESOLVED, AlertStatus.DISMISSED, AlertStatus.ESCALATED},
    AlertStatus.ESCALATED: {AlertStatus.INVESTIGATING, AlertStatus.RESOLVED, AlertStatus.DISMISSED},
    AlertStatus.RESOLVED: set(),  # terminal
    AlertStatus.DISMISSED: set(),  # terminal
}

# Process-wide so managers built per request still dedupe against each other
ALERT_LOCKS = KeyedLock()


def can_transition(current: AlertStatus, target: AlertStatus) -> bool:
    return target in ALERT_TRANSITIONS[current]


class AlertManager:
    def __init__(
        self,
        repository: AlertRepository,
        dispatcher: NotificationDispatcher | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._repository = repository
        self._dispatcher = dispatcher
        self._locks = locks or ALERT_LOCKS

    # --- Creation ---

    async def create_alert(self, context: ClaimContext, aggregate: AggregateResult) -> FraudAlert | None:
        """One alert per claim evaluation that requires investigation.

        While an alert for the claim is still open (OPEN, INVESTIGATING or
        ESCALATED) that alert is returned instead of creating another.
        """
        if not aggregate.investigation_required:
            return None

        return await self._create_deduplicated(
            lock_key=f"claim:{context.claim_id}",
            find={"claim_id": context.claim_id},
            build=lambda now: FraudAlert(
                alert_id=str(uuid.uuid4()),
                claim_id=context.claim_id,
                member_id=context.member_id,
                provider_id=context.provider_id,
                alert_type="claim_risk",
                severity=aggregate.risk_level,
                risk_score=aggregate.risk_score,
                fraud_type=aggregate.fraud_type,
                description=(
                    f"{aggregate.risk_level.value} fraud risk on claim {context.claim_id}"
                    f" ({aggregate.fraud_type.value})"
                ),
                indicators=[i.model_dump(mode="json") for i in aggregate.indicators],
                created_at=now,
                updated_at=now,
            ),
        )

    async def create_member_alert(
        self,
        member_id: str,
        alert_type: str,
        severity: RiskLevel,
        risk_score: float,
        description: str,
        indicators: list[dict[str, Any]] | None = None,
    ) -> FraudAlert:
        """Member-level alert (not tied to one claim), deduped per member and type."""
        alert = await self._create_deduplicated(
            lock_key=f"member:{member_id}:{alert_type}",
            find={"member_id": member_id, "alert_type": alert_type},
            build=lambda now: FraudAlert(
                alert_id=str(uuid.uuid4()),
                member_id=member_id,
                alert_type=alert_type,
                severity=severity,
                risk_score=risk_score,
                fraud_type=FraudType.NONE,
                description=description,
                indicators=indicators or [],
                created_at=now,
                updated_at=now,
            ),
        )
        return alert

    async def _create_deduplicated(self, lock_key: str, find: dict[str, str], build) -> FraudAlert:
        async with self._locks.hold(lock_key):
            existing = await self._repository.find_open(**find)
            if existing is not None:
                logger.info("alert_deduplicated", alert_id=existing.alert_id, **find)
                return existing

            alert = build(datetime.now(UTC))
            await self._repository.add(alert)

        logger.warning(
            "fraud_alert_created",
            alert_id=alert.alert_id,
            claim_id=alert.claim_id,
            member_id=alert.member_id,
            alert_type=alert.alert_type,
            severity=alert.severity.value,
            risk_score=alert.risk_score,
        )

        # After persistence; delivery failures never undo the alert
        if self._dispatcher is not None:
            self._dispatcher.dispatch(alert)
        return alert

    # --- Lookup ---

    async def get_alert(self, alert_id: str) -> FraudAlert:
        alert = await self._repository.get(alert_id)
        if alert is None:
            raise NotFoundError("alert", alert_id)
        return alert

    async def list_alerts(self, alert_filter: AlertFilter | None = None) -> list[FraudAlert]:
        alerts = await self._repository.list_alerts(alert_filter or AlertFilter())
        return sorted(alerts, key=lambda a: a.risk_score, reverse=True)

    async def alerts_since(self, since: datetime | None = None) -> list[FraudAlert]:
        return await self._repository.list_since(since)

    # --- Transitions ---

    async def update_alert_status(
        self,
        alert_id: str,
        status: AlertStatus,
        *,
        assigned_to: str | None = None,
        outcome: dict[str, Any] | None = None,
    ) -> FraudAlert:
        alert = await self.get_alert(alert_id)
        if not can_transition(alert.status, status):
            raise InvalidTransitionError("alert", alert.status.value, status.value)

        changes: dict[str, Any] = {"status": status, "updated_at": datetime.now(UTC)}
        if assigned_to is not None:
            changes["assigned_to"] = assigned_to
        if outcome is not None:
            changes["outcome"] = outcome
        updated = await self._repository.update(alert.model_copy(update=changes))

        logger.info(
            "alert_status_changed",
            alert_id=alert_id,
            from_status=alert.status.value,
            to_status=status.value,
        )
        return updated

    async def assign_alert(self, alert_id: str, assignee: str) -> FraudAlert:
        """Assign an investigator; moves OPEN and ESCALATED alerts to INVESTIGATING."""
        alert = await self.get_alert(alert_id)
        if alert.status == AlertStatus.INVESTIGATING:
            updated = await self._repository.update(
                alert.model_copy(update={"assigned_to": assignee, "updated_at": datetime.now(UTC)})
            )
            logger.info("alert_reassigned", alert_id=alert_id, assignee=assignee)
            return updated
        return await self.update_alert_status(alert_id, AlertStatus.INVESTIGATING, assigned_to=assignee)

    async def escalate_alert(self, alert_id: str, reason: str | None = None) -> FraudAlert:
        outcome = {"escalation_reason": reason} if reason else None
        return await self.update_alert_status(alert_id, AlertStatus.ESCALATED, outcome=outcome)
