"""Fraud analytics summary over alerts and closed investigations."""

from collections import Counter
from datetime import datetime

from pydantic import BaseModel, Field

from .models import AlertStatus, FraudAlert, FraudType, Investigation, InvestigationStatus


class FraudTypeCount(BaseModel):
    type: FraudType
    count: int
    percentage: float


class FraudAnalytics(BaseModel):
    since: datetime | None = None
    total_alerts: int = 0
    alerts_by_status: dict[str, int] = Field(default_factory=dict)
    alerts_by_severity: dict[str, int] = Field(default_factory=dict)
    average_risk_score: float = 0.0
    top_fraud_types: list[FraudTypeCount] = Field(default_factory=list)
    investigations_opened: int = 0
    investigations_closed: int = 0
    confirmed_fraud: int = 0
    false_positive_rate: float = 0.0
    resolution_rate: float = 0.0


def summarize(
    alerts: list[FraudAlert],
    investigations: list[Investigation],
    since: datetime | None = None,
    top_n: int = 5,
) -> FraudAnalytics:
    """Aggregate counts and rates.

    false_positive_rate is dismissed / (resolved + dismissed) alerts.
    resolution_rate is closed / opened investigations.
    """
    by_status = Counter(a.status.value for a in alerts)
    by_severity = Counter(a.severity.value for a in alerts)

    typed = Counter(a.fraud_type for a in alerts if a.fraud_type != FraudType.NONE)
    typed_total = sum(typed.values())
    top = [
        FraudTypeCount(type=t, count=n, percentage=round(100 * n / typed_total, 2))
        for t, n in sorted(typed.items(), key=lambda kv: (-kv[1], kv[0].value))[:top_n]
    ]

    resolved = by_status.get(AlertStatus.RESOLVED.value, 0)
    dismissed = by_status.get(AlertStatus.DISMISSED.value, 0)
    closed_alerts = resolved + dismissed

    closed = [i for i in investigations if i.status == InvestigationStatus.RESOLVED]
    confirmed = sum(1 for i in closed if i.fraud_confirmed)

    avg = sum(a.risk_score for a in alerts) / len(alerts) if alerts else 0.0

    return FraudAnalytics(
        since=since,
        total_alerts=len(alerts),
        alerts_by_status=dict(by_status),
        alerts_by_severity=dict(by_severity),
        average_risk_score=round(avg, 2),
        top_fraud_types=top,
        investigations_opened=len(investigations),
        investigations_closed=len(closed),
        confirmed_fraud=confirmed,
        false_positive_rate=round(dismissed / closed_alerts, 4) if closed_alerts else 0.0,
        resolution_rate=round(len(closed) / len(investigations), 4) if investigations else 0.0,
    )
