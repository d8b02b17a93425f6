"""Pydantic models for the claim fraud domain."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

FACTOR_NAMES: tuple[str, ...] = (
    "frequency",
    "amount",
    "provider",
    "diagnosis",
    "geographic",
    "temporal",
    "behavioral",
)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so history windows compare cleanly."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class Severity(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


SEVERITY_MULTIPLIERS: dict[Severity, float] = {
    Severity.HIGH: 1.0,
    Severity.MEDIUM: 0.7,
    Severity.LOW: 0.4,
}


class RiskLevel(StrEnum):
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank


_LEVEL_ORDER = [RiskLevel.NONE, RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class FraudType(StrEnum):
    NONE = "NONE"
    BILLING_FRAUD = "BILLING_FRAUD"
    DUPLICATE = "DUPLICATE"
    UNBUNDLING = "UNBUNDLING"
    # Kept for record compatibility, never produced by the classifier
    UPSELLING = "UPSELLING"
    KICKBACKS = "KICKBACKS"
    PHANTOM_BILLING = "PHANTOM_BILLING"


class IndicatorSource(StrEnum):
    SIGNAL = "signal"
    PATTERN = "pattern"
    RULE = "rule"
    BEHAVIORAL = "behavioral"
    NETWORK = "network"
    MODEL = "model"


class AlertStatus(StrEnum):
    OPEN = "OPEN"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"
    ESCALATED = "ESCALATED"


OPEN_ALERT_STATUSES: frozenset[AlertStatus] = frozenset(
    {AlertStatus.OPEN, AlertStatus.INVESTIGATING, AlertStatus.ESCALATED}
)


class InvestigationStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"


ACTIVE_INVESTIGATION_STATUSES: frozenset[InvestigationStatus] = frozenset(
    {InvestigationStatus.PENDING, InvestigationStatus.IN_PROGRESS, InvestigationStatus.ESCALATED}
)


class RuleStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# --- Claim input ---


class ClaimRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    amount: float = Field(ge=0)
    claim_date: datetime
    service_date: datetime | None = None
    diagnosis_code: str = ""
    description: str = ""
    member_id: str
    provider_id: str
    provider_region: str | None = None

    @field_validator("claim_date", "service_date")
    @classmethod
    def _utc_dates(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class MemberInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    member_id: str
    gender: str | None = None
    date_of_birth: datetime | None = None

    @field_validator("date_of_birth")
    @classmethod
    def _utc_dob(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class ProviderInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider_id: str
    provider_type: str = ""
    approval_status: str | None = None
    created_at: datetime | None = None
    region: str | None = None

    @field_validator("created_at")
    @classmethod
    def _utc_created(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class ClaimContext(BaseModel):
    """Everything one evaluation is allowed to look at.

    ``evaluated_at`` is the single reference "now" for every recency window
    so that re-evaluating the same context is deterministic.
    """

    model_config = ConfigDict(frozen=True)

    claim: ClaimRecord
    member_history: tuple[ClaimRecord, ...] = ()
    provider_history: tuple[ClaimRecord, ...] = ()
    member: MemberInfo | None = None
    provider: ProviderInfo | None = None
    evaluated_at: datetime | None = None

    @field_validator("evaluated_at")
    @classmethod
    def _utc_evaluated(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    @property
    def claim_id(self) -> str:
        return self.claim.id

    @property
    def member_id(self) -> str:
        return self.claim.member_id

    @property
    def provider_id(self) -> str:
        return self.claim.provider_id

    @property
    def now(self) -> datetime:
        return self.evaluated_at or self.claim.claim_date

    def prior_member_claims(self) -> list[ClaimRecord]:
        """Member history sorted by date, excluding the claim under evaluation."""
        return sorted(
            (c for c in self.member_history if c.id != self.claim.id),
            key=lambda c: c.claim_date,
        )

    def prior_provider_claims(self) -> list[ClaimRecord]:
        return sorted(
            (c for c in self.provider_history if c.id != self.claim.id),
            key=lambda c: c.claim_date,
        )


# --- Scoring primitives ---


class RiskFactorSet(BaseModel):
    frequency: float = Field(default=0.0, ge=0, le=100)
    amount: float = Field(default=0.0, ge=0, le=100)
    provider: float = Field(default=0.0, ge=0, le=100)
    diagnosis: float = Field(default=0.0, ge=0, le=100)
    geographic: float = Field(default=0.0, ge=0, le=100)
    temporal: float = Field(default=0.0, ge=0, le=100)
    behavioral: float = Field(default=0.0, ge=0, le=100)

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in FACTOR_NAMES}


class FraudIndicator(BaseModel):
    type: str
    severity: Severity
    description: str
    weight: float = Field(gt=0)
    evidence: dict[str, Any] = Field(default_factory=dict)
    source: IndicatorSource = IndicatorSource.PATTERN


class TriggeredRule(BaseModel):
    rule_id: int
    name: str
    rule_type: str = ""
    severity: Severity
    weight: float
    priority: int = 0
    version: int = 1
    description: str = ""


class ModelPrediction(BaseModel):
    model_id: str
    probability: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    indicator_weight: float = 0.0


class AggregateResult(BaseModel):
    risk_score: float = Field(ge=0, le=100)
    risk_level: RiskLevel
    fraud_type: FraudType
    indicators: list[FraudIndicator] = Field(default_factory=list)
    investigation_required: bool = False
    model_confidence: float | None = None
    rule_violations: list[str] = Field(default_factory=list)


# --- Alerts & investigations ---


class FraudAlert(BaseModel):
    alert_id: str
    claim_id: str | None = None
    member_id: str | None = None
    provider_id: str | None = None
    alert_type: str = "claim_risk"
    severity: RiskLevel
    status: AlertStatus = AlertStatus.OPEN
    risk_score: float = Field(ge=0, le=100)
    fraud_type: FraudType = FraudType.NONE
    description: str = ""
    indicators: list[dict[str, Any]] = Field(default_factory=list)
    assigned_to: str | None = None
    outcome: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime


class AlertFilter(BaseModel):
    status: AlertStatus | None = None
    min_severity: RiskLevel | None = None
    claim_id: str | None = None
    member_id: str | None = None
    provider_id: str | None = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class InvestigationFinding(BaseModel):
    finding_type: str = "evidence"
    description: str
    evidence: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Investigation(BaseModel):
    investigation_id: str
    alert_id: str
    title: str = ""
    status: InvestigationStatus = InvestigationStatus.PENDING
    assignee: str | None = None
    findings: list[InvestigationFinding] = Field(default_factory=list)
    fraud_confirmed: bool | None = None
    fraud_type: FraudType | None = None
    created_at: datetime
    completed_at: datetime | None = None


class RiskAssessment(BaseModel):
    claim_id: str
    member_id: str
    provider_id: str
    risk_score: float = Field(ge=0, le=100)
    risk_level: RiskLevel
    fraud_type: FraudType
    factors: dict[str, float] = Field(default_factory=dict)
    indicators: list[dict[str, Any]] = Field(default_factory=list)
    rule_violations: list[str] = Field(default_factory=list)
    model_confidence: float | None = None
    investigation_required: bool = False
    evaluated_at: datetime


class EvaluationResult(BaseModel):
    claim_id: str
    risk_score: float = Field(ge=0, le=100)
    risk_level: RiskLevel
    fraud_type: FraudType
    factors: RiskFactorSet
    indicators: list[FraudIndicator] = Field(default_factory=list)
    triggered_rules: list[TriggeredRule] = Field(default_factory=list)
    alerts: list[FraudAlert] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)
    rule_violations: list[str] = Field(default_factory=list)
    model_confidence: float | None = None
    model_predictions: list[ModelPrediction] = Field(default_factory=list)
    investigation_required: bool = False
    # Steps that failed and were left out of the score
    degraded_steps: list[str] = Field(default_factory=list)
    evaluated_at: datetime
