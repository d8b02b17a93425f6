"""Pydantic models for member behavioral profiling."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class BehaviorMetric(StrEnum):
    CLAIM_FREQUENCY = "claim_frequency"
    CLAIM_AMOUNT = "claim_amount"
    PROVIDER_DIVERSITY = "provider_diversity"
    CLAIM_HOUR = "claim_hour"


# --- Baseline Models ---


class MetricBaseline(BaseModel):
    mean: float = 0.0
    std: float = 0.0


class ProfileBaseline(BaseModel):
    claim_frequency: MetricBaseline = Field(default_factory=MetricBaseline)
    claim_amount: MetricBaseline = Field(default_factory=MetricBaseline)
    provider_diversity: MetricBaseline = Field(default_factory=MetricBaseline)
    hour_weights: dict[int, float] = Field(default_factory=dict)  # hour -> EMA weight


class ClaimMetrics(BaseModel):
    """Metrics observed for one claim."""

    claim_frequency: float = 0.0  # claims in the trailing window, current included
    claim_amount: float = 0.0
    provider_diversity: float = 0.0  # distinct providers, current included
    claim_hour: int = 0


class BehavioralAnomaly(BaseModel):
    metric: BehaviorMetric
    observed: float
    expected: float
    deviation: float
    description: str


# --- Profile ---


class BehavioralProfile(BaseModel):
    member_id: str
    baseline_metrics: ProfileBaseline = Field(default_factory=ProfileBaseline)
    current_metrics: ClaimMetrics = Field(default_factory=ClaimMetrics)
    anomalies: list[BehavioralAnomaly] = Field(default_factory=list)
    risk_score: float = Field(default=0.0, ge=0, le=100)
    confidence: float = Field(default=0.0, ge=0, le=1)
    claim_count: int = 0
    last_claim_id: str | None = None
    processed_claim_ids: list[str] = Field(default_factory=list)
    version: int = 0
    last_updated: datetime | None = None


class BehavioralAnalysis(BaseModel):
    member_id: str
    profile: BehavioralProfile
    anomalies: list[BehavioralAnomaly] = Field(default_factory=list)
    risk_score: float = Field(default=0.0, ge=0, le=100)
    cold_start: bool = False
