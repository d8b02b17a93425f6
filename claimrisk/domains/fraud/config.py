"""Fraud engine configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class AmountThresholds:
    # Ratio of claim amount to provider average where risk starts / saturates
    ratio_floor: float = 2.0
    ratio_high: float = 3.0
    ratio_max: float = 5.0
    stddev_multiplier: float = 2.0
    stddev_bonus: float = 20.0
    unusually_high_ratio: float = 3.0
    global_provider_average: float = 1000.0
    outlier_provider_ratio: float = 2.0
    compliance_limit: float = 50_000.0


@dataclass
class FrequencyThresholds:
    window_days: int = 30
    provider_quiet_count: int = 10
    provider_high_volume: int = 20
    member_monthly_max: int = 5
    member_bonus: float = 20.0


@dataclass
class ProviderThresholds:
    high_risk_specialties: tuple[str, ...] = (
        "pain_management",
        "chiropractic",
        "physical_therapy",
        "mental_health",
    )
    new_provider_days: int = 180
    specialty_score: float = 30.0
    new_provider_score: float = 30.0
    unapproved_score: float = 40.0


@dataclass
class ClinicalThresholds:
    routine_exam_codes: tuple[str, ...] = ("Z00.0", "Z00.00", "Z00.01", "Z00.1")
    high_risk_procedures: tuple[str, ...] = ("surgery", "imaging", "laboratory")
    pregnancy_keywords: tuple[str, ...] = ("pregnancy", "prenatal", "obstetric")
    pregnancy_min_age: int = 15
    pregnancy_max_age: int = 55
    consultation_cost_max: float = 10_000.0
    upcoding_amount: float = 2_000.0
    unbundling_amount: float = 1_000.0


@dataclass
class TemporalThresholds:
    weekly_interval_seconds: int = 7 * 24 * 3600
    interval_tolerance_seconds: int = 60
    regular_interval_min_repeats: int = 2
    weekend_score: float = 40.0
    holiday_score: float = 40.0
    regular_interval_score: float = 50.0
    same_day_score: float = 20.0
    # (month, day) fixed-date holidays
    holidays: tuple[tuple[int, int], ...] = ((1, 1), (7, 4), (12, 25))


@dataclass
class MemberThresholds:
    excessive_window_days: int = 90
    excessive_claims: int = 15
    excessive_score: float = 60.0
    provider_shopping_count: int = 10
    provider_shopping_score: float = 40.0
    duplicate_window_days: int = 7
    region_spread: int = 3


@dataclass
class IndicatorSettings:
    factor_indicator_min: float = 40.0
    factor_medium_min: float = 50.0
    factor_high_min: float = 70.0
    factor_weight: float = 10.0
    behavioral_weight: float = 5.0
    network_weight: float = 15.0
    model_flag_probability: float = 0.5


@dataclass
class RiskLevelThresholds:
    critical: float = 85.0
    high: float = 70.0
    medium: float = 40.0


@dataclass
class AlertSettings:
    monitor_window_hours: int = 24
    monitor_max_claims: int = 5
    kafka_topic: str = "claimrisk.fraud.alerts"


@dataclass
class ModelEndpoint:
    model_id: str
    url: str
    # 0 keeps the model advisory; > 0 lets a flagged prediction become an indicator
    indicator_weight: float = 0.0


@dataclass
class EnsembleConfig:
    timeout_seconds: float = 2.0
    models: list[ModelEndpoint] = field(default_factory=list)

    @staticmethod
    def parse_endpoints(raw: str) -> list[ModelEndpoint]:
        """Parse ``id=url[@weight]`` entries separated by commas."""
        endpoints = []
        for entry in raw.split(","):
            entry = entry.strip()
            if not entry:
                continue
            model_id, _, rest = entry.partition("=")
            url, _, weight = rest.rpartition("@") if "@" in rest else (rest, "", "")
            endpoints.append(
                ModelEndpoint(
                    model_id=model_id.strip(),
                    url=url.strip(),
                    indicator_weight=float(weight) if weight else 0.0,
                )
            )
        return endpoints


@dataclass
class FraudConfig:
    amount: AmountThresholds = field(default_factory=AmountThresholds)
    frequency: FrequencyThresholds = field(default_factory=FrequencyThresholds)
    provider: ProviderThresholds = field(default_factory=ProviderThresholds)
    clinical: ClinicalThresholds = field(default_factory=ClinicalThresholds)
    temporal: TemporalThresholds = field(default_factory=TemporalThresholds)
    member: MemberThresholds = field(default_factory=MemberThresholds)
    indicators: IndicatorSettings = field(default_factory=IndicatorSettings)
    levels: RiskLevelThresholds = field(default_factory=RiskLevelThresholds)
    alerts: AlertSettings = field(default_factory=AlertSettings)
    ensemble: EnsembleConfig = field(default_factory=EnsembleConfig)

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        if v := os.getenv("FRAUD_PROVIDER_HIGH_VOLUME"):
            config.frequency.provider_high_volume = int(v)
        if v := os.getenv("FRAUD_MEMBER_MONTHLY_MAX"):
            config.frequency.member_monthly_max = int(v)
        if v := os.getenv("FRAUD_COMPLIANCE_LIMIT"):
            config.amount.compliance_limit = float(v)
        if v := os.getenv("FRAUD_DUPLICATE_WINDOW_DAYS"):
            config.member.duplicate_window_days = int(v)

        if v := os.getenv("FRAUD_CRITICAL_THRESHOLD"):
            config.levels.critical = float(v)
        if v := os.getenv("FRAUD_HIGH_THRESHOLD"):
            config.levels.high = float(v)
        if v := os.getenv("FRAUD_MEDIUM_THRESHOLD"):
            config.levels.medium = float(v)

        if v := os.getenv("FRAUD_MONITOR_MAX_CLAIMS"):
            config.alerts.monitor_max_claims = int(v)
        if v := os.getenv("FRAUD_ALERT_KAFKA_TOPIC"):
            config.alerts.kafka_topic = v

        if v := os.getenv("FRAUD_MODEL_TIMEOUT_SECONDS"):
            config.ensemble.timeout_seconds = float(v)
        if v := os.getenv("FRAUD_MODEL_ENDPOINTS"):
            config.ensemble.models = EnsembleConfig.parse_endpoints(v)

        return config


# Module-level default instance
default_config = FraudConfig()
