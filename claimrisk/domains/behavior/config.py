"""Member behavioral profiling configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class ProfileConfig:
    """Per-member baseline parameters."""

    # Exponential moving average decay rate (alpha)
    ema_alpha: float = 0.2
    # Alpha multiplier applied when the observed value was itself anomalous
    outlier_alpha_factor: float = 0.5
    # Trailing window for the claim-frequency metric
    frequency_window_days: int = 30
    # Number of hours kept as baseline peaks
    peak_hour_count: int = 3
    # Minimum EMA weight for an hour to count as a peak
    peak_hour_min_weight: float = 0.1
    # Bounded list of processed claim ids kept on the profile
    max_processed_claims: int = 200


@dataclass
class AnomalyThresholds:
    stddev_multiplier: float = 2.0
    mean_fraction: float = 0.5
    diversity_growth: float = 0.5
    hour_tolerance: int = 2
    score_per_anomaly: float = 10.0


@dataclass
class ConfidenceSettings:
    cold_start: float = 0.2
    per_claim: float = 0.1
    maximum: float = 0.95


@dataclass
class BehaviorConfig:
    """Top-level behavioral profiling configuration."""

    profile: ProfileConfig = field(default_factory=ProfileConfig)
    anomaly: AnomalyThresholds = field(default_factory=AnomalyThresholds)
    confidence: ConfidenceSettings = field(default_factory=ConfidenceSettings)
    # Attempts for a profile write that hits a concurrent version conflict
    max_write_attempts: int = 3

    @classmethod
    def from_env(cls) -> "BehaviorConfig":
        """Load config with env var overrides. Env vars use BEHAVIOR_ prefix."""
        config = cls()

        if v := os.getenv("BEHAVIOR_EMA_ALPHA"):
            config.profile.ema_alpha = float(v)
        if v := os.getenv("BEHAVIOR_FREQUENCY_WINDOW_DAYS"):
            config.profile.frequency_window_days = int(v)
        if v := os.getenv("BEHAVIOR_STDDEV_MULTIPLIER"):
            config.anomaly.stddev_multiplier = float(v)
        if v := os.getenv("BEHAVIOR_HOUR_TOLERANCE"):
            config.anomaly.hour_tolerance = int(v)
        if v := os.getenv("BEHAVIOR_MAX_WRITE_ATTEMPTS"):
            config.max_write_attempts = int(v)

        return config


# Module-level default instance
default_config = BehaviorConfig()
