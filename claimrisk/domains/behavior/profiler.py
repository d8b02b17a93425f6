"""Per-member behavioral profiling.

Keeps a baseline of each member's claiming behavior (claim frequency, claim
amount, provider diversity and the hours at which they claim) and flags a
claim whose metrics deviate from it. Baselines adapt via exponential moving
averages so a single outlier never replaces the baseline.
"""

from abc import ABC, abstractmethod
from datetime import timedelta

import structlog

from claimrisk.domains.fraud.errors import ProfileConflictError
from claimrisk.domains.fraud.models import ClaimContext
from claimrisk.shared.locks import KeyedLock

from .config import BehaviorConfig, default_config
from .models import (
    BehavioralAnalysis,
    BehavioralAnomaly,
    BehavioralProfile,
    BehaviorMetric,
    ClaimMetrics,
    MetricBaseline,
    ProfileBaseline,
)

logger = structlog.get_logger()

# Process-wide so profilers built per request still serialize per member
PROFILE_LOCKS = KeyedLock()


class ProfileRepository(ABC):
    """Storage for behavioral profiles keyed by member id."""

    @abstractmethod
    async def get(self, member_id: str) -> BehavioralProfile | None:
        ...

    @abstractmethod
    async def save(self, profile: BehavioralProfile, expected_version: int) -> BehavioralProfile:
        """Write the profile if the stored version still equals ``expected_version``.

        Returns the stored profile with its version incremented. Raises
        ProfileConflictError when another writer got there first.
        """
        ...


def hour_distance(a: int, b: int) -> int:
    """Distance between two hours of the day, wrapping at midnight."""
    diff = abs(a - b) % 24
    return min(diff, 24 - diff)


class BehavioralProfiler:
    """Builds, updates and compares member behavioral baselines."""

    def __init__(
        self,
        repository: ProfileRepository,
        config: BehaviorConfig | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or default_config
        self._locks = locks or PROFILE_LOCKS

    async def analyze(self, member_id: str, context: ClaimContext) -> BehavioralAnalysis:
        """Compare the claim against the member baseline and fold it in.

        Read-modify-write of one member's profile is serialized by a per-member
        lock. Version conflicts from the store are retried; if every attempt
        conflicts the analysis is still returned, unpersisted.
        """
        attempts = self._config.max_write_attempts

        async with self._locks.hold(member_id):
            analysis = None
            for attempt in range(1, attempts + 1):
                stored = await self._repository.get(member_id)
                analysis, updated = self._apply(member_id, stored, context)
                if updated is None:
                    return analysis

                try:
                    saved = await self._repository.save(
                        updated, expected_version=stored.version if stored else 0
                    )
                except ProfileConflictError:
                    logger.warning(
                        "profile_write_conflict",
                        member_id=member_id,
                        claim_id=context.claim_id,
                        attempt=attempt,
                    )
                    continue

                logger.info(
                    "profile_updated",
                    member_id=member_id,
                    claim_id=context.claim_id,
                    claim_count=saved.claim_count,
                    anomaly_count=len(analysis.anomalies),
                    cold_start=analysis.cold_start,
                )
                return analysis.model_copy(update={"profile": saved})

        logger.error(
            "profile_write_abandoned",
            member_id=member_id,
            claim_id=context.claim_id,
            attempts=attempts,
        )
        return analysis

    # --- Core computation ---

    def _apply(
        self,
        member_id: str,
        profile: BehavioralProfile | None,
        context: ClaimContext,
    ) -> tuple[BehavioralAnalysis, BehavioralProfile | None]:
        """Return the analysis and the profile to persist (None for read-only)."""
        metrics = self.compute_metrics(context)

        if profile is None:
            fresh = self._build_profile(member_id, metrics, context)
            return BehavioralAnalysis(member_id=member_id, profile=fresh, cold_start=True), fresh

        # Re-evaluation of the latest claim: replay the stored outcome
        if profile.last_claim_id == context.claim_id:
            return (
                BehavioralAnalysis(
                    member_id=member_id,
                    profile=profile,
                    anomalies=list(profile.anomalies),
                    risk_score=profile.risk_score,
                ),
                None,
            )

        anomalies = self.detect_anomalies(profile.baseline_metrics, metrics)
        risk_score = self._risk_score(anomalies)

        # An older, already folded-in claim is compared but never applied twice
        if context.claim_id in profile.processed_claim_ids:
            return (
                BehavioralAnalysis(
                    member_id=member_id,
                    profile=profile,
                    anomalies=anomalies,
                    risk_score=risk_score,
                ),
                None,
            )

        cfg = self._config
        claim_count = profile.claim_count + 1
        processed = [*profile.processed_claim_ids, context.claim_id][-cfg.profile.max_processed_claims :]
        updated = profile.model_copy(
            update={
                "baseline_metrics": self._update_baseline(
                    profile.baseline_metrics, metrics, {a.metric for a in anomalies}
                ),
                "current_metrics": metrics,
                "anomalies": anomalies,
                "risk_score": risk_score,
                "confidence": self._confidence(claim_count),
                "claim_count": claim_count,
                "last_claim_id": context.claim_id,
                "processed_claim_ids": processed,
                "last_updated": context.now,
            }
        )
        analysis = BehavioralAnalysis(
            member_id=member_id,
            profile=updated,
            anomalies=anomalies,
            risk_score=risk_score,
        )
        return analysis, updated

    def compute_metrics(self, context: ClaimContext) -> ClaimMetrics:
        """Metrics for the current claim, taken against the member's history."""
        window = timedelta(days=self._config.profile.frequency_window_days)
        now = context.now
        prior = context.prior_member_claims()

        recent = sum(1 for c in prior if now - window < c.claim_date <= now)
        providers = {c.provider_id for c in prior}
        providers.add(context.provider_id)

        return ClaimMetrics(
            claim_frequency=float(recent + 1),
            claim_amount=context.claim.amount,
            provider_diversity=float(len(providers)),
            claim_hour=context.claim.claim_date.hour,
        )

    def detect_anomalies(
        self, baseline: ProfileBaseline, metrics: ClaimMetrics
    ) -> list[BehavioralAnomaly]:
        cfg = self._config.anomaly
        anomalies: list[BehavioralAnomaly] = []

        for metric in (BehaviorMetric.CLAIM_FREQUENCY, BehaviorMetric.CLAIM_AMOUNT):
            base: MetricBaseline = getattr(baseline, metric.value)
            observed: float = getattr(metrics, metric.value)
            deviation = abs(observed - base.mean)
            threshold = max(cfg.stddev_multiplier * base.std, cfg.mean_fraction * base.mean)
            if deviation > threshold:
                anomalies.append(
                    BehavioralAnomaly(
                        metric=metric,
                        observed=observed,
                        expected=round(base.mean, 4),
                        deviation=round(deviation, 4),
                        description=f"{metric.value} deviates from baseline",
                    )
                )

        diversity = baseline.provider_diversity
        if diversity.mean > 0 and metrics.provider_diversity > diversity.mean * (1 + cfg.diversity_growth):
            anomalies.append(
                BehavioralAnomaly(
                    metric=BehaviorMetric.PROVIDER_DIVERSITY,
                    observed=metrics.provider_diversity,
                    expected=round(diversity.mean, 4),
                    deviation=round(metrics.provider_diversity - diversity.mean, 4),
                    description="Sudden growth in number of distinct providers",
                )
            )

        peaks = self.peak_hours(baseline)
        if peaks:
            nearest = min(hour_distance(metrics.claim_hour, p) for p in peaks)
            if nearest > cfg.hour_tolerance:
                anomalies.append(
                    BehavioralAnomaly(
                        metric=BehaviorMetric.CLAIM_HOUR,
                        observed=float(metrics.claim_hour),
                        expected=float(peaks[0]),
                        deviation=float(nearest),
                        description="Claim submitted outside usual hours",
                    )
                )

        return anomalies

    def peak_hours(self, baseline: ProfileBaseline) -> list[int]:
        cfg = self._config.profile
        ranked = sorted(baseline.hour_weights.items(), key=lambda kv: (-kv[1], kv[0]))
        return [hour for hour, weight in ranked[: cfg.peak_hour_count] if weight >= cfg.peak_hour_min_weight]

    # --- Baseline maintenance ---

    def _build_profile(
        self, member_id: str, metrics: ClaimMetrics, context: ClaimContext
    ) -> BehavioralProfile:
        baseline = ProfileBaseline(
            claim_frequency=MetricBaseline(mean=metrics.claim_frequency),
            claim_amount=MetricBaseline(mean=metrics.claim_amount),
            provider_diversity=MetricBaseline(mean=metrics.provider_diversity),
            hour_weights={metrics.claim_hour: 1.0},
        )
        return BehavioralProfile(
            member_id=member_id,
            baseline_metrics=baseline,
            current_metrics=metrics,
            confidence=self._config.confidence.cold_start,
            claim_count=1,
            last_claim_id=context.claim_id,
            processed_claim_ids=[context.claim_id],
            last_updated=context.now,
        )

    def _update_baseline(
        self,
        baseline: ProfileBaseline,
        metrics: ClaimMetrics,
        anomalous: set[BehaviorMetric],
    ) -> ProfileBaseline:
        cfg = self._config.profile

        def alpha_for(metric: BehaviorMetric) -> float:
            if metric in anomalous:
                return cfg.ema_alpha * cfg.outlier_alpha_factor
            return cfg.ema_alpha

        updated = {}
        for metric in (
            BehaviorMetric.CLAIM_FREQUENCY,
            BehaviorMetric.CLAIM_AMOUNT,
            BehaviorMetric.PROVIDER_DIVERSITY,
        ):
            base: MetricBaseline = getattr(baseline, metric.value)
            observed: float = getattr(metrics, metric.value)
            alpha = alpha_for(metric)
            updated[metric.value] = MetricBaseline(
                mean=self._ema(base.mean, observed, alpha),
                std=self._ema_std(base.std, base.mean, observed, alpha),
            )

        alpha = alpha_for(BehaviorMetric.CLAIM_HOUR)
        hours = {h: w * (1 - alpha) for h, w in baseline.hour_weights.items()}
        hours[metrics.claim_hour] = hours.get(metrics.claim_hour, 0.0) + alpha
        updated["hour_weights"] = {h: round(w, 6) for h, w in hours.items() if w >= 0.01}

        return ProfileBaseline(**updated)

    def _risk_score(self, anomalies: list[BehavioralAnomaly]) -> float:
        return min(self._config.anomaly.score_per_anomaly * len(anomalies), 100.0)

    def _confidence(self, claim_count: int) -> float:
        cfg = self._config.confidence
        return round(min(cfg.cold_start + cfg.per_claim * (claim_count - 1), cfg.maximum), 4)

    @staticmethod
    def _ema(current: float, new_value: float, alpha: float) -> float:
        """Exponential moving average update."""
        return alpha * new_value + (1 - alpha) * current

    @staticmethod
    def _ema_std(current_std: float, current_mean: float, new_value: float, alpha: float) -> float:
        """Exponentially weighted standard deviation from the running variance."""
        variance = (1 - alpha) * (current_std**2 + alpha * (new_value - current_mean) ** 2)
        return variance**0.5
