"""Provider profile and geographic signals."""

from collections import Counter

from ..config import FraudConfig
from ..models import ClaimContext
from .base import SignalCalculator, clamp


class ProviderSignal(SignalCalculator):
    factor = "provider"

    def compute(self, context: ClaimContext, config: FraudConfig) -> float:
        provider = context.provider
        if provider is None:
            return 0.0

        cfg = config.provider
        score = 0.0

        provider_type = provider.provider_type.lower().replace(" ", "_")
        if any(specialty in provider_type for specialty in cfg.high_risk_specialties):
            score += cfg.specialty_score

        if provider.created_at is not None:
            age_days = (context.now - provider.created_at).days
            if 0 <= age_days < cfg.new_provider_days:
                score += cfg.new_provider_score

        if provider.approval_status is not None and provider.approval_status.lower() != "approved":
            score += cfg.unapproved_score

        return clamp(score)


def claim_region(context: ClaimContext) -> str | None:
    if context.claim.provider_region:
        return context.claim.provider_region
    if context.provider is not None:
        return context.provider.region
    return None


class GeographicSignal(SignalCalculator):
    """Spread of provider regions in the member's history."""

    factor = "geographic"

    def compute(self, context: ClaimContext, config: FraudConfig) -> float:
        regions = [c.provider_region for c in context.prior_member_claims() if c.provider_region]
        current = claim_region(context)
        if not regions:
            return 0.0

        score = 0.0
        if len(set(regions) | ({current} if current else set())) >= config.member.region_spread:
            score += 40.0

        if current:
            # Ties resolve alphabetically so the result does not depend on history order
            counts = Counter(regions)
            top = max(sorted(counts), key=lambda r: counts[r])
            if current != top:
                score += 30.0

        return clamp(score)
