"""Billing signals: claim amount and claim frequency."""

from datetime import timedelta

import numpy as np

from ..config import FraudConfig
from ..models import ClaimContext
from .base import SignalCalculator, clamp


def provider_amount_stats(context: ClaimContext) -> tuple[float, float] | None:
    """Mean and population stddev of the provider's prior claim amounts."""
    amounts = [c.amount for c in context.prior_provider_claims()]
    if not amounts:
        return None
    arr = np.asarray(amounts, dtype=float)
    return float(arr.mean()), float(arr.std())


class AmountSignal(SignalCalculator):
    """Claim amount relative to the provider's historical average.

    No risk up to ``ratio_floor`` times the average, ramps to 60 at
    ``ratio_high`` and saturates at 100 by ``ratio_max``.
    """

    factor = "amount"

    def compute(self, context: ClaimContext, config: FraudConfig) -> float:
        stats = provider_amount_stats(context)
        if stats is None:
            return 0.0
        avg, stddev = stats
        if avg <= 0:
            return 0.0

        cfg = config.amount
        amount = context.claim.amount
        ratio = amount / avg

        if ratio <= cfg.ratio_floor:
            score = 0.0
        elif ratio <= cfg.ratio_high:
            score = (ratio - cfg.ratio_floor) / (cfg.ratio_high - cfg.ratio_floor) * 60.0
        else:
            score = 60.0 + (ratio - cfg.ratio_high) / (cfg.ratio_max - cfg.ratio_high) * 40.0

        if score > 0 and abs(amount - avg) > cfg.stddev_multiplier * stddev:
            score += cfg.stddev_bonus

        return clamp(score)


class FrequencySignal(SignalCalculator):
    """Provider claim volume over the trailing window, plus member volume."""

    factor = "frequency"

    def compute(self, context: ClaimContext, config: FraudConfig) -> float:
        cfg = config.frequency
        cutoff = context.now - timedelta(days=cfg.window_days)

        provider_count = sum(
            1 for c in context.prior_provider_claims() if cutoff < c.claim_date <= context.now
        )
        member_count = sum(
            1 for c in context.prior_member_claims() if cutoff < c.claim_date <= context.now
        )

        quiet = cfg.provider_quiet_count
        high = cfg.provider_high_volume
        if provider_count <= quiet:
            score = 0.0
        elif provider_count <= high:
            score = (provider_count - quiet) / (high - quiet) * 50.0
        else:
            # Past the high-volume threshold: 60 and climbing 2 points per claim
            score = 60.0 + (provider_count - high) * 2.0

        if member_count > cfg.member_monthly_max:
            score += cfg.member_bonus

        return clamp(score)
