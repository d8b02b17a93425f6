"""Temporal and member-behavior signals."""

from datetime import timedelta

from ..config import FraudConfig
from ..models import ClaimContext, ClaimRecord
from .base import SignalCalculator, clamp


def count_weekly_repeats(claims: list[ClaimRecord], config: FraudConfig) -> int:
    """Number of consecutive gaps equal to exactly one week (within tolerance)."""
    cfg = config.temporal
    repeats = 0
    for prev, cur in zip(claims, claims[1:], strict=False):
        gap = (cur.claim_date - prev.claim_date).total_seconds()
        if abs(gap - cfg.weekly_interval_seconds) <= cfg.interval_tolerance_seconds:
            repeats += 1
    return repeats


class TemporalSignal(SignalCalculator):
    factor = "temporal"

    def compute(self, context: ClaimContext, config: FraudConfig) -> float:
        cfg = config.temporal
        claim_date = context.claim.claim_date
        score = 0.0

        if claim_date.weekday() >= 5:
            score += cfg.weekend_score
        if (claim_date.month, claim_date.day) in cfg.holidays:
            score += cfg.holiday_score

        timeline = sorted([*context.prior_member_claims(), context.claim], key=lambda c: c.claim_date)
        if count_weekly_repeats(timeline, config) >= cfg.regular_interval_min_repeats:
            score += cfg.regular_interval_score

        same_day = any(
            c.claim_date.date() == claim_date.date() for c in context.prior_provider_claims()
            if c.member_id == context.member_id
        )
        if same_day:
            score += cfg.same_day_score

        return clamp(score)


class BehavioralSignal(SignalCalculator):
    """Member claim volume and provider spread over the trailing quarter."""

    factor = "behavioral"

    def compute(self, context: ClaimContext, config: FraudConfig) -> float:
        cfg = config.member
        history = context.prior_member_claims()
        if not history:
            return 0.0

        cutoff = context.now - timedelta(days=cfg.excessive_window_days)
        recent = [c for c in history if cutoff < c.claim_date <= context.now]

        score = 0.0
        if len(recent) > cfg.excessive_claims:
            score += cfg.excessive_score
        if len({c.provider_id for c in history}) > cfg.provider_shopping_count:
            score += cfg.provider_shopping_score
        return clamp(score)
