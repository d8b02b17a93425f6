"""Diagnosis consistency signal."""

from ..config import FraudConfig
from ..models import ClaimContext
from .base import SignalCalculator, clamp, member_age


def has_keyword(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(k in lowered for k in keywords)


def is_routine_exam_with_procedure(context: ClaimContext, config: FraudConfig) -> bool:
    cfg = config.clinical
    return context.claim.diagnosis_code.upper() in cfg.routine_exam_codes and has_keyword(
        context.claim.description, cfg.high_risk_procedures
    )


def is_pregnancy_demographic_mismatch(context: ClaimContext, config: FraudConfig) -> bool:
    cfg = config.clinical
    if not has_keyword(context.claim.description, cfg.pregnancy_keywords):
        return False
    member = context.member
    if member is None:
        return False
    if member.gender and member.gender.lower() in ("male", "m"):
        return True
    age = member_age(member, context.now)
    return age is not None and (age < cfg.pregnancy_min_age or age > cfg.pregnancy_max_age)


def is_expensive_consultation(context: ClaimContext, config: FraudConfig) -> bool:
    return (
        context.claim.amount > config.clinical.consultation_cost_max
        and "consultation" in context.claim.description.lower()
    )


class DiagnosisSignal(SignalCalculator):
    factor = "diagnosis"

    def compute(self, context: ClaimContext, config: FraudConfig) -> float:
        score = 0.0
        if is_pregnancy_demographic_mismatch(context, config):
            score = 100.0
        if is_routine_exam_with_procedure(context, config):
            score = max(score, 70.0)
        if is_expensive_consultation(context, config):
            score = max(score, 50.0)
        return clamp(score)
