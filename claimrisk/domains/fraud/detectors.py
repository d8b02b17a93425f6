"""Pattern detectors that turn claim evidence into FraudIndicators.

Each detector is a pure function over a ClaimContext returning either one
indicator or None. Types, severities and weights are fixed per detector.
"""

from collections.abc import Callable
from datetime import timedelta

import structlog

from .config import FraudConfig, default_config
from .models import ClaimContext, FraudIndicator, IndicatorSource, Severity
from .signals import member_age, provider_amount_stats
from .signals.clinical import (
    is_expensive_consultation,
    is_pregnancy_demographic_mismatch,
    is_routine_exam_with_procedure,
)

logger = structlog.get_logger()

Detector = Callable[[ClaimContext, FraudConfig], FraudIndicator | None]

DUPLICATE_BILLING = "DUPLICATE_BILLING"
UNBUNDLING = "UNBUNDLING"
UPCODING = "UPCODING"
CLINICAL_ANOMALY = "CLINICAL_ANOMALY"


def _indicator(
    type_: str,
    severity: Severity,
    description: str,
    weight: float,
    evidence: dict,
) -> FraudIndicator:
    return FraudIndicator(
        type=type_,
        severity=severity,
        description=description,
        weight=weight,
        evidence=evidence,
        source=IndicatorSource.PATTERN,
    )


def _clinical(severity: Severity, anomaly_type: str, description: str, rationale: str) -> FraudIndicator:
    return _indicator(
        CLINICAL_ANOMALY,
        severity,
        description,
        15.0 if severity == Severity.HIGH else 10.0,
        {"anomaly_type": anomaly_type, "clinical_rationale": rationale},
    )


# --- Billing patterns ---


def detect_unusually_high_billing(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    stats = provider_amount_stats(context)
    if stats is None:
        return None
    avg, _ = stats
    if context.claim.amount <= avg * config.amount.unusually_high_ratio:
        return None
    return _indicator(
        "UNUSUALLY_HIGH_BILLING",
        Severity.HIGH,
        "Claim amount significantly higher than provider average",
        20.0,
        {"amount": context.claim.amount, "provider_average": round(avg, 2)},
    )


def detect_duplicate_billing(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    """Same diagnosis billed for the same member within the duplicate window."""
    window = timedelta(days=config.member.duplicate_window_days)
    claim = context.claim
    if not claim.diagnosis_code:
        return None
    matches = [
        c.id
        for c in context.prior_member_claims()
        if c.diagnosis_code == claim.diagnosis_code and abs(c.claim_date - claim.claim_date) < window
    ]
    if not matches:
        return None
    return _indicator(
        DUPLICATE_BILLING,
        Severity.HIGH,
        "Possible duplicate billing detected",
        25.0,
        {"duplicate_claim_ids": matches, "diagnosis_code": claim.diagnosis_code},
    )


def detect_upcoding(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    claim = context.claim
    if claim.amount > config.clinical.upcoding_amount and "complex" in claim.description.lower():
        return _indicator(
            UPCODING,
            Severity.MEDIUM,
            "Indicators of upcoding services",
            15.0,
            {"amount": claim.amount},
        )
    return None


def detect_unbundling(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    claim = context.claim
    if claim.amount > config.clinical.unbundling_amount and "multiple" in claim.description.lower():
        return _indicator(
            UNBUNDLING,
            Severity.MEDIUM,
            "Multiple services billed separately that are usually bundled",
            15.0,
            {"amount": claim.amount},
        )
    return None


# --- Provider patterns ---


def detect_outlier_provider(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    stats = provider_amount_stats(context)
    if stats is None:
        return None
    avg, _ = stats
    reference = config.amount.global_provider_average
    if avg <= reference * config.amount.outlier_provider_ratio:
        return None
    return _indicator(
        "OUTLIER_PROVIDER",
        Severity.MEDIUM,
        "Provider billing patterns are statistical outliers",
        10.0,
        {"provider_average": round(avg, 2), "reference_average": reference},
    )


def detect_network_compliance(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    provider = context.provider
    if provider is None or provider.approval_status is None:
        return None
    if provider.approval_status.lower() == "approved":
        return None
    return _indicator(
        "NETWORK_COMPLIANCE",
        Severity.MEDIUM,
        "Provider not in approved network",
        10.0,
        {"approval_status": provider.approval_status},
    )


# --- Member patterns ---


def detect_provider_shopping(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    providers = {c.provider_id for c in context.prior_member_claims()}
    if len(providers) <= config.member.provider_shopping_count:
        return None
    return _indicator(
        "PROVIDER_SHOPPING",
        Severity.LOW,
        "Member uses unusually high number of different providers",
        5.0,
        {"provider_count": len(providers)},
    )


# --- Clinical anomalies ---


def detect_diagnosis_procedure_mismatch(
    context: ClaimContext, config: FraudConfig
) -> FraudIndicator | None:
    if not is_routine_exam_with_procedure(context, config):
        return None
    return _clinical(
        Severity.MEDIUM,
        "DIAGNOSIS_PROCEDURE_MISMATCH",
        "Preventive care diagnosis with high-risk procedure",
        "General examination codes typically do not support high-cost procedures",
    )


def detect_age_gender_anomaly(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    if not is_pregnancy_demographic_mismatch(context, config):
        return None
    indicator = _clinical(
        Severity.HIGH,
        "AGE_GENDER_ANOMALY",
        "Pregnancy-related procedure with incompatible age/gender",
        "Clinical indication not supported by patient demographics",
    )
    member = context.member
    indicator.evidence["gender"] = member.gender if member else None
    indicator.evidence["age"] = member_age(member, context.now)
    return indicator


def detect_consultation_cost(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    if not is_expensive_consultation(context, config):
        return None
    return _clinical(
        Severity.MEDIUM,
        "DURATION_ANOMALY",
        "Unusually high cost for consultation service",
        "Consultation costs are typically much lower",
    )


# --- Compliance ---


def detect_billing_compliance(context: ClaimContext, config: FraudConfig) -> FraudIndicator | None:
    if context.claim.amount <= config.amount.compliance_limit:
        return None
    return _indicator(
        "COMPLIANCE_VIOLATION",
        Severity.MEDIUM,
        "CMS Billing Guidelines: Claim amount exceeds typical limits",
        10.0,
        {
            "regulation": "CMS Billing Guidelines",
            "potential_penalty": "Claim rejection and audit",
            "limit": config.amount.compliance_limit,
        },
    )


ALL_DETECTORS: list[Detector] = [
    detect_unusually_high_billing,
    detect_duplicate_billing,
    detect_upcoding,
    detect_unbundling,
    detect_outlier_provider,
    detect_network_compliance,
    detect_provider_shopping,
    detect_diagnosis_procedure_mismatch,
    detect_age_gender_anomaly,
    detect_consultation_cost,
    detect_billing_compliance,
]


def detect_patterns(
    context: ClaimContext,
    config: FraudConfig | None = None,
    detectors: list[Detector] | None = None,
) -> list[FraudIndicator]:
    """Run every detector; a failing detector is logged and skipped."""
    cfg = config or default_config
    indicators: list[FraudIndicator] = []
    for detector in detectors or ALL_DETECTORS:
        try:
            indicator = detector(context, cfg)
        except Exception:
            logger.warning(
                "pattern_detector_failed",
                detector=detector.__name__,
                claim_id=context.claim_id,
                exc_info=True,
            )
            continue
        if indicator is not None:
            indicators.append(indicator)
    return indicators
