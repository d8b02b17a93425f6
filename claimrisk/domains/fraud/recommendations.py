"""Plain-language recommendations and action items for an evaluated claim."""

from .detectors import DUPLICATE_BILLING, UPCODING
from .models import FraudIndicator, FraudType, RiskLevel

_LEVEL_RECOMMENDATIONS: dict[RiskLevel, tuple[str, ...]] = {
    RiskLevel.CRITICAL: (
        "Immediate investigation required",
        "Suspend payments pending investigation",
        "Conduct provider audit",
    ),
    RiskLevel.HIGH: (
        "Immediate investigation required",
        "Suspend payments pending investigation",
        "Conduct provider audit",
    ),
    RiskLevel.MEDIUM: (
        "Review claim documentation",
        "Verify provider credentials",
        "Monitor future claims from this provider",
    ),
    RiskLevel.LOW: (
        "Monitor claim processing",
        "Review patterns quarterly",
    ),
}

_INDICATOR_RECOMMENDATIONS: dict[str, str] = {
    DUPLICATE_BILLING: "Check for exact duplicate claims",
    UPCODING: "Verify procedure coding accuracy",
    "NETWORK_COMPLIANCE": "Confirm provider network participation",
}

_FRAUD_TYPE_ACTIONS: dict[FraudType, tuple[str, ...]] = {
    FraudType.DUPLICATE: (
        "Cross-reference with all claims database",
        "Check for systemic billing errors",
    ),
    FraudType.BILLING_FRAUD: (
        "Conduct full provider audit",
        "Review all claims from past 12 months",
    ),
}


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def build_recommendations(risk_level: RiskLevel, indicators: list[FraudIndicator]) -> list[str]:
    recommendations = list(_LEVEL_RECOMMENDATIONS.get(risk_level, ()))
    for indicator in indicators:
        extra = _INDICATOR_RECOMMENDATIONS.get(indicator.type)
        if extra:
            recommendations.append(extra)
    return _unique(recommendations)


def build_action_items(
    risk_level: RiskLevel, investigation_required: bool, fraud_type: FraudType
) -> list[str]:
    actions: list[str] = []
    if investigation_required:
        actions += [
            "Assign to fraud investigation team",
            "Request additional documentation",
            "Contact provider for clarification",
        ]
    if risk_level == RiskLevel.CRITICAL:
        actions += [
            "Escalate to senior fraud analyst",
            "Consider legal action if confirmed",
            "Report to regulatory authorities",
        ]
    actions += _FRAUD_TYPE_ACTIONS.get(fraud_type, ())
    return _unique(actions)
