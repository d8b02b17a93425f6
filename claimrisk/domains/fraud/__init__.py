"""Claim fraud detection domain.

Only the record types and errors are re-exported here; the engine and its
collaborators are imported from their own modules.
"""

from .errors import (
    ActiveInvestigationExistsError,
    FraudEngineError,
    InvalidTransitionError,
    NotFoundError,
)
from .models import (
    AlertStatus,
    ClaimContext,
    ClaimRecord,
    EvaluationResult,
    FraudAlert,
    FraudIndicator,
    FraudType,
    Investigation,
    RiskFactorSet,
    RiskLevel,
    Severity,
)

__all__ = [
    "ActiveInvestigationExistsError",
    "AlertStatus",
    "ClaimContext",
    "ClaimRecord",
    "EvaluationResult",
    "FraudAlert",
    "FraudEngineError",
    "FraudIndicator",
    "FraudType",
    "InvalidTransitionError",
    "Investigation",
    "NotFoundError",
    "RiskFactorSet",
    "RiskLevel",
    "Severity",
]
