"""Signal calculators package.

Exports ALL_SIGNALS (one calculator per risk factor) and compute_factors,
which turns a ClaimContext into a complete RiskFactorSet.
"""

import structlog

from ..config import FraudConfig, default_config
from ..models import FACTOR_NAMES, ClaimContext, RiskFactorSet
from .base import SignalCalculator, clamp, member_age
from .billing import AmountSignal, FrequencySignal, provider_amount_stats
from .clinical import DiagnosisSignal
from .provider import GeographicSignal, ProviderSignal
from .timing import BehavioralSignal, TemporalSignal

logger = structlog.get_logger()

ALL_SIGNALS: list[SignalCalculator] = [
    FrequencySignal(),
    AmountSignal(),
    ProviderSignal(),
    DiagnosisSignal(),
    GeographicSignal(),
    TemporalSignal(),
    BehavioralSignal(),
]


def compute_factors(
    context: ClaimContext,
    config: FraudConfig | None = None,
    signals: list[SignalCalculator] | None = None,
) -> RiskFactorSet:
    """Compute every risk factor for a claim.

    A calculator that fails degrades to the neutral floor and is logged;
    factors absent from ``signals`` are reported as 0.
    """
    cfg = config or default_config
    values = dict.fromkeys(FACTOR_NAMES, 0.0)

    for signal in signals or ALL_SIGNALS:
        try:
            values[signal.factor] = clamp(signal.compute(context, cfg))
        except Exception:
            logger.warning(
                "signal_computation_failed",
                factor=signal.factor,
                claim_id=context.claim_id,
                exc_info=True,
            )
            values[signal.factor] = 0.0

    return RiskFactorSet(**values)


__all__ = [
    "ALL_SIGNALS",
    "AmountSignal",
    "BehavioralSignal",
    "DiagnosisSignal",
    "FrequencySignal",
    "GeographicSignal",
    "ProviderSignal",
    "SignalCalculator",
    "TemporalSignal",
    "clamp",
    "compute_factors",
    "member_age",
    "provider_amount_stats",
]
