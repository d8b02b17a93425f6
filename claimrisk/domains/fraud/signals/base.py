"""Abstract base class for per-dimension risk signal calculators."""

from abc import ABC, abstractmethod
from datetime import datetime

from ..config import FraudConfig
from ..models import ClaimContext, MemberInfo

FACTOR_MIN = 0.0
FACTOR_MAX = 100.0


def clamp(value: float, low: float = FACTOR_MIN, high: float = FACTOR_MAX) -> float:
    return max(low, min(high, value))


def member_age(member: MemberInfo | None, at: datetime) -> int | None:
    """Age in whole years at ``at``; None when the birth date is unknown."""
    if member is None or member.date_of_birth is None:
        return None
    dob = member.date_of_birth
    age = at.year - dob.year
    if (at.month, at.day) < (dob.month, dob.day):
        age -= 1
    return age


class SignalCalculator(ABC):
    """Base class for all signal calculators.

    A calculator maps a ClaimContext to one factor value in [0, 100]. It must
    be pure: same context and config, same value. Insufficient data yields
    the neutral floor, never an exception.
    """

    factor: str

    @abstractmethod
    def compute(self, context: ClaimContext, config: FraudConfig) -> float:
        ...
