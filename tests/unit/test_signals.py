"""Unit tests for the risk factor calculators."""

from datetime import datetime, timedelta

from claimrisk.domains.fraud.config import FraudConfig
from claimrisk.domains.fraud.models import FACTOR_NAMES, MemberInfo, ProviderInfo
from claimrisk.domains.fraud.signals import (
    AmountSignal,
    BehavioralSignal,
    DiagnosisSignal,
    FrequencySignal,
    GeographicSignal,
    ProviderSignal,
    SignalCalculator,
    TemporalSignal,
    compute_factors,
)
from tests.conftest import NOW, make_claim, make_context, make_history

CONFIG = FraudConfig()


def _provider_history(amounts: list[float], **kwargs) -> list:
    return [
        make_claim(f"p-{i}", amount=a, claim_date=NOW - timedelta(days=40 + i), member_id=f"m-{i}", **kwargs)
        for i, a in enumerate(amounts)
    ]


class TestComputeFactors:
    def test_every_factor_present_and_neutral_without_history(self, sample_context):
        factors = compute_factors(sample_context)
        assert set(factors.as_dict()) == set(FACTOR_NAMES)
        assert all(v == 0.0 for v in factors.as_dict().values())

    def test_failing_calculator_degrades_to_zero(self, sample_context):
        class Broken(SignalCalculator):
            factor = "amount"

            def compute(self, context, config):
                raise RuntimeError("boom")

        factors = compute_factors(sample_context, signals=[Broken()])
        assert factors.amount == 0.0

    def test_deterministic(self):
        ctx = make_context(provider_history=_provider_history([100, 200, 300]))
        assert compute_factors(ctx) == compute_factors(ctx)


class TestAmountSignal:
    def test_no_history_is_neutral(self, sample_context):
        assert AmountSignal().compute(sample_context, CONFIG) == 0.0

    def test_below_double_average_is_neutral(self):
        ctx = make_context(make_claim(amount=190), provider_history=_provider_history([100, 100]))
        assert AmountSignal().compute(ctx, CONFIG) == 0.0

    def test_three_times_average_registers(self):
        ctx = make_context(make_claim(amount=300), provider_history=_provider_history([90, 100, 110]))
        value = AmountSignal().compute(ctx, CONFIG)
        # 60 from the ratio, +20 for being beyond 2 sigma
        assert value == 80.0

    def test_saturates_at_one_hundred(self):
        ctx = make_context(make_claim(amount=10_000), provider_history=_provider_history([100, 100]))
        assert AmountSignal().compute(ctx, CONFIG) == 100.0


class TestFrequencySignal:
    def test_quiet_provider(self):
        ctx = make_context(provider_history=make_history(5, start=NOW - timedelta(days=20), step=timedelta(days=1)))
        assert FrequencySignal().compute(ctx, CONFIG) == 0.0

    def test_ramp_between_quiet_and_high_volume(self):
        history = [
            make_claim(f"p-{i}", member_id=f"m-{i}", claim_date=NOW - timedelta(days=1, hours=i))
            for i in range(15)
        ]
        ctx = make_context(provider_history=history)
        assert FrequencySignal().compute(ctx, CONFIG) == 25.0

    def test_beyond_high_volume(self):
        history = [
            make_claim(f"p-{i}", member_id=f"m-{i}", claim_date=NOW - timedelta(days=1, hours=i))
            for i in range(25)
        ]
        ctx = make_context(provider_history=history)
        assert FrequencySignal().compute(ctx, CONFIG) == 70.0

    def test_member_volume_bonus(self):
        history = make_history(6, start=NOW - timedelta(days=12), step=timedelta(days=2), provider_id="other")
        ctx = make_context(member_history=history)
        assert FrequencySignal().compute(ctx, CONFIG) == 20.0

    def test_old_claims_outside_window_ignored(self):
        history = [
            make_claim(f"p-{i}", member_id=f"m-{i}", claim_date=NOW - timedelta(days=45, hours=i))
            for i in range(30)
        ]
        ctx = make_context(provider_history=history)
        assert FrequencySignal().compute(ctx, CONFIG) == 0.0


class TestProviderSignal:
    def test_established_approved_provider(self, sample_context):
        assert ProviderSignal().compute(sample_context, CONFIG) == 0.0

    def test_high_risk_specialty_new_and_unapproved(self):
        provider = ProviderInfo(
            provider_id="provider-1",
            provider_type="Pain Management",
            approval_status="pending",
            created_at=NOW - timedelta(days=30),
        )
        ctx = make_context(provider=provider)
        assert ProviderSignal().compute(ctx, CONFIG) == 100.0

    def test_missing_provider_is_neutral(self):
        ctx = make_context(provider=None)
        assert ProviderSignal().compute(ctx, CONFIG) == 0.0


class TestDiagnosisSignal:
    def test_routine_exam_with_surgery(self):
        ctx = make_context(make_claim(diagnosis_code="Z00.00", description="Surgery follow-up"))
        assert DiagnosisSignal().compute(ctx, CONFIG) == 70.0

    def test_expensive_consultation(self):
        ctx = make_context(make_claim(amount=12_000, description="Specialist consultation"))
        assert DiagnosisSignal().compute(ctx, CONFIG) == 50.0

    def test_pregnancy_for_male_member(self):
        member = MemberInfo(member_id="member-1", gender="male", date_of_birth=datetime(1985, 1, 1))
        ctx = make_context(make_claim(description="Prenatal ultrasound"), member=member)
        assert DiagnosisSignal().compute(ctx, CONFIG) == 100.0

    def test_pregnancy_out_of_age_range(self):
        member = MemberInfo(member_id="member-1", gender="F", date_of_birth=datetime(1960, 1, 1))
        ctx = make_context(make_claim(description="pregnancy check"), member=member)
        assert DiagnosisSignal().compute(ctx, CONFIG) == 100.0

    def test_pregnancy_for_eligible_member(self):
        ctx = make_context(make_claim(description="pregnancy check"))
        assert DiagnosisSignal().compute(ctx, CONFIG) == 0.0


class TestGeographicSignal:
    def test_no_region_data(self, sample_context):
        assert GeographicSignal().compute(sample_context, CONFIG) == 0.0

    def test_spread_and_unusual_region(self):
        history = [
            make_claim("h-1", provider_region="north", claim_date=NOW - timedelta(days=50)),
            make_claim("h-2", provider_region="north", claim_date=NOW - timedelta(days=40)),
            make_claim("h-3", provider_region="south", claim_date=NOW - timedelta(days=30)),
        ]
        ctx = make_context(make_claim(provider_region="east"), member_history=history)
        assert GeographicSignal().compute(ctx, CONFIG) == 70.0

    def test_usual_region(self):
        history = [make_claim("h-1", provider_region="north", claim_date=NOW - timedelta(days=50))]
        ctx = make_context(make_claim(provider_region="north"), member_history=history)
        assert GeographicSignal().compute(ctx, CONFIG) == 0.0


class TestTemporalSignal:
    def test_weekday_claim(self, sample_context):
        assert TemporalSignal().compute(sample_context, CONFIG) == 0.0

    def test_weekend_holiday(self):
        # 2022-12-25 was a Sunday
        claim = make_claim(claim_date=datetime(2022, 12, 25, 12, 0))
        assert TemporalSignal().compute(make_context(claim), CONFIG) == 80.0

    def test_weekly_cadence(self):
        history = make_history(2, start=NOW - timedelta(days=14), step=timedelta(days=7), provider_id="other")
        ctx = make_context(member_history=history)
        assert TemporalSignal().compute(ctx, CONFIG) == 50.0

    def test_same_day_same_provider(self):
        earlier = make_claim("earlier", claim_date=NOW - timedelta(hours=2))
        ctx = make_context(provider_history=[earlier])
        assert TemporalSignal().compute(ctx, CONFIG) == 20.0


class TestBehavioralSignal:
    def test_no_history(self, sample_context):
        assert BehavioralSignal().compute(sample_context, CONFIG) == 0.0

    def test_excessive_claims_and_provider_spread(self):
        history = [
            make_claim(f"h-{i}", provider_id=f"prov-{i}", claim_date=NOW - timedelta(days=i + 1))
            for i in range(16)
        ]
        ctx = make_context(member_history=history)
        assert BehavioralSignal().compute(ctx, CONFIG) == 100.0
