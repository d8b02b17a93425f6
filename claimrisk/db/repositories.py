"""SQLAlchemy implementations of the domain storage interfaces."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from claimrisk.db.models import (
    BehavioralProfileDB,
    FraudAlertDB,
    FraudInvestigationDB,
    FraudRuleDB,
    NetworkAnalysisDB,
    RiskAssessmentDB,
)
from claimrisk.domains.behavior.models import BehavioralProfile
from claimrisk.domains.behavior.profiler import ProfileRepository
from claimrisk.domains.fraud.errors import ActiveInvestigationExistsError, NotFoundError, ProfileConflictError
from claimrisk.domains.fraud.models import (
    ACTIVE_INVESTIGATION_STATUSES,
    OPEN_ALERT_STATUSES,
    AlertFilter,
    FraudAlert,
    Investigation,
    RiskAssessment,
    RiskLevel,
)
from claimrisk.domains.fraud.repositories import (
    AlertRepository,
    AssessmentRepository,
    InvestigationRepository,
    RuleRepository,
)
from claimrisk.domains.fraud.rules.models import FraudRule, RuleCreate, RuleUpdate
from claimrisk.domains.network.analyzer import NetworkAnalysisRepository
from claimrisk.domains.network.models import NetworkAnalysisResult

logger = structlog.get_logger()


async def _commit(session: AsyncSession) -> None:
    """Commit, leaving the shared request session usable when the commit fails."""
    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        raise


# --- Alerts ---


def _alert_from_row(row: FraudAlertDB) -> FraudAlert:
    return FraudAlert(
        alert_id=row.alert_id,
        claim_id=row.claim_id,
        member_id=row.member_id,
        provider_id=row.provider_id,
        alert_type=row.alert_type,
        severity=row.severity,
        status=row.status,
        risk_score=row.risk_score,
        fraud_type=row.fraud_type,
        description=row.description,
        indicators=row.indicators or [],
        assigned_to=row.assigned_to,
        outcome=row.outcome,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _apply_alert(row: FraudAlertDB, alert: FraudAlert) -> None:
    row.claim_id = alert.claim_id
    row.member_id = alert.member_id
    row.provider_id = alert.provider_id
    row.alert_type = alert.alert_type
    row.severity = alert.severity.value
    row.status = alert.status.value
    row.risk_score = alert.risk_score
    row.fraud_type = alert.fraud_type.value
    row.description = alert.description
    row.indicators = alert.indicators
    row.assigned_to = alert.assigned_to
    row.outcome = alert.outcome
    row.created_at = alert.created_at
    row.updated_at = alert.updated_at


class SqlAlertRepository(AlertRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, alert: FraudAlert) -> FraudAlert:
        row = FraudAlertDB(alert_id=alert.alert_id)
        _apply_alert(row, alert)
        self._session.add(row)
        await _commit(self._session)
        return alert

    async def _row(self, alert_id: str) -> FraudAlertDB | None:
        result = await self._session.execute(select(FraudAlertDB).where(FraudAlertDB.alert_id == alert_id))
        return result.scalar_one_or_none()

    async def get(self, alert_id: str) -> FraudAlert | None:
        row = await self._row(alert_id)
        return _alert_from_row(row) if row else None

    async def update(self, alert: FraudAlert) -> FraudAlert:
        row = await self._row(alert.alert_id)
        if row is None:
            raise NotFoundError("alert", alert.alert_id)
        _apply_alert(row, alert)
        await _commit(self._session)
        return alert

    async def find_open(
        self,
        *,
        claim_id: str | None = None,
        member_id: str | None = None,
        alert_type: str | None = None,
    ) -> FraudAlert | None:
        stmt = select(FraudAlertDB).where(FraudAlertDB.status.in_([s.value for s in OPEN_ALERT_STATUSES]))
        if claim_id is not None:
            stmt = stmt.where(FraudAlertDB.claim_id == claim_id)
        if member_id is not None:
            stmt = stmt.where(FraudAlertDB.member_id == member_id)
        if alert_type is not None:
            stmt = stmt.where(FraudAlertDB.alert_type == alert_type)
        result = await self._session.execute(stmt.order_by(FraudAlertDB.created_at).limit(1))
        row = result.scalar_one_or_none()
        return _alert_from_row(row) if row else None

    async def list_alerts(self, alert_filter: AlertFilter) -> list[FraudAlert]:
        stmt = select(FraudAlertDB)
        if alert_filter.status is not None:
            stmt = stmt.where(FraudAlertDB.status == alert_filter.status.value)
        if alert_filter.min_severity is not None:
            allowed = [level.value for level in RiskLevel if level >= alert_filter.min_severity]
            stmt = stmt.where(FraudAlertDB.severity.in_(allowed))
        if alert_filter.claim_id is not None:
            stmt = stmt.where(FraudAlertDB.claim_id == alert_filter.claim_id)
        if alert_filter.member_id is not None:
            stmt = stmt.where(FraudAlertDB.member_id == alert_filter.member_id)
        if alert_filter.provider_id is not None:
            stmt = stmt.where(FraudAlertDB.provider_id == alert_filter.provider_id)
        stmt = (
            stmt.order_by(FraudAlertDB.risk_score.desc(), FraudAlertDB.created_at.desc())
            .offset(alert_filter.offset)
            .limit(alert_filter.limit)
        )
        result = await self._session.execute(stmt)
        return [_alert_from_row(row) for row in result.scalars().all()]

    async def list_since(self, since: datetime | None = None) -> list[FraudAlert]:
        stmt = select(FraudAlertDB)
        if since is not None:
            stmt = stmt.where(FraudAlertDB.created_at >= since)
        result = await self._session.execute(stmt)
        return [_alert_from_row(row) for row in result.scalars().all()]


# --- Rules ---


def _rule_from_row(row: FraudRuleDB) -> FraudRule:
    return FraudRule(
        rule_id=row.rule_id,
        name=row.name,
        rule_type=row.rule_type,
        description=row.description,
        condition=row.condition or {},
        severity=row.severity,
        weight=row.weight,
        priority=row.priority,
        status=row.status,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlRuleRepository(RuleRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_active_rules(self) -> list[FraudRule]:
        result = await self._session.execute(select(FraudRuleDB).where(FraudRuleDB.status == "active"))
        rules = []
        for row in result.scalars().all():
            try:
                rules.append(_rule_from_row(row))
            except ValueError:
                # Row fails basic record validation (e.g. non-positive weight)
                logger.warning("rule_record_invalid", rule_id=row.rule_id, exc_info=True)
        return rules

    async def list_rules(self) -> list[FraudRule]:
        result = await self._session.execute(select(FraudRuleDB).order_by(FraudRuleDB.rule_id))
        return [_rule_from_row(row) for row in result.scalars().all()]

    async def get(self, rule_id: int) -> FraudRule | None:
        row = await self._session.get(FraudRuleDB, rule_id)
        return _rule_from_row(row) if row else None

    async def create(self, rule: RuleCreate) -> FraudRule:
        now = datetime.now(UTC)
        row = FraudRuleDB(
            name=rule.name,
            rule_type=rule.rule_type,
            description=rule.description,
            condition=rule.condition,
            severity=rule.severity.value,
            weight=rule.weight,
            priority=rule.priority,
            status=rule.status.value,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self._session.add(row)
        await _commit(self._session)
        await self._session.refresh(row)
        return _rule_from_row(row)

    async def update(self, rule_id: int, changes: RuleUpdate) -> FraudRule:
        row = await self._session.get(FraudRuleDB, rule_id)
        if row is None:
            raise NotFoundError("rule", rule_id)
        for key, value in changes.model_dump(exclude_none=True).items():
            setattr(row, key, value)
        row.version = row.version + 1
        row.updated_at = datetime.now(UTC)
        await _commit(self._session)
        await self._session.refresh(row)
        return _rule_from_row(row)


# --- Investigations ---


def _investigation_from_row(row: FraudInvestigationDB) -> Investigation:
    return Investigation(
        investigation_id=row.investigation_id,
        alert_id=row.alert_id,
        title=row.title,
        status=row.status,
        assignee=row.assignee,
        findings=row.findings or [],
        fraud_confirmed=row.fraud_confirmed,
        fraud_type=row.fraud_type,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


def _apply_investigation(row: FraudInvestigationDB, investigation: Investigation) -> None:
    row.alert_id = investigation.alert_id
    row.title = investigation.title
    row.status = investigation.status.value
    row.assignee = investigation.assignee
    row.findings = [f.model_dump(mode="json") for f in investigation.findings]
    row.fraud_confirmed = investigation.fraud_confirmed
    row.fraud_type = investigation.fraud_type.value if investigation.fraud_type else None
    row.created_at = investigation.created_at
    row.completed_at = investigation.completed_at


class SqlInvestigationRepository(InvestigationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _row(self, investigation_id: str) -> FraudInvestigationDB | None:
        result = await self._session.execute(
            select(FraudInvestigationDB).where(FraudInvestigationDB.investigation_id == investigation_id)
        )
        return result.scalar_one_or_none()

    async def add(self, investigation: Investigation) -> Investigation:
        row = FraudInvestigationDB(investigation_id=investigation.investigation_id)
        _apply_investigation(row, investigation)
        self._session.add(row)
        try:
            await _commit(self._session)
        except IntegrityError as exc:
            active = await self.find_active_for_alert(investigation.alert_id)
            raise ActiveInvestigationExistsError(
                investigation.alert_id, active.investigation_id if active else "unknown"
            ) from exc
        return investigation

    async def get(self, investigation_id: str) -> Investigation | None:
        row = await self._row(investigation_id)
        return _investigation_from_row(row) if row else None

    async def update(self, investigation: Investigation) -> Investigation:
        row = await self._row(investigation.investigation_id)
        if row is None:
            raise NotFoundError("investigation", investigation.investigation_id)
        _apply_investigation(row, investigation)
        await _commit(self._session)
        return investigation

    async def find_active_for_alert(self, alert_id: str) -> Investigation | None:
        stmt = select(FraudInvestigationDB).where(
            FraudInvestigationDB.alert_id == alert_id,
            FraudInvestigationDB.status.in_([s.value for s in ACTIVE_INVESTIGATION_STATUSES]),
        )
        result = await self._session.execute(stmt.limit(1))
        row = result.scalar_one_or_none()
        return _investigation_from_row(row) if row else None

    async def list_since(self, since: datetime | None = None) -> list[Investigation]:
        stmt = select(FraudInvestigationDB)
        if since is not None:
            stmt = stmt.where(FraudInvestigationDB.created_at >= since)
        result = await self._session.execute(stmt)
        return [_investigation_from_row(row) for row in result.scalars().all()]


# --- Assessments ---


class SqlAssessmentRepository(AssessmentRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, assessment: RiskAssessment) -> None:
        result = await self._session.execute(
            select(RiskAssessmentDB).where(RiskAssessmentDB.claim_id == assessment.claim_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = RiskAssessmentDB(claim_id=assessment.claim_id)
            self._session.add(row)
        row.member_id = assessment.member_id
        row.provider_id = assessment.provider_id
        row.risk_score = assessment.risk_score
        row.risk_level = assessment.risk_level.value
        row.fraud_type = assessment.fraud_type.value
        row.factors = assessment.factors
        row.indicators = assessment.indicators
        row.rule_violations = assessment.rule_violations
        row.model_confidence = assessment.model_confidence
        row.investigation_required = assessment.investigation_required
        row.evaluated_at = assessment.evaluated_at
        await _commit(self._session)

    async def get(self, claim_id: str) -> RiskAssessment | None:
        result = await self._session.execute(
            select(RiskAssessmentDB).where(RiskAssessmentDB.claim_id == claim_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return RiskAssessment(
            claim_id=row.claim_id,
            member_id=row.member_id,
            provider_id=row.provider_id,
            risk_score=row.risk_score,
            risk_level=row.risk_level,
            fraud_type=row.fraud_type,
            factors=row.factors or {},
            indicators=row.indicators or [],
            rule_violations=row.rule_violations or [],
            model_confidence=row.model_confidence,
            investigation_required=row.investigation_required,
            evaluated_at=row.evaluated_at,
        )


# --- Behavioral profiles ---


class SqlProfileRepository(ProfileRepository):
    """Optimistic concurrency on the ``version`` column."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, member_id: str) -> BehavioralProfile | None:
        row = await self._session.get(BehavioralProfileDB, member_id, populate_existing=True)
        if row is None:
            return None
        profile = BehavioralProfile.model_validate(row.profile)
        return profile.model_copy(update={"version": row.version})

    async def save(self, profile: BehavioralProfile, expected_version: int) -> BehavioralProfile:
        new_version = expected_version + 1
        stored = profile.model_copy(update={"version": new_version})
        document = stored.model_dump(mode="json")
        values = {
            "version": new_version,
            "claim_count": stored.claim_count,
            "risk_score": stored.risk_score,
            "confidence": stored.confidence,
            "profile": document,
            "last_updated": stored.last_updated,
        }

        if expected_version == 0:
            self._session.add(BehavioralProfileDB(member_id=profile.member_id, **values))
            try:
                await _commit(self._session)
            except IntegrityError as exc:
                raise ProfileConflictError(f"Profile for {profile.member_id} created concurrently") from exc
            return stored

        result = await self._session.execute(
            update(BehavioralProfileDB)
            .where(
                BehavioralProfileDB.member_id == profile.member_id,
                BehavioralProfileDB.version == expected_version,
            )
            .values(**values)
        )
        if result.rowcount == 0:
            await self._session.rollback()
            raise ProfileConflictError(
                f"Profile for {profile.member_id} changed since version {expected_version}"
            )
        await _commit(self._session)
        return stored


# --- Network analyses ---


class SqlNetworkAnalysisRepository(NetworkAnalysisRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(self, result: NetworkAnalysisResult) -> None:
        """Keeps one row per claim; re-analysing a claim replaces its row."""
        row = None
        if result.claim_id is not None:
            existing = await self._session.execute(
                select(NetworkAnalysisDB).where(NetworkAnalysisDB.claim_id == result.claim_id)
            )
            row = existing.scalars().first()
        if row is None:
            row = NetworkAnalysisDB(claim_id=result.claim_id)
            self._session.add(row)
        row.analysis_id = result.analysis_id
        row.entity_type = result.entity_type
        row.entity_id = result.entity_id
        row.risk_score = result.risk_score
        row.suspicious_patterns = [p.value for p in result.suspicious_patterns]
        row.connections = result.connections.model_dump(mode="json")
        row.findings = [f.model_dump(mode="json") for f in result.findings]
        row.confidence = result.confidence
        row.node_count = result.node_count
        row.truncated = result.truncated
        row.analyzed_at = result.analyzed_at
        await _commit(self._session)
