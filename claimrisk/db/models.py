"""SQLAlchemy ORM models for the claim risk engine's own state."""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Float, Index, Integer, String, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")

_ACTIVE_INVESTIGATION_CLAUSE = "status IN ('PENDING', 'IN_PROGRESS', 'ESCALATED')"


class Base(DeclarativeBase):
    pass


class FraudAlertDB(Base):
    __tablename__ = "fraud_alerts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    alert_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    claim_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    member_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    provider_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    alert_type: Mapped[str] = mapped_column(String, default="claim_risk")
    severity: Mapped[str] = mapped_column(String, index=True)
    status: Mapped[str] = mapped_column(String, index=True, default="OPEN")
    risk_score: Mapped[float] = mapped_column(Float)
    fraud_type: Mapped[str] = mapped_column(String, default="NONE")
    description: Mapped[str] = mapped_column(String, default="")
    indicators: Mapped[list] = mapped_column(JSONType, default=list)
    assigned_to: Mapped[str | None] = mapped_column(String, nullable=True)
    outcome: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class FraudRuleDB(Base):
    __tablename__ = "fraud_rules"

    rule_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, index=True)
    rule_type: Mapped[str] = mapped_column(String, default="threshold")
    description: Mapped[str] = mapped_column(String, default="")
    condition: Mapped[dict] = mapped_column(JSONType)
    severity: Mapped[str] = mapped_column(String, default="MEDIUM")
    weight: Mapped[float] = mapped_column(Float, default=10.0)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String, index=True, default="active")
    version: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class FraudInvestigationDB(Base):
    __tablename__ = "fraud_investigations"
    __table_args__ = (
        # At most one active investigation per alert
        Index(
            "uq_fraud_investigations_active_alert",
            "alert_id",
            unique=True,
            postgresql_where=text(_ACTIVE_INVESTIGATION_CLAUSE),
            sqlite_where=text(_ACTIVE_INVESTIGATION_CLAUSE),
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    investigation_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    alert_id: Mapped[str] = mapped_column(String, index=True)
    title: Mapped[str] = mapped_column(String, default="")
    status: Mapped[str] = mapped_column(String, index=True, default="PENDING")
    assignee: Mapped[str | None] = mapped_column(String, nullable=True)
    findings: Mapped[list] = mapped_column(JSONType, default=list)
    fraud_confirmed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    fraud_type: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class BehavioralProfileDB(Base):
    __tablename__ = "behavioral_profiles"

    member_id: Mapped[str] = mapped_column(String, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, default=0)
    claim_count: Mapped[int] = mapped_column(Integer, default=0)
    risk_score: Mapped[float] = mapped_column(Float, default=0.0)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    # Full BehavioralProfile document (baseline, current metrics, anomalies)
    profile: Mapped[dict] = mapped_column(JSONType, default=dict)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class NetworkAnalysisDB(Base):
    __tablename__ = "network_analyses"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    analysis_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    entity_type: Mapped[str] = mapped_column(String)
    entity_id: Mapped[str] = mapped_column(String, index=True)
    claim_id: Mapped[str | None] = mapped_column(String, unique=True, index=True, nullable=True)
    risk_score: Mapped[float] = mapped_column(Float)
    suspicious_patterns: Mapped[list] = mapped_column(JSONType, default=list)
    connections: Mapped[dict] = mapped_column(JSONType, default=dict)
    findings: Mapped[list] = mapped_column(JSONType, default=list)
    confidence: Mapped[float] = mapped_column(Float)
    node_count: Mapped[int] = mapped_column(Integer, default=0)
    truncated: Mapped[bool] = mapped_column(Boolean, default=False)
    analyzed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class RiskAssessmentDB(Base):
    __tablename__ = "risk_assessments"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    claim_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    member_id: Mapped[str] = mapped_column(String, index=True)
    provider_id: Mapped[str] = mapped_column(String, index=True)
    risk_score: Mapped[float] = mapped_column(Float)
    risk_level: Mapped[str] = mapped_column(String, index=True)
    fraud_type: Mapped[str] = mapped_column(String)
    factors: Mapped[dict] = mapped_column(JSONType, default=dict)
    indicators: Mapped[list] = mapped_column(JSONType, default=list)
    rule_violations: Mapped[list] = mapped_column(JSONType, default=list)
    model_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    investigation_required: Mapped[bool] = mapped_column(Boolean, default=False)
    evaluated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
