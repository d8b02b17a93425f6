"""Pydantic models for member/provider network analysis."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class NodeKind(StrEnum):
    MEMBER = "member"
    PROVIDER = "provider"


class SuspiciousPattern(StrEnum):
    DENSE_CLUSTER = "dense_cluster"
    MEMBER_CONCENTRATION = "member_concentration"
    SHARED_MEMBER_RING = "shared_member_ring"


class NetworkNode(BaseModel):
    node_id: str
    kind: NodeKind
    entity_id: str
    hops: int


class NetworkEdge(BaseModel):
    source: str
    target: str
    weight: int  # shared claim count


class NetworkConnections(BaseModel):
    nodes: list[NetworkNode] = Field(default_factory=list)
    edges: list[NetworkEdge] = Field(default_factory=list)


class PatternFinding(BaseModel):
    pattern: SuspiciousPattern
    nodes: list[str] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)


class NetworkAnalysisResult(BaseModel):
    analysis_id: str
    entity_type: str = "provider"
    entity_id: str
    claim_id: str | None = None
    connections: NetworkConnections = Field(default_factory=NetworkConnections)
    risk_score: float = Field(ge=0, le=100)
    suspicious_patterns: list[SuspiciousPattern] = Field(default_factory=list)
    findings: list[PatternFinding] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=1)
    node_count: int = 0
    truncated: bool = False
    analyzed_at: datetime
