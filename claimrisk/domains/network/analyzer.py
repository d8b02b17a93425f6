"""Member/provider relationship analysis over claim history.

Builds a bipartite graph (members on one side, providers on the other, one
weighted edge per member/provider pair) from the claims visible to an
evaluation, walks it outward from the claim's provider and member with hop
and node caps, and looks for collusion-shaped structures in what it reached.
"""

import uuid
from abc import ABC, abstractmethod
from collections import deque

import networkx as nx
import structlog

from claimrisk.domains.fraud.models import ClaimContext, ClaimRecord

from .config import NetworkConfig, default_config
from .models import (
    NetworkAnalysisResult,
    NetworkConnections,
    NetworkEdge,
    NetworkNode,
    NodeKind,
    PatternFinding,
    SuspiciousPattern,
)

logger = structlog.get_logger()


class NetworkAnalysisRepository(ABC):
    @abstractmethod
    async def save(self, result: NetworkAnalysisResult) -> None:
        ...


def member_node(member_id: str) -> str:
    return f"member:{member_id}"


def provider_node(provider_id: str) -> str:
    return f"provider:{provider_id}"


def build_claim_graph(claims: list[ClaimRecord]) -> nx.Graph:
    """Bipartite member/provider graph; edge weight counts shared claims."""
    graph = nx.Graph()
    seen: set[str] = set()
    for claim in claims:
        if claim.id in seen:
            continue
        seen.add(claim.id)
        m, p = member_node(claim.member_id), provider_node(claim.provider_id)
        graph.add_node(m, kind=NodeKind.MEMBER, entity_id=claim.member_id)
        graph.add_node(p, kind=NodeKind.PROVIDER, entity_id=claim.provider_id)
        if graph.has_edge(m, p):
            graph[m][p]["weight"] += 1
        else:
            graph.add_edge(m, p, weight=1)
    return graph


class NetworkAnalyzer:
    """Detects dense clusters, member concentration and shared-member rings."""

    def __init__(
        self,
        repository: NetworkAnalysisRepository | None = None,
        config: NetworkConfig | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or default_config

    async def analyze_connections(self, context: ClaimContext) -> NetworkAnalysisResult:
        result = self.analyze(context)

        if result.suspicious_patterns and self._repository is not None:
            await self._repository.save(result)

        logger.info(
            "network_analyzed",
            claim_id=context.claim_id,
            provider_id=context.provider_id,
            node_count=result.node_count,
            truncated=result.truncated,
            patterns=[p.value for p in result.suspicious_patterns],
        )
        return result

    def analyze(self, context: ClaimContext) -> NetworkAnalysisResult:
        """Pure part of the analysis; no persistence."""
        claims = [*context.member_history, *context.provider_history, context.claim]
        graph = build_claim_graph(claims)

        seeds = [provider_node(context.provider_id), member_node(context.member_id)]
        hops, truncated = self._bounded_bfs(graph, seeds)
        subgraph = graph.subgraph(hops)

        findings = [
            *self._dense_clusters(subgraph),
            *self._member_concentration(subgraph),
            *self._shared_member_rings(subgraph),
        ]
        patterns = sorted({f.pattern for f in findings}, key=list(SuspiciousPattern).index)

        scoring = self._config.scoring
        if patterns:
            risk_score = scoring.pattern_score
            confidence = min(
                scoring.base_confidence + scoring.per_pattern_confidence * len(patterns),
                scoring.max_confidence,
            )
        else:
            risk_score = scoring.base_score
            confidence = scoring.base_confidence

        return NetworkAnalysisResult(
            analysis_id=str(uuid.uuid4()),
            entity_type="provider",
            entity_id=context.provider_id,
            claim_id=context.claim_id,
            connections=self._connections(subgraph, hops),
            risk_score=risk_score,
            suspicious_patterns=patterns,
            findings=findings,
            confidence=round(confidence, 4),
            node_count=subgraph.number_of_nodes(),
            truncated=truncated,
            analyzed_at=context.now,
        )

    # --- Traversal ---

    def _bounded_bfs(self, graph: nx.Graph, seeds: list[str]) -> tuple[dict[str, int], bool]:
        """Breadth-first walk capped by hops and node count.

        Returns node -> hop distance and whether the node cap cut the walk.
        """
        limits = self._config.limits
        hops: dict[str, int] = {}
        queue: deque[str] = deque()
        for seed in seeds:
            if seed in graph and seed not in hops:
                hops[seed] = 0
                queue.append(seed)

        while queue:
            node = queue.popleft()
            if hops[node] >= limits.max_hops:
                continue
            for neighbor in sorted(graph.neighbors(node)):
                if neighbor in hops:
                    continue
                if len(hops) >= limits.max_nodes:
                    return hops, True
                hops[neighbor] = hops[node] + 1
                queue.append(neighbor)

        return hops, False

    # --- Pattern detection ---

    @staticmethod
    def _kind_count(graph: nx.Graph, nodes, kind: NodeKind) -> int:
        return sum(1 for n in nodes if graph.nodes[n]["kind"] == kind)

    def _dense_clusters(self, graph: nx.Graph) -> list[PatternFinding]:
        cfg = self._config.patterns
        findings = []
        for component in nx.connected_components(graph):
            if len(component) > cfg.cluster_max_nodes:
                continue
            providers = self._kind_count(graph, component, NodeKind.PROVIDER)
            members = self._kind_count(graph, component, NodeKind.MEMBER)
            if providers < cfg.cluster_min_providers or members < cfg.cluster_min_members:
                continue
            density = nx.density(graph.subgraph(component))
            if density >= cfg.cluster_min_density:
                findings.append(
                    PatternFinding(
                        pattern=SuspiciousPattern.DENSE_CLUSTER,
                        nodes=sorted(component),
                        details={"density": round(density, 4), "providers": providers, "members": members},
                    )
                )
        return findings

    def _member_concentration(self, graph: nx.Graph) -> list[PatternFinding]:
        cfg = self._config.patterns
        findings = []
        for node, data in sorted(graph.nodes(data=True)):
            if data["kind"] != NodeKind.PROVIDER:
                continue
            weights = sorted((graph[node][m]["weight"] for m in graph.neighbors(node)), reverse=True)
            total = sum(weights)
            if total < cfg.concentration_min_claims:
                continue
            top_share = sum(weights[: cfg.concentration_max_members]) / total
            if top_share >= cfg.concentration_share:
                findings.append(
                    PatternFinding(
                        pattern=SuspiciousPattern.MEMBER_CONCENTRATION,
                        nodes=[node],
                        details={
                            "claim_count": total,
                            "member_count": len(weights),
                            "top_member_share": round(top_share, 4),
                        },
                    )
                )
        return findings

    def _shared_member_rings(self, graph: nx.Graph) -> list[PatternFinding]:
        cfg = self._config.patterns
        need_members = cfg.ring_min_shared_members
        member_sets = {
            node: set(graph.neighbors(node))
            for node, data in graph.nodes(data=True)
            if data["kind"] == NodeKind.PROVIDER and graph.degree(node) >= need_members
        }
        names = sorted(member_sets)

        def extend(chosen: list[str], shared: set[str], start: int) -> tuple[list[str], set[str]] | None:
            if len(chosen) == cfg.ring_min_providers:
                return chosen, shared
            for i in range(start, len(names)):
                common = shared & member_sets[names[i]] if chosen else member_sets[names[i]]
                if len(common) >= need_members:
                    found = extend([*chosen, names[i]], common, i + 1)
                    if found is not None:
                        return found
            return None

        found = extend([], set(), 0)
        if found is None:
            return []
        providers, shared = found
        return [
            PatternFinding(
                pattern=SuspiciousPattern.SHARED_MEMBER_RING,
                nodes=providers + sorted(shared),
                details={"providers": len(providers), "shared_members": len(shared)},
            )
        ]

    @staticmethod
    def _connections(graph: nx.Graph, hops: dict[str, int]) -> NetworkConnections:
        nodes = [
            NetworkNode(node_id=n, kind=data["kind"], entity_id=data["entity_id"], hops=hops[n])
            for n, data in sorted(graph.nodes(data=True))
        ]
        edges = [
            NetworkEdge(source=a, target=b, weight=data["weight"])
            for a, b, data in sorted(graph.edges(data=True))
        ]
        return NetworkConnections(nodes=nodes, edges=edges)
