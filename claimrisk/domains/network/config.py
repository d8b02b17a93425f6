"""Member/provider network analysis configuration."""

import os
from dataclasses import dataclass, field


@dataclass
class TraversalLimits:
    max_hops: int = 2
    max_nodes: int = 200


@dataclass
class PatternThresholds:
    # dense_cluster: small, tightly connected component
    cluster_max_nodes: int = 10
    cluster_min_providers: int = 2
    cluster_min_members: int = 2
    cluster_min_density: float = 0.6
    # member_concentration: a busy provider billing for very few members
    concentration_min_claims: int = 10
    concentration_max_members: int = 3
    concentration_share: float = 0.8
    # shared_member_ring: several providers serving the same members
    ring_min_providers: int = 3
    ring_min_shared_members: int = 3


@dataclass
class NetworkScoring:
    base_score: float = 25.0
    pattern_score: float = 75.0
    base_confidence: float = 0.5
    per_pattern_confidence: float = 0.15
    max_confidence: float = 0.95


@dataclass
class NetworkConfig:
    limits: TraversalLimits = field(default_factory=TraversalLimits)
    patterns: PatternThresholds = field(default_factory=PatternThresholds)
    scoring: NetworkScoring = field(default_factory=NetworkScoring)

    @classmethod
    def from_env(cls) -> "NetworkConfig":
        """Load config with env var overrides. Env vars use NETWORK_ prefix."""
        config = cls()

        if v := os.getenv("NETWORK_MAX_HOPS"):
            config.limits.max_hops = int(v)
        if v := os.getenv("NETWORK_MAX_NODES"):
            config.limits.max_nodes = int(v)
        if v := os.getenv("NETWORK_CLUSTER_MIN_DENSITY"):
            config.patterns.cluster_min_density = float(v)

        return config


# Module-level default instance
default_config = NetworkConfig()
