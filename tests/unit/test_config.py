"""Unit tests for environment-driven configuration."""

from claimrisk.domains.behavior.config import BehaviorConfig
from claimrisk.domains.fraud.config import EnsembleConfig, FraudConfig, ModelEndpoint
from claimrisk.domains.network.config import NetworkConfig


class TestFraudConfig:
    def test_defaults(self):
        config = FraudConfig()
        assert config.levels.critical == 85.0
        assert config.levels.high == 70.0
        assert config.levels.medium == 40.0
        assert config.alerts.monitor_max_claims == 5
        assert config.ensemble.models == []

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("FRAUD_HIGH_THRESHOLD", "65")
        monkeypatch.setenv("FRAUD_MONITOR_MAX_CLAIMS", "8")
        monkeypatch.setenv("FRAUD_MODEL_ENDPOINTS", "gbm=http://models:9000/predict@20, rf=http://rf/predict")
        config = FraudConfig.from_env()
        assert config.levels.high == 65.0
        assert config.alerts.monitor_max_claims == 8
        assert config.ensemble.models == [
            ModelEndpoint(model_id="gbm", url="http://models:9000/predict", indicator_weight=20.0),
            ModelEndpoint(model_id="rf", url="http://rf/predict"),
        ]

    def test_parse_endpoints_skips_blanks(self):
        assert EnsembleConfig.parse_endpoints(" , ") == []


class TestDomainConfigs:
    def test_behavior_from_env(self, monkeypatch):
        monkeypatch.setenv("BEHAVIOR_EMA_ALPHA", "0.3")
        monkeypatch.setenv("BEHAVIOR_MAX_WRITE_ATTEMPTS", "5")
        config = BehaviorConfig.from_env()
        assert config.profile.ema_alpha == 0.3
        assert config.max_write_attempts == 5

    def test_network_from_env(self, monkeypatch):
        monkeypatch.setenv("NETWORK_MAX_HOPS", "3")
        config = NetworkConfig.from_env()
        assert config.limits.max_hops == 3
        assert config.limits.max_nodes == 200
