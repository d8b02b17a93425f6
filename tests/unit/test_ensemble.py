"""Unit tests for the model ensemble adapter."""

import asyncio
import json

import httpx
import pytest

from claimrisk.domains.fraud.config import EnsembleConfig, ModelEndpoint
from claimrisk.domains.fraud.ensemble import HttpModelClient, ModelClient, ModelEnsemble, model_features
from claimrisk.domains.fraud.errors import ModelUnavailableError
from claimrisk.domains.fraud.models import ModelPrediction, RiskFactorSet

FACTORS = RiskFactorSet(amount=40.0)


class _ScriptedClient(ModelClient):
    """Answers per model id: a probability, an exception, or a hang."""

    def __init__(self, behavior: dict) -> None:
        self.behavior = behavior
        self.calls: list[str] = []

    async def predict(self, model_id, features):
        self.calls.append(model_id)
        action = self.behavior[model_id]
        if action == "hang":
            await asyncio.sleep(10)
        if isinstance(action, Exception):
            raise action
        return ModelPrediction(model_id=model_id, probability=action, confidence=0.8)


def _config(*model_ids: str, timeout: float = 0.05, weight: float = 0.0) -> EnsembleConfig:
    return EnsembleConfig(
        timeout_seconds=timeout,
        models=[ModelEndpoint(model_id=m, url=f"http://models/{m}", indicator_weight=weight) for m in model_ids],
    )


class TestModelEnsemble:
    @pytest.mark.asyncio
    async def test_no_models_configured(self, sample_context):
        client = _ScriptedClient({})
        assert await ModelEnsemble(client, EnsembleConfig()).predict(sample_context, FACTORS) == []
        assert await ModelEnsemble(None, _config("a")).predict(sample_context, FACTORS) == []
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_all_models_answer(self, sample_context):
        client = _ScriptedClient({"a": 0.9, "b": 0.1})
        predictions = await ModelEnsemble(client, _config("a", "b")).predict(sample_context, FACTORS)
        assert [p.model_id for p in predictions] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_timeout_and_failure_excluded(self, sample_context):
        client = _ScriptedClient({"slow": "hang", "broken": ModelUnavailableError("down"), "ok": 0.7})
        predictions = await ModelEnsemble(client, _config("slow", "broken", "ok")).predict(sample_context, FACTORS)
        assert [p.model_id for p in predictions] == ["ok"]

    @pytest.mark.asyncio
    async def test_unexpected_error_excluded(self, sample_context):
        client = _ScriptedClient({"a": RuntimeError("bug"), "b": 0.3})
        predictions = await ModelEnsemble(client, _config("a", "b")).predict(sample_context, FACTORS)
        assert [p.model_id for p in predictions] == ["b"]

    @pytest.mark.asyncio
    async def test_indicator_weight_copied_from_endpoint(self, sample_context):
        client = _ScriptedClient({"a": 0.9})
        predictions = await ModelEnsemble(client, _config("a", weight=12.5)).predict(sample_context, FACTORS)
        assert predictions[0].indicator_weight == 12.5

    def test_features_include_factors(self, sample_context):
        features = model_features(sample_context, FACTORS)
        assert features["claim_id"] == sample_context.claim_id
        assert features["factor_amount"] == 40.0
        assert features["member_history_count"] == 0


class TestHttpModelClient:
    @pytest.mark.asyncio
    async def test_successful_prediction(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"probability": 0.82, "confidence": 0.6})

        client = HttpModelClient(
            [ModelEndpoint(model_id="gbm", url="http://models/gbm")],
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        prediction = await client.predict("gbm", {"amount": 100})
        await client.aclose()

        assert prediction.probability == 0.82
        assert prediction.confidence == 0.6
        assert seen == {"model_id": "gbm", "features": {"amount": 100}}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [httpx.Response(503), httpx.Response(200, json={"unexpected": True})],
    )
    async def test_bad_response_is_unavailable(self, response):
        client = HttpModelClient(
            [ModelEndpoint(model_id="gbm", url="http://models/gbm")],
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)),
        )
        with pytest.raises(ModelUnavailableError):
            await client.predict("gbm", {})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unknown_model(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        client = HttpModelClient([], client=httpx.AsyncClient(transport=transport))
        with pytest.raises(ModelUnavailableError):
            await client.predict("missing", {})
        await client.aclose()
