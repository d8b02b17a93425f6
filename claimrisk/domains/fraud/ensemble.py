"""Adapter over external fraud prediction models.

Models are called in parallel, each under a timeout. A model that errors or
times out contributes no prediction; the evaluation carries on without it.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from .config import EnsembleConfig, ModelEndpoint
from .errors import ModelUnavailableError
from .models import ClaimContext, ModelPrediction, RiskFactorSet

logger = structlog.get_logger()


class ModelClient(ABC):
    @abstractmethod
    async def predict(self, model_id: str, features: dict[str, Any]) -> ModelPrediction:
        """Return a prediction or raise ModelUnavailableError."""
        ...


class HttpModelClient(ModelClient):
    """Calls model servers over HTTP.

    Each endpoint accepts ``POST {"model_id", "features"}`` and answers
    ``{"probability": float, "confidence": float}``.
    """

    def __init__(
        self,
        endpoints: list[ModelEndpoint],
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 2.0,
    ) -> None:
        self._urls = {e.model_id: e.url for e in endpoints}
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def predict(self, model_id: str, features: dict[str, Any]) -> ModelPrediction:
        url = self._urls.get(model_id)
        if url is None:
            raise ModelUnavailableError(f"No endpoint configured for model {model_id}")
        try:
            resp = await self._client.post(url, json={"model_id": model_id, "features": features})
            resp.raise_for_status()
            body = resp.json()
            return ModelPrediction(
                model_id=model_id,
                probability=float(body["probability"]),
                confidence=float(body.get("confidence", body["probability"])),
            )
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            raise ModelUnavailableError(f"Model {model_id} failed: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()


def model_features(context: ClaimContext, factors: RiskFactorSet) -> dict[str, Any]:
    """Flat feature payload sent to every model."""
    claim = context.claim
    return {
        "claim_id": claim.id,
        "amount": claim.amount,
        "diagnosis_code": claim.diagnosis_code,
        "member_history_count": len(context.prior_member_claims()),
        "provider_history_count": len(context.prior_provider_claims()),
        **{f"factor_{name}": value for name, value in factors.as_dict().items()},
    }


class ModelEnsemble:
    def __init__(self, client: ModelClient | None, config: EnsembleConfig | None = None) -> None:
        self._client = client
        self._config = config or EnsembleConfig()

    @property
    def models(self) -> list[ModelEndpoint]:
        return list(self._config.models)

    async def predict(self, context: ClaimContext, factors: RiskFactorSet) -> list[ModelPrediction]:
        """Predictions from every model that answered in time.

        Cancelling the caller cancels the in-flight model calls.
        """
        if self._client is None or not self._config.models:
            return []

        features = model_features(context, factors)
        results = await asyncio.gather(
            *(self._predict_one(endpoint, features, context.claim_id) for endpoint in self._config.models)
        )
        return [r for r in results if r is not None]

    async def _predict_one(
        self, endpoint: ModelEndpoint, features: dict[str, Any], claim_id: str
    ) -> ModelPrediction | None:
        try:
            prediction = await asyncio.wait_for(
                self._client.predict(endpoint.model_id, features),
                timeout=self._config.timeout_seconds,
            )
        except TimeoutError:
            logger.warning("model_prediction_timeout", model_id=endpoint.model_id, claim_id=claim_id)
            return None
        except ModelUnavailableError as exc:
            logger.warning(
                "model_prediction_failed", model_id=endpoint.model_id, claim_id=claim_id, error=str(exc)
            )
            return None
        except Exception:
            logger.exception("model_prediction_error", model_id=endpoint.model_id, claim_id=claim_id)
            return None

        return prediction.model_copy(update={"indicator_weight": endpoint.indicator_weight})
