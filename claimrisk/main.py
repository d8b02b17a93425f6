"""FastAPI application entry point for the claim risk engine."""

import contextlib
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from claimrisk.api.deps import services
from claimrisk.api.middleware.error_handler import global_exception_handler
from claimrisk.api.middleware.logging import StructuredLoggingMiddleware
from claimrisk.api.routes.fraud import router as fraud_router
from claimrisk.api.routes.health import router as health_router
from claimrisk.config import settings
from claimrisk.domains.behavior.config import BehaviorConfig
from claimrisk.domains.fraud.claims_client import HttpClaimsReader
from claimrisk.domains.fraud.config import FraudConfig
from claimrisk.domains.fraud.ensemble import HttpModelClient, ModelEnsemble
from claimrisk.domains.fraud.errors import ServiceUnavailableError
from claimrisk.domains.fraud.notifications import (
    KafkaAlertNotifier,
    LogNotifier,
    NotificationDispatcher,
    create_producer,
)
from claimrisk.domains.network.config import NetworkConfig
from claimrisk.shared.logging import setup_logging

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0

_kafka_producer = None


def kafka_enabled() -> bool:
    return _kafka_producer is not None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logic."""
    global APP_START_TIME, _kafka_producer
    APP_START_TIME = time.time()
    setup_logging(settings.log_level)

    logger.info(
        "claimrisk_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    from claimrisk.db.database import init_db

    await init_db()

    services.fraud_config = FraudConfig.from_env()
    services.behavior_config = BehaviorConfig.from_env()
    services.network_config = NetworkConfig.from_env()

    # Alerts always go to the log; Kafka is added when configured and reachable
    notifiers = [LogNotifier()]
    if settings.kafka_bootstrap_servers:
        try:
            _kafka_producer = await create_producer(settings.kafka_bootstrap_servers, settings.kafka_client_id)
            notifiers.append(KafkaAlertNotifier(_kafka_producer, services.fraud_config.alerts.kafka_topic))
        except Exception:
            logger.warning("kafka_producer_failed_to_start", exc_info=True)
            _kafka_producer = None
    services.dispatcher = NotificationDispatcher(notifiers)

    ensemble_config = services.fraud_config.ensemble
    model_client = None
    if ensemble_config.models:
        model_client = HttpModelClient(ensemble_config.models, timeout_seconds=ensemble_config.timeout_seconds)
    services.ensemble = ModelEnsemble(model_client, ensemble_config)
    logger.info("model_ensemble_configured", models=[m.model_id for m in ensemble_config.models])

    claims_reader = HttpClaimsReader(
        settings.claims_service_url, timeout_seconds=settings.claims_service_timeout_seconds
    )
    services.claims = claims_reader

    yield

    await services.dispatcher.drain()
    if model_client is not None:
        await model_client.aclose()
    await claims_reader.aclose()
    if _kafka_producer is not None:
        with contextlib.suppress(Exception):
            await _kafka_producer.stop()
        _kafka_producer = None
    logger.info("claimrisk_shutting_down")


app = FastAPI(
    title="Claim Risk Engine",
    description="Fraud risk scoring and alerting for insurance claims",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(StructuredLoggingMiddleware)
# Only the bare Exception handler runs in ServerErrorMiddleware, which re-raises
for exc_type in (ServiceUnavailableError, ValueError, PermissionError, LookupError, Exception):
    app.add_exception_handler(exc_type, global_exception_handler)

app.include_router(health_router)
app.include_router(fraud_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
