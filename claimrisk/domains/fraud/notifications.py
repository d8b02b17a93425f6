"""Alert notification delivery.

Delivery runs on detached tasks so a slow or failing notifier never blocks or
rolls back alert creation. The dispatcher tracks its tasks so shutdown can
wait for them.
"""

import asyncio
import json
from abc import ABC, abstractmethod

import structlog
from aiokafka import AIOKafkaProducer

from .models import FraudAlert

logger = structlog.get_logger()


class Notifier(ABC):
    @abstractmethod
    async def send(self, alert: FraudAlert) -> None:
        ...


class LogNotifier(Notifier):
    """Writes the alert to the structured log only."""

    async def send(self, alert: FraudAlert) -> None:
        logger.warning(
            "fraud_alert_notification",
            alert_id=alert.alert_id,
            claim_id=alert.claim_id,
            severity=alert.severity.value,
            risk_score=alert.risk_score,
        )


def alert_payload(alert: FraudAlert) -> dict:
    return {
        "alert_id": alert.alert_id,
        "claim_id": alert.claim_id,
        "member_id": alert.member_id,
        "provider_id": alert.provider_id,
        "alert_type": alert.alert_type,
        "severity": alert.severity.value,
        "status": alert.status.value,
        "risk_score": alert.risk_score,
        "fraud_type": alert.fraud_type.value,
        "description": alert.description,
        "indicators": alert.indicators,
        "created_at": alert.created_at.isoformat(),
    }


class KafkaAlertNotifier(Notifier):
    """Publishes alerts to a Kafka topic, keyed by member id."""

    def __init__(self, producer: AIOKafkaProducer, topic: str = "claimrisk.fraud.alerts") -> None:
        self._producer = producer
        self._topic = topic

    async def send(self, alert: FraudAlert) -> None:
        key = alert.member_id or alert.alert_id
        await self._producer.send_and_wait(
            self._topic,
            value=json.dumps(alert_payload(alert), default=str).encode("utf-8"),
            key=key.encode("utf-8"),
        )
        logger.info("alert_published_to_kafka", alert_id=alert.alert_id, topic=self._topic)


async def create_producer(bootstrap_servers: str, client_id: str = "claimrisk") -> AIOKafkaProducer:
    """Create and start a Kafka producer."""
    producer = AIOKafkaProducer(bootstrap_servers=bootstrap_servers, client_id=client_id)
    await producer.start()
    logger.info("kafka_producer_started", bootstrap_servers=bootstrap_servers)
    return producer


class NotificationDispatcher:
    """Fans each alert out to every notifier on a background task."""

    def __init__(self, notifiers: list[Notifier] | None = None) -> None:
        self._notifiers = list(notifiers) if notifiers is not None else [LogNotifier()]
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, alert: FraudAlert) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(alert), name=f"notify-{alert.alert_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, alert: FraudAlert) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send(alert)
            except Exception:
                logger.exception(
                    "alert_notification_failed",
                    alert_id=alert.alert_id,
                    notifier=type(notifier).__name__,
                )

    async def drain(self, timeout: float | None = 5.0) -> None:
        """Wait for in-flight notifications; cancel whatever is left at the timeout."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("notifications_cancelled_on_drain", count=len(pending))
