"""Typed errors raised by the fraud engine."""


class FraudEngineError(Exception):
    """Base class for engine errors."""


class NotFoundError(FraudEngineError, LookupError):
    """A required input (claim, member, provider, alert, ...) does not exist."""

    def __init__(self, entity: str, entity_id: str | int) -> None:
        self.entity = entity
        self.entity_id = str(entity_id)
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidTransitionError(FraudEngineError, ValueError):
    def __init__(self, entity: str, current: str, target: str) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"Invalid {entity} transition: {current} -> {target}")


class ActiveInvestigationExistsError(FraudEngineError, ValueError):
    def __init__(self, alert_id: str, investigation_id: str) -> None:
        self.alert_id = alert_id
        self.investigation_id = investigation_id
        super().__init__(
            f"Alert {alert_id} already has an active investigation ({investigation_id})"
        )


class ModelUnavailableError(FraudEngineError):
    """A prediction model failed or timed out. Never leaves the ensemble adapter."""


class ProfileConflictError(FraudEngineError):
    """Concurrent write detected on a behavioral profile. Retried by the profiler."""


class ServiceUnavailableError(FraudEngineError):
    """A collaborator the operation depends on is not configured."""
