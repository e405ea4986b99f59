from __future__ import annotations


class PlanError(Exception):
    """Base class for expected failures of plan and subscription operations."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PlanError):
    pass


class NotFoundError(PlanError):
    pass


class ConflictError(PlanError):
    pass


class InvalidStateError(PlanError):
    pass


class AlreadyProcessedError(InvalidStateError):
    pass


class LimitExceededError(PlanError):
    def __init__(
        self,
        message: str,
        *,
        scope: str | None = None,
        limit: int | None = None,
        requested: int | None = None,
    ) -> None:
        super().__init__(message)
        self.scope = scope
        self.limit = limit
        self.requested = requested
