from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.domain.errors import ConflictError, PlanError
from app.domain.models import EventEnvelope
from app.domain.result import Err, Ok, Result
from app.infra.cache import PlanCache, plan_cache
from app.infra.db import get_engine
from app.infra.events import EventBus, event_bus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """One database transaction plus the events it produced.

    The acting user id is passed to ``start`` explicitly; it is kept on the
    session info and stamped on every recorded event. Events are written to
    the event log inside the transaction and dispatched only after commit.
    """

    def __init__(
        self,
        engine: Engine | None = None,
        bus: EventBus | None = None,
        cache: PlanCache | None = plan_cache,
    ) -> None:
        self._engine = engine
        self._bus = bus or event_bus
        self.cache = cache
        self._session: Session | None = None
        self._pending: list[EventEnvelope] = []
        self.acting_user_id: int | None = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("unit of work has not been started")
        return self._session

    @property
    def active(self) -> bool:
        return self._session is not None

    def start(self, acting_user_id: int | None) -> Session:
        if self._session is not None:
            raise RuntimeError("unit of work already started")
        self.acting_user_id = acting_user_id
        self._pending = []
        self._session = Session(self._engine or get_engine(), expire_on_commit=False)
        self._session.info["acting_user_id"] = acting_user_id
        return self._session

    def emit(self, event_type: str, payload: dict[str, Any], company_id: int | None = None) -> None:
        self._pending.append(
            EventEnvelope(
                event_type=event_type,
                company_id=company_id,
                actor_id=self.acting_user_id,
                payload=payload,
            )
        )

    def commit(self) -> None:
        session = self.session
        events = list(self._pending)
        try:
            for event in events:
                self._bus.record(event, session)
            session.commit()
        except IntegrityError as exc:
            self.rollback()
            raise ConflictError("change conflicts with existing data") from exc
        self._close()
        for event in events:
            self._bus.dispatch(event)

    def rollback(self) -> None:
        if self._session is None:
            return
        try:
            self._session.rollback()
        finally:
            self._close()

    def _close(self) -> None:
        if self._session is not None:
            self._session.close()
        self._session = None
        self._pending = []

    def run(self, acting_user_id: int | None, fn: Callable[[UnitOfWork], T]) -> Result[T, PlanError]:
        """Run ``fn`` in a transaction; domain errors come back as ``Err``."""
        self.start(acting_user_id)
        try:
            value = fn(self)
            self.commit()
        except PlanError as exc:
            self.rollback()
            logger.info("transaction rolled back: %s: %s", type(exc).__name__, exc)
            return Err(exc)
        except IntegrityError as exc:
            self.rollback()
            logger.info("transaction rolled back on integrity error: %s", exc.orig)
            return Err(ConflictError("change conflicts with existing data"))
        except Exception:
            self.rollback()
            logger.exception("transaction rolled back on unexpected error")
            raise
        return Ok(value)
