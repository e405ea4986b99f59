from __future__ import annotations

from typing import Any, TypeVar

from sqlmodel import Session, SQLModel

from app.domain.models import now_utc
from app.infra.unit_of_work import UnitOfWork

RowT = TypeVar("RowT", bound=SQLModel)


class SQLRepository:
    """Repositories share the unit of work's session and report writes as events."""

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    @property
    def session(self) -> Session:
        return self._uow.session

    def _save(
        self,
        row: RowT,
        event_type: str,
        payload: dict[str, Any],
        company_id: int | None = None,
        *,
        touch: bool = False,
    ) -> RowT:
        if touch and hasattr(row, "updated_at"):
            row.updated_at = now_utc()  # type: ignore[attr-defined]
        self.session.add(row)
        self.session.flush()
        self.session.refresh(row)
        self._uow.emit(event_type, {**payload, "id": row.id}, company_id)  # type: ignore[attr-defined]
        return row

    def _remove(
        self,
        row: SQLModel,
        event_type: str,
        payload: dict[str, Any],
        company_id: int | None = None,
    ) -> None:
        self.session.delete(row)
        self.session.flush()
        self._uow.emit(event_type, payload, company_id)
