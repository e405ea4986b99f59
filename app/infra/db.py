from __future__ import annotations

import logging
import os

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import create_engine

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "postgresql+psycopg://plans:plans@db:5432/saas_plans",
)
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in {"1", "true", "yes"}


def build_engine(url: str) -> Engine:
    return create_engine(url, pool_pre_ping=True, echo=SQL_ECHO)


def probe_engine(target: Engine, name: str) -> bool:
    try:
        with target.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.warning("%s readiness probe failed: %s", name, exc)
        return False


engine = build_engine(DATABASE_URL)


def get_engine() -> Engine:
    return engine


def check_db_ready() -> bool:
    return probe_engine(get_engine(), "plan database")
