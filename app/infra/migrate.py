from __future__ import annotations

import logging

from alembic import command
from alembic.config import Config

from app.infra.logging_config import setup_logging

logger = logging.getLogger(__name__)


def run_upgrade_head(config_path: str = "alembic.ini") -> None:
    config = Config(config_path)
    logger.info("upgrading plan database to head")
    command.upgrade(config, "head")


if __name__ == "__main__":
    setup_logging()
    run_upgrade_head()
