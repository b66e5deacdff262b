from __future__ import annotations

import logging
import os

from alembic import command
from alembic.config import Config

from app.infra.logging_config import configure_logging

ALEMBIC_CONFIG = os.getenv("ALEMBIC_CONFIG", "alembic.ini")

log = logging.getLogger(__name__)


def run_upgrade_head(config_path: str | None = None) -> None:
    config = Config(config_path or ALEMBIC_CONFIG)
    log.info("migrate.upgrade_head config=%s", config.config_file_name)
    command.upgrade(config, "head")


if __name__ == "__main__":
    configure_logging()
    run_upgrade_head()
