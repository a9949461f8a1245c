"""Apply Alembic migrations up to head."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from chat_relay.core.logging_config import configure_logging
from chat_relay.core.settings import settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def build_config(url: str | None = None) -> Config:
    """Return an Alembic config pointed at the project's migrations."""
    cfg = Config(str(MIGRATIONS_DIR / "alembic.ini"))
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Alembic runs on a blocking driver.
    cfg.set_main_option("sqlalchemy.url", url or settings.database_url_sync)
    return cfg


def run_upgrade_head(url: str | None = None) -> None:
    """Upgrade the database at ``url`` (default: ``DATABASE_URL``) to head."""
    cfg = build_config(url)
    logger.info("Upgrading schema to head")
    command.upgrade(cfg, "head")


def main() -> None:
    parser = argparse.ArgumentParser(description="Apply chat relay migrations")
    parser.add_argument("--url", help="Synchronous SQLAlchemy URL; defaults to DATABASE_URL")
    args = parser.parse_args()

    configure_logging(settings.log_level)
    run_upgrade_head(args.url)


if __name__ == "__main__":
    main()
