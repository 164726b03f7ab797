#!/usr/bin/env python3
"""Database bootstrap: wait for Postgres, then run Alembic migrations.

- Always run `alembic upgrade head` on startup.
- If migrations fail, fail fast (don't start with an unknown schema).
"""

import logging
import os
import sys
import time

from sqlalchemy import create_engine, text

from core.database import build_database_url
from core.logging import setup_logging

logger = logging.getLogger("run_migrations")


def check_db_ready(url: str) -> bool:
    """Check if database is ready"""
    engine = create_engine(url, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
    finally:
        engine.dispose()


def _get_alembic_config():
    """Load Alembic config for programmatic migrations."""
    from alembic.config import Config

    here = os.path.dirname(os.path.abspath(__file__))
    return Config(os.path.join(here, "alembic.ini"))


def alembic_upgrade_head() -> None:
    """Apply all pending migrations."""
    from alembic import command

    command.upgrade(_get_alembic_config(), "head")


def main():
    setup_logging()
    url = build_database_url()
    logger.info("Waiting for database to be ready...")
    max_retries = 30

    for attempt in range(1, max_retries + 1):
        if check_db_ready(url):
            logger.info("Database is ready")
            break
        logger.info(f"Database is unavailable - sleeping (attempt {attempt}/{max_retries})")
        time.sleep(1)
    else:
        logger.error("Database is not ready after maximum retries")
        sys.exit(1)

    try:
        alembic_upgrade_head()
    except Exception as e:
        logger.error(f"Alembic upgrade failed: {e}", exc_info=True)
        sys.exit(1)
    logger.info("Migrations completed successfully")


if __name__ == '__main__':
    main()
