#!/usr/bin/env python3
"""Run Alembic migrations on application startup.

This script ensures the database schema is up-to-date before starting
the API server.
"""
import logging
import sys
import time
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.config import get_settings
from app.core.logging import configure_logging

logger = logging.getLogger(__name__)


def wait_for_db(database_url: str, max_retries: int = 30, retry_interval: int = 2) -> bool:
    """Wait for database to become available.

    Args:
        database_url: SQLAlchemy database URL
        max_retries: Maximum number of connection attempts
        retry_interval: Seconds to wait between retries

    Returns:
        True if database is available, False otherwise
    """
    logger.info("Waiting for database to become available...")

    engine = create_engine(database_url, pool_pre_ping=True)

    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection established")
            engine.dispose()
            return True
        except OperationalError as e:
            if attempt == max_retries:
                logger.error(f"Failed to connect to database after {max_retries} attempts")
                logger.error(f"  Error: {e}")
                engine.dispose()
                return False

            logger.warning(f"  Attempt {attempt}/{max_retries} failed, retrying in {retry_interval}s...")
            time.sleep(retry_interval)

    engine.dispose()
    return False


def current_revision(database_url: str) -> str | None:
    """Return the revision stamped in the database, or None before the first migration."""
    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            if not inspect(conn).has_table("alembic_version"):
                return None
            return conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
    finally:
        engine.dispose()


def run_migrations() -> bool:
    """Run Alembic migrations to upgrade database to latest version.

    Returns:
        True if migrations succeeded, False otherwise
    """
    try:
        alembic_ini_path = Path(__file__).parent.parent / "alembic.ini"

        if not alembic_ini_path.exists():
            logger.error(f"Alembic config not found at {alembic_ini_path}")
            return False

        alembic_cfg = Config(str(alembic_ini_path))
        alembic_cfg.set_main_option("script_location", str(alembic_ini_path.parent / "alembic"))

        settings = get_settings()
        logger.info("Running Alembic migrations to 'head'...")

        try:
            revision = current_revision(settings.database_url)
            if revision:
                logger.info(f"  Current database revision: {revision}")
            else:
                logger.info("  Database not yet migrated (alembic_version table missing)")
        except Exception as e:
            logger.warning(f"  Could not check current revision: {e}")

        command.upgrade(alembic_cfg, "head")

        logger.info("Migrations completed successfully")
        return True

    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        return False


def main() -> int:
    """Main entry point for migration script.

    Returns:
        Exit code (0 = success, 1 = failure)
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    if not wait_for_db(settings.database_url):
        logger.error("Database is not available. Exiting.")
        return 1

    if not run_migrations():
        logger.error("Migrations failed. Exiting.")
        return 1

    logger.info("Migration process completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
