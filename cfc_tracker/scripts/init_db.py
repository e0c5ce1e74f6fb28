"""
Script to create the tracker tables

Usage:
    python -m cfc_tracker.scripts.init_db [--database-url URL]
"""
import argparse
import logging

from ..core.logging_config import configure_logging
from ..database.config import Database, DatabaseConfig

logger = logging.getLogger(__name__)


def init_db(database_url: str = None) -> None:
    """Create all tables (existing ones are left untouched)"""
    config = DatabaseConfig.from_env()
    if database_url:
        config.url = database_url

    database = Database(config)
    try:
        print("Creating database tables...")
        database.create_all()
        print("✓ Tables created successfully!")
    finally:
        database.dispose()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Create the CFC tracker database tables")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    args = parser.parse_args(argv)

    configure_logging()
    init_db(args.database_url)


if __name__ == "__main__":
    main()
