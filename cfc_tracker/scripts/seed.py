"""
Script to load a seed document (reference data plus one user's progress)

The document has the same shape as GET /api/export/json, so an export can be
loaded into another environment. Running it twice changes nothing.

--curriculum loads the curriculum files instead: competence.json (domains,
competences and the titles of their modules) and db.json (modules per year
with the notes obtained so far).

Usage:
    python -m cfc_tracker.scripts.seed seed-data.json
    python -m cfc_tracker.scripts.seed seed-data.json --user-email jane@example.ch
    python -m cfc_tracker.scripts.seed seed-data.json --reference-only
    python -m cfc_tracker.scripts.seed --curriculum competence.json db.json
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from ..core.errors import TrackerError
from ..core.logging_config import configure_logging
from ..database.config import Database, DatabaseConfig
from ..services.seed_service import SeedReport, SeedService

logger = logging.getLogger(__name__)

DEFAULT_USER_NAME = "Apprenti"
DEFAULT_USER_EMAIL = "apprenti@example.ch"


def load_file(path: Path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def seed(
    database: Database,
    data: dict,
    user_name: str = DEFAULT_USER_NAME,
    user_email: str = DEFAULT_USER_EMAIL,
    reference_only: bool = False,
) -> SeedReport:
    """Load `data`; notes and niveaux go to the user with `user_email` (created if no user exists)"""
    database.create_all()
    with database.session() as session:
        service = SeedService(session)
        user_id = None
        if not reference_only:
            user_id = service.ensure_default_user(user_name, user_email).id
        return service.load(data, user_id=user_id)


def seed_curriculum(
    database: Database,
    competence_data: list,
    year_data: list,
    user_name: str = DEFAULT_USER_NAME,
    user_email: str = DEFAULT_USER_EMAIL,
    reference_only: bool = False,
) -> SeedReport:
    """Load the curriculum files; notes go to the user with `user_email`"""
    database.create_all()
    with database.session() as session:
        service = SeedService(session)
        user_id = None
        if not reference_only:
            user_id = service.ensure_default_user(user_name, user_email).id
        return service.load_curriculum(competence_data, year_data, user_id=user_id)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Load a CFC tracker seed document")
    parser.add_argument("file", type=Path, nargs="?", help="JSON seed document")
    parser.add_argument(
        "--curriculum",
        type=Path,
        nargs=2,
        metavar=("COMPETENCES_JSON", "YEARS_JSON"),
        help="Load competence.json and db.json instead of a seed document",
    )
    parser.add_argument("--user-email", default=DEFAULT_USER_EMAIL)
    parser.add_argument("--user-name", default=DEFAULT_USER_NAME)
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    parser.add_argument(
        "--reference-only",
        action="store_true",
        help="Load domains, competences, modules and links only",
    )
    args = parser.parse_args(argv)
    if (args.file is None) == (args.curriculum is None):
        parser.error("give either a seed document or --curriculum, not both")

    configure_logging()

    contents = []
    for path in args.curriculum or [args.file]:
        try:
            contents.append(load_file(path))
        except (OSError, json.JSONDecodeError) as e:
            print(f"✗ Cannot read {path}: {e}", file=sys.stderr)
            return 1

    config = DatabaseConfig.from_env()
    if args.database_url:
        config.url = args.database_url
    database = Database(config)

    try:
        if args.curriculum:
            report = seed_curriculum(database, *contents, args.user_name, args.user_email, args.reference_only)
        else:
            report = seed(database, contents[0], args.user_name, args.user_email, args.reference_only)
    except TrackerError as e:
        print(f"✗ Seed failed: {e.message}", file=sys.stderr)
        return 1
    except SQLAlchemyError as e:
        logger.error(f"Seed failed: {e}", exc_info=True)
        print(f"✗ Seed failed: {e.__class__.__name__}", file=sys.stderr)
        return 1
    finally:
        database.dispose()

    print("✓ Seed loaded:")
    print(f"  - {report.domaines} domaines")
    print(f"  - {report.competences} competences")
    print(f"  - {report.modules} modules")
    print(f"  - {report.liens} liens competence/module")
    print(f"  - {report.notes} notes")
    print(f"  - {report.niveaux} niveaux")
    if report.skipped:
        print(f"  - {report.skipped} entries skipped (unknown references)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
