"""
Transaction helper for multi-statement writes (seed loading)

Repository methods commit on their own. When several writes must succeed or
fail together, wrap them in `transaction()` and call the repositories with
`commit=False`:

    with transaction(db, "Load seed document"):
        domaine_repo.save(..., commit=False)
        module_repo.save(..., commit=False)
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session, description: str = "transaction") -> Iterator[Session]:
    """Commit on success, roll back and re-raise on any error"""
    try:
        yield db
        db.commit()
        logger.debug("Transaction committed", extra={"description": description})
    except Exception:
        db.rollback()
        logger.error("Transaction rolled back", extra={"description": description}, exc_info=True)
        raise
