"""
Upsert Service - records a user's notes on modules and levels on competences

Every write goes through the same steps, in this order:
1. caller identity present (AuthError otherwise)
2. value within bounds (ValidationError), before storage is touched
3. referenced module / competence exists (NotFoundError, nothing written)
4. create-or-update keyed by (user, module) / (user, competence)

Storage failures are logged with their details and surface as InternalError.
"""
import logging
import math
from numbers import Real
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import NIVEAU_MAX, NIVEAU_MIN, NOTE_MAX, NOTE_MIN
from ..core.errors import AuthError, InternalError, NotFoundError, ValidationError
from ..database.models import UserCompetenceNiveauDB, UserModuleNoteDB
from ..database.repositories import (
    CompetenceRepository,
    ModuleRepository,
    UserCompetenceNiveauRepository,
    UserModuleNoteRepository,
)

logger = logging.getLogger(__name__)


def validate_note(value: Any) -> float:
    """
    A note is any real number in [0, 6], bounds included.

    Raises:
        ValidationError: not a number, NaN/infinite, or out of range
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError("Note must be a number", field="note")
    value = float(value)
    if math.isnan(value) or not NOTE_MIN <= value <= NOTE_MAX:
        raise ValidationError(
            f"Note must be between {NOTE_MIN:g} and {NOTE_MAX:g}", field="note"
        )
    return value


def validate_niveau(value: Any) -> int:
    """
    A niveau is an integer in [1, 5], bounds included.

    Raises:
        ValidationError: not an integer or out of range
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError("Niveau must be an integer", field="niveau")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError("Niveau must be an integer", field="niveau")
    value = int(value)
    if not NIVEAU_MIN <= value <= NIVEAU_MAX:
        raise ValidationError(
            f"Niveau must be between {NIVEAU_MIN} and {NIVEAU_MAX}", field="niveau"
        )
    return value


def _require_user(user_id: str) -> None:
    if not user_id:
        raise AuthError()


class ProgressService:
    """Create-or-update operations on user-owned rows"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.modules = ModuleRepository(db_session)
        self.competences = CompetenceRepository(db_session)
        self.notes = UserModuleNoteRepository(db_session)
        self.niveaux = UserCompetenceNiveauRepository(db_session)

    def set_grade(self, user_id: str, module_id: str, value: Any) -> UserModuleNoteDB:
        """
        Record the user's note on a module.

        Args:
            user_id: Authenticated caller (never taken from the request body)
            module_id: Module to grade
            value: Note in [0, 6]

        Returns:
            The stored row. Calling again for the same module keeps its id and
            only refreshes note and updated_at.

        Raises:
            AuthError, ValidationError, NotFoundError, InternalError
        """
        _require_user(user_id)
        note = validate_note(value)

        try:
            if not self.modules.exists(module_id):
                raise NotFoundError("module", module_id)
            row, created = self.notes.upsert(user_id, module_id, note)
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to save note: {e}",
                extra={"user_id": user_id, "module_id": module_id},
                exc_info=True,
            )
            raise InternalError("save note") from e

        logger.info(
            "Note created" if created else "Note updated",
            extra={"user_id": user_id, "module_id": module_id, "note": note, "is_new": created},
        )
        return row

    def set_competency_level(self, user_id: str, competence_id: str, value: Any) -> UserCompetenceNiveauDB:
        """
        Record the user's self-assessed level on a competence.

        Args:
            user_id: Authenticated caller
            competence_id: Competence to assess
            value: Integer level in [1, 5]

        Returns:
            The stored row

        Raises:
            AuthError, ValidationError, NotFoundError, InternalError
        """
        _require_user(user_id)
        niveau = validate_niveau(value)

        try:
            if not self.competences.exists(competence_id):
                raise NotFoundError("competence", competence_id)
            row, created = self.niveaux.upsert(user_id, competence_id, niveau)
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to save niveau: {e}",
                extra={"user_id": user_id, "competence_id": competence_id},
                exc_info=True,
            )
            raise InternalError("save niveau") from e

        logger.info(
            "Niveau created" if created else "Niveau updated",
            extra={"user_id": user_id, "competence_id": competence_id, "niveau": niveau, "is_new": created},
        )
        return row
