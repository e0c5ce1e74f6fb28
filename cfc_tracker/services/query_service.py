"""
Query Gateways - read operations feeding the dashboards and the exports

Reference data is left-joined with the caller's rows, so modules and
competences without a note / niveau are still listed (with None).
Listings are always ordered by stable keys: year then module code,
domain name then competence name.

A storage failure while reading is logged and yields an empty list, so the
page shell can still render.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import ANNEE_MAX, ANNEE_MIN
from ..core.errors import ValidationError
from ..database.models import ModuleDB, UserModuleNoteDB
from ..database.repositories import CompetenceModuleRepository, CompetenceRepository, ModuleRepository
from ..models.progress import CompetenceWithModules, CompetenceWithNiveau, ModuleWithNote

logger = logging.getLogger(__name__)


def to_module_with_note(module: ModuleDB, note: Optional[UserModuleNoteDB]) -> ModuleWithNote:
    return ModuleWithNote(
        id=module.id,
        nom=module.nom,
        code=module.code,
        annee=module.annee,
        is_cie=bool(module.is_cie),
        note=note.note if note is not None else None,
        note_id=note.id if note is not None else None,
        note_updated_at=note.updated_at if note is not None else None,
    )


class ProgressQueryService:
    """Parameterized read operations scoped to one user"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.module_repo = ModuleRepository(db_session)
        self.competence_repo = CompetenceRepository(db_session)
        self.link_repo = CompetenceModuleRepository(db_session)

    def modules_for_year(self, user_id: str, annee: int) -> List[ModuleWithNote]:
        """
        All modules of a year with the user's note, ordered by code.

        Raises:
            ValidationError: annee outside 1..4
        """
        if isinstance(annee, bool) or not isinstance(annee, int) or not ANNEE_MIN <= annee <= ANNEE_MAX:
            raise ValidationError(f"Annee must be between {ANNEE_MIN} and {ANNEE_MAX}", field="annee")
        return self._list_modules(user_id, annee)

    def all_modules(self, user_id: str) -> List[ModuleWithNote]:
        """All modules with the user's note, ordered by year then code"""
        return self._list_modules(user_id, None)

    def _list_modules(self, user_id: str, annee: Optional[int]) -> List[ModuleWithNote]:
        try:
            rows = self.module_repo.list_with_user_notes(user_id, annee=annee)
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to list modules: {e}",
                extra={"user_id": user_id, "annee": annee},
                exc_info=True,
            )
            return []
        return [to_module_with_note(module, note) for module, note in rows]

    def competences(self, user_id: str) -> List[CompetenceWithNiveau]:
        """All competences with domain name and the user's niveau"""
        try:
            rows = self.competence_repo.list_with_user_niveaux(user_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to list competences: {e}", extra={"user_id": user_id}, exc_info=True)
            return []

        return [
            CompetenceWithNiveau(
                id=competence.id,
                nom=competence.nom,
                description=competence.description,
                domaine_id=competence.domaine_id,
                domaine_nom=domaine_nom,
                niveau=niveau,
            )
            for competence, domaine_nom, niveau in rows
        ]

    def competences_with_modules(self, user_id: str) -> List[CompetenceWithModules]:
        """
        Every competence with the modules linked to it and the user's note on each.

        Modules inside a competence are ordered by year then code.
        """
        competences = self.competences(user_id)
        if not competences:
            return []

        try:
            link_rows = self.link_repo.list_modules_with_user_notes(user_id)
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to list competence modules: {e}",
                extra={"user_id": user_id},
                exc_info=True,
            )
            return []

        modules_by_competence: Dict[str, List[ModuleWithNote]] = {}
        for competence_id, module, note in link_rows:
            modules_by_competence.setdefault(competence_id, []).append(to_module_with_note(module, note))

        return [
            CompetenceWithModules(competence=competence, modules=modules_by_competence.get(competence.id, []))
            for competence in competences
        ]
