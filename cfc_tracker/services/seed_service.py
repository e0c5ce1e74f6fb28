"""
Seed Service - loads reference data and a user's progress, and builds the JSON export

The export (build_seed_export) and the loader (SeedService.load) share the
SeedDocument shape, so an export from one environment reseeds another one.

Loading is idempotent: reference rows are merged by id (or natural key),
links are created once, and notes / levels go through the same upsert as the
API, so running the same document twice never duplicates rows.

load_curriculum() bootstraps an empty database from the curriculum files
(competence.json and db.json), which carry names instead of ids.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Union
from uuid import uuid4

import pydantic
from sqlalchemy.orm import Session

from ..core.constants import utc_now
from ..core.errors import NotFoundError, ValidationError
from ..database.models import UserDB
from ..database.repositories import (
    CompetenceModuleRepository,
    CompetenceRepository,
    DomaineRepository,
    ModuleRepository,
    UserCompetenceNiveauRepository,
    UserModuleNoteRepository,
    UserRepository,
)
from ..database.transaction import transaction
from ..models.seed import (
    CurriculumDomaine,
    CurriculumYear,
    SeedCompetence,
    SeedDocument,
    SeedDomaine,
    SeedLien,
    SeedMetadata,
    SeedModule,
    SeedNiveau,
    SeedNote,
)

logger = logging.getLogger(__name__)


@dataclass
class SeedReport:
    """Counts of what a load wrote or skipped"""

    domaines: int = 0
    competences: int = 0
    modules: int = 0
    liens: int = 0
    notes: int = 0
    niveaux: int = 0
    skipped: int = 0


def parse_seed_document(data: Union[SeedDocument, Mapping[str, Any]]) -> SeedDocument:
    """
    Validate raw JSON data against the seed document shape.

    Raises:
        ValidationError: malformed document
    """
    if isinstance(data, SeedDocument):
        return data
    try:
        return SeedDocument.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid seed document: {e.error_count()} error(s)") from e


def module_code(title: str) -> str:
    """Code of a module from its title: "431 - Exécuter des mandats" -> "431" """
    return title.strip().split(" ")[0]


def _parse_list(model, data: Sequence[Mapping[str, Any]], label: str) -> list:
    if not isinstance(data, Sequence) or isinstance(data, (str, bytes)):
        raise ValidationError(f"Invalid {label} file: expected a list")
    try:
        return [model.model_validate(item) for item in data]
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid {label} file: {e.error_count()} error(s)") from e


class SeedService:
    """Loads seed documents into storage"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.users = UserRepository(db_session)
        self.domaine_repo = DomaineRepository(db_session)
        self.competence_repo = CompetenceRepository(db_session)
        self.module_repo = ModuleRepository(db_session)
        self.link_repo = CompetenceModuleRepository(db_session)
        self.note_repo = UserModuleNoteRepository(db_session)
        self.niveau_repo = UserCompetenceNiveauRepository(db_session)

    def ensure_default_user(self, name: str, email: str) -> UserDB:
        """
        User to attach seeded notes to.

        Creates it when the database has no user at all; otherwise returns the
        user with that email, or the oldest user.
        """
        existing = self.users.get_by_email(email)
        if existing:
            return existing
        if self.users.count() == 0:
            logger.info("No user found, creating default user", extra={"email": email})
            return self.users.create(name=name, email=email, email_verified=True)

        user = self.db.query(UserDB).order_by(UserDB.created_at, UserDB.id).first()
        logger.info("Existing user found, no creation", extra={"user_id": user.id})
        return user

    def load(
        self,
        data: Union[SeedDocument, Mapping[str, Any]],
        user_id: Optional[str] = None,
    ) -> SeedReport:
        """
        Load a seed document in a single transaction.

        Args:
            data: SeedDocument or its JSON form
            user_id: Owner of the document's notes and levels. When None they
                are skipped.

        Returns:
            SeedReport

        Raises:
            ValidationError: malformed document
            NotFoundError: user_id does not exist
        """
        document = parse_seed_document(data)
        if user_id is not None and self.users.get_by_id(user_id) is None:
            raise NotFoundError("user", user_id)

        report = SeedReport()
        with transaction(self.db, "Load seed document"):
            domaine_ids = self._load_domaines(document, report)
            competence_ids = self._load_competences(document, domaine_ids, report)
            module_ids = self._load_modules(document, report)
            self._load_liens(document, competence_ids, module_ids, report)

            if user_id is None:
                skipped = len(document.notes_utilisateur) + len(document.niveaux_competences)
                if skipped:
                    logger.warning(
                        f"No user given, skipping {skipped} notes/niveaux",
                        extra={"skipped": skipped},
                    )
                report.skipped += skipped
            else:
                self._load_notes(document, user_id, module_ids, report)
                self._load_niveaux(document, user_id, competence_ids, report)

        logger.info(
            "Seed document loaded",
            extra={"user_id": user_id, "report": report.__dict__},
        )
        return report

    def load_curriculum(
        self,
        competence_data: Sequence[Mapping[str, Any]],
        year_data: Sequence[Mapping[str, Any]],
        user_id: Optional[str] = None,
    ) -> SeedReport:
        """
        Bootstrap from the curriculum files (competence.json and db.json).

        These files carry no ids: domains merge by name, competences by
        (name, domain), modules by the code taken from their title. Competence
        modules are listed by title and linked through that code. Notes above 0
        are recorded for `user_id`; notes are skipped when it is None.

        Raises:
            ValidationError: malformed file content
            NotFoundError: user_id does not exist
        """
        domaines = _parse_list(CurriculumDomaine, competence_data, "competence")
        years = _parse_list(CurriculumYear, year_data, "year")
        if user_id is not None and self.users.get_by_id(user_id) is None:
            raise NotFoundError("user", user_id)

        report = SeedReport()
        with transaction(self.db, "Load curriculum files"):
            module_ids: Dict[str, str] = {}
            for year in years:
                for item in year.modules:
                    code = module_code(item.nom)
                    stored = self.module_repo.save(str(uuid4()), item.nom, code, year.id, item.is_cie, commit=False)
                    module_ids[code] = stored.id
                    report.modules += 1

            for entry in domaines:
                domaine = self.domaine_repo.save(str(uuid4()), entry.domaine, commit=False)
                report.domaines += 1
                for item in entry.competences:
                    competence = self.competence_repo.save(
                        str(uuid4()), item.nom, item.description, domaine.id, commit=False
                    )
                    report.competences += 1
                    for title in item.modules:
                        module_id = module_ids.get(module_code(title))
                        if module_id is None:
                            report.skipped += 1
                            continue
                        self.link_repo.link(competence.id, module_id, commit=False)
                        report.liens += 1

            for year in years:
                for item in year.modules:
                    if item.note <= 0:
                        continue
                    if user_id is None:
                        report.skipped += 1
                        continue
                    self.note_repo.upsert(user_id, module_ids[module_code(item.nom)], item.note, commit=False)
                    report.notes += 1

        logger.info(
            "Curriculum files loaded",
            extra={"user_id": user_id, "report": report.__dict__},
        )
        return report

    def _load_domaines(self, document: SeedDocument, report: SeedReport) -> Dict[str, str]:
        ids: Dict[str, str] = {}
        for item in document.domaines:
            stored = self.domaine_repo.save(item.id, item.nom, commit=False)
            ids[item.id] = stored.id
            report.domaines += 1
        return ids

    def _load_competences(
        self,
        document: SeedDocument,
        domaine_ids: Dict[str, str],
        report: SeedReport,
    ) -> Dict[str, str]:
        ids: Dict[str, str] = {}
        for item in document.competences:
            domaine_id = domaine_ids.get(item.domaine_id)
            if domaine_id is None and self.domaine_repo.get_by_id(item.domaine_id):
                domaine_id = item.domaine_id
            if domaine_id is None:
                logger.warning(
                    "Competence references an unknown domaine, skipped",
                    extra={"competence_id": item.id, "domaine_id": item.domaine_id},
                )
                report.skipped += 1
                continue

            stored = self.competence_repo.save(item.id, item.nom, item.description, domaine_id, commit=False)
            ids[item.id] = stored.id
            report.competences += 1
        return ids

    def _load_modules(self, document: SeedDocument, report: SeedReport) -> Dict[str, str]:
        ids: Dict[str, str] = {}
        for item in document.modules:
            stored = self.module_repo.save(item.id, item.nom, item.code, item.annee, item.is_cie, commit=False)
            ids[item.id] = stored.id
            report.modules += 1
        return ids

    def _resolve(self, ids: Dict[str, str], exported_id: str, exists) -> Optional[str]:
        if exported_id in ids:
            return ids[exported_id]
        return exported_id if exists(exported_id) else None

    def _load_liens(
        self,
        document: SeedDocument,
        competence_ids: Dict[str, str],
        module_ids: Dict[str, str],
        report: SeedReport,
    ) -> None:
        for item in document.liens_competence_module:
            competence_id = self._resolve(competence_ids, item.competence_id, self.competence_repo.exists)
            module_id = self._resolve(module_ids, item.module_id, self.module_repo.exists)
            if competence_id is None or module_id is None:
                report.skipped += 1
                continue
            self.link_repo.link(competence_id, module_id, commit=False)
            report.liens += 1

    def _load_notes(
        self,
        document: SeedDocument,
        user_id: str,
        module_ids: Dict[str, str],
        report: SeedReport,
    ) -> None:
        for item in document.notes_utilisateur:
            module_id = self._resolve(module_ids, item.module_id, self.module_repo.exists)
            if module_id is None:
                report.skipped += 1
                continue
            self.note_repo.upsert(user_id, module_id, item.note, commit=False)
            report.notes += 1

    def _load_niveaux(
        self,
        document: SeedDocument,
        user_id: str,
        competence_ids: Dict[str, str],
        report: SeedReport,
    ) -> None:
        for item in document.niveaux_competences:
            competence_id = self._resolve(competence_ids, item.competence_id, self.competence_repo.exists)
            if competence_id is None:
                report.skipped += 1
                continue
            self.niveau_repo.upsert(user_id, competence_id, item.niveau, commit=False)
            report.niveaux += 1


def build_seed_export(db: Session, user_id: str) -> SeedDocument:
    """
    Full dump of the reference data plus the user's notes and levels.

    Only the caller's own rows are included.
    """
    domaines = DomaineRepository(db).get_all()
    competences = CompetenceRepository(db).get_all()
    modules = ModuleRepository(db).get_all()
    liens = CompetenceModuleRepository(db).get_all()
    notes = UserModuleNoteRepository(db).get_by_user(user_id)
    niveaux = UserCompetenceNiveauRepository(db).get_by_user(user_id)

    return SeedDocument(
        domaines=[SeedDomaine(id=d.id, nom=d.nom) for d in domaines],
        competences=[
            SeedCompetence(
                id=c.id,
                nom=c.nom,
                description=c.description,
                domaine_id=c.domaine_id,
                domaine=domaine_nom,
            )
            for c, domaine_nom in competences
        ],
        modules=[
            SeedModule(id=m.id, nom=m.nom, code=m.code, annee=m.annee, is_cie=bool(m.is_cie))
            for m in modules
        ],
        liens_competence_module=[
            SeedLien(competence_id=l.competence_id, module_id=l.module_id) for l in liens
        ],
        notes_utilisateur=[SeedNote(module_id=n.module_id, note=n.note) for n in notes],
        niveaux_competences=[
            SeedNiveau(competence_id=n.competence_id, niveau=n.niveau) for n in niveaux
        ],
        metadata=SeedMetadata(
            export_date=utc_now(),
            user_id=user_id,
            total_domaines=len(domaines),
            total_competences=len(competences),
            total_modules=len(modules),
            total_notes=len(notes),
            total_niveaux=len(niveaux),
        ),
    )
