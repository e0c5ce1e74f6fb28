"""
Repository pattern for database operations

Provides:
- UserRepository: Manage learner accounts
- UserSessionRepository: Resolve session tokens issued by the auth service
- DomaineRepository / CompetenceRepository / ModuleRepository: Reference data
- CompetenceModuleRepository: Competence <-> module links
- UserModuleNoteRepository: Upsert and read a user's notes
- UserCompetenceNiveauRepository: Upsert and read a user's competence levels

TRANSACTION MANAGEMENT:
----------------------
Individual repository methods commit immediately after each operation.
Write methods accept `commit=False` so several writes can share one
transaction (see database/transaction.py), in which case they only flush.

UPSERTS:
--------
Notes and levels are keyed by (user_id, module_id) and (user_id, competence_id).
On SQLite and PostgreSQL the upsert is a single INSERT ... ON CONFLICT DO UPDATE
statement backed by the unique constraint, so two concurrent calls can never
produce two rows. Other dialects lock the existing row with SELECT ... FOR UPDATE
and fall back to an update if a concurrent insert wins the unique constraint.
"""
import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple, Type
from uuid import uuid4

from sqlalchemy import and_, exists, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.constants import utc_now
from .models import (
    CompetenceDB,
    CompetenceModuleDB,
    DomaineDB,
    ModuleDB,
    UserCompetenceNiveauDB,
    UserDB,
    UserModuleNoteDB,
    UserSessionDB,
)

logger = logging.getLogger(__name__)

_CONFLICT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _finish(db: Session, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()


def _upsert_owned_row(
    db: Session,
    model: Type[Any],
    user_id: str,
    key_name: str,
    key_value: str,
    value_name: str,
    value: Any,
    commit: bool = True,
) -> Tuple[Any, bool]:
    """
    Create or update the row of `model` identified by (user_id, key_name).

    Returns:
        (row, created) where `created` is True if a new row was inserted.
        The row id is generated once and kept by later updates.
    """
    new_id = str(uuid4())
    now = utc_now()
    insert_fn = _CONFLICT_INSERTS.get(db.get_bind().dialect.name)

    try:
        if insert_fn is not None:
            stmt = insert_fn(model).values(
                id=new_id,
                user_id=user_id,
                created_at=now,
                updated_at=now,
                **{key_name: key_value, value_name: value},
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", key_name],
                set_={
                    value_name: getattr(stmt.excluded, value_name),
                    "updated_at": stmt.excluded.updated_at,
                },
            ).returning(model.id)
            row_id = db.execute(stmt).scalar_one()
            _finish(db, commit)
        else:
            row_id = _locked_upsert(db, model, user_id, key_name, key_value, value_name, value, new_id, commit)
    except Exception:
        db.rollback()
        raise

    row = db.execute(
        select(model).where(model.id == row_id).execution_options(populate_existing=True)
    ).scalar_one()
    return row, row_id == new_id


def _locked_upsert(
    db: Session,
    model: Type[Any],
    user_id: str,
    key_name: str,
    key_value: str,
    value_name: str,
    value: Any,
    new_id: str,
    commit: bool,
) -> str:
    """Select-for-update then write; used on dialects without ON CONFLICT"""
    key_column = getattr(model, key_name)
    stmt = select(model).where(model.user_id == user_id, key_column == key_value).with_for_update()
    row = db.execute(stmt).scalar_one_or_none()

    if row is None:
        row = model(id=new_id, user_id=user_id, **{key_name: key_value, value_name: value})
        db.add(row)
        try:
            _finish(db, commit)
            return row.id
        except IntegrityError:
            # A concurrent request inserted the same key first: update its row instead
            db.rollback()
            row = db.execute(stmt).scalar_one()

    setattr(row, value_name, value)
    row.updated_at = utc_now()
    _finish(db, commit)
    return row.id


class UserRepository:
    """Repository for learner accounts"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(
        self,
        name: str,
        email: str,
        user_id: Optional[str] = None,
        email_verified: bool = False,
    ) -> UserDB:
        """
        Create a new user

        Args:
            name: Display name
            email: Email (unique, stored lowercase)
            user_id: Optional explicit id (the auth service's id)
            email_verified: Whether the auth service verified the email

        Returns:
            Created UserDB instance
        """
        try:
            user = UserDB(
                id=user_id or str(uuid4()),
                name=name,
                email=email.lower(),
                email_verified=email_verified,
            )
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)

            logger.info("User created", extra={"user_id": user.id, "email": user.email})
            return user
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create user: {e}", extra={"email": email})
            raise

    def get_by_id(self, user_id: str) -> Optional[UserDB]:
        """Get user by ID"""
        return self.db.query(UserDB).filter(UserDB.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[UserDB]:
        """Get user by email (case-insensitive)"""
        return self.db.query(UserDB).filter(UserDB.email == email.lower()).first()

    def get_by_name(self, name: str) -> Optional[UserDB]:
        return self.db.query(UserDB).filter(UserDB.name == name).first()

    def get_first_with_notes(self) -> Optional[UserDB]:
        """Oldest user that has at least one recorded note"""
        has_notes = exists().where(UserModuleNoteDB.user_id == UserDB.id)
        return (
            self.db.query(UserDB)
            .filter(has_notes)
            .order_by(UserDB.created_at, UserDB.id)
            .first()
        )

    def count(self) -> int:
        return self.db.query(func.count(UserDB.id)).scalar()

    def delete(self, user_id: str) -> bool:
        """
        Delete a user (hard delete)

        Notes, competence levels and sessions of the user are removed by
        ON DELETE CASCADE.

        Returns:
            True if deleted, False if not found
        """
        user = self.get_by_id(user_id)
        if not user:
            return False

        cascade_counts = {
            "notes": self.db.query(UserModuleNoteDB).filter(UserModuleNoteDB.user_id == user_id).count(),
            "niveaux": self.db.query(UserCompetenceNiveauDB).filter(
                UserCompetenceNiveauDB.user_id == user_id
            ).count(),
        }
        try:
            self.db.delete(user)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.warning(
            "User deleted (hard delete)",
            extra={"user_id": user_id, "cascade_counts": cascade_counts},
        )
        return True


class UserSessionRepository:
    """Read access to session tokens; issuing them is the auth service's job"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, user_id: str, token: str, expires_at: datetime) -> UserSessionDB:
        try:
            session = UserSessionDB(user_id=user_id, token=token, expires_at=expires_at)
            self.db.add(session)
            self.db.commit()
            self.db.refresh(session)
            return session
        except Exception:
            self.db.rollback()
            raise

    def get_active_by_token(self, token: str, now: Optional[datetime] = None) -> Optional[UserSessionDB]:
        """Session for `token` if it exists and has not expired"""
        session = self.db.query(UserSessionDB).filter(UserSessionDB.token == token).first()
        if session is None:
            return None

        now = now or utc_now()
        expires_at = session.expires_at
        # SQLite hands timestamps back without tzinfo
        if expires_at.tzinfo is None:
            now = now.replace(tzinfo=None)
        if expires_at <= now:
            return None
        return session


class DomaineRepository:
    """Repository for domains (reference data)"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, nom: str, domaine_id: Optional[str] = None) -> DomaineDB:
        try:
            domaine = DomaineDB(id=domaine_id or str(uuid4()), nom=nom)
            self.db.add(domaine)
            self.db.commit()
            self.db.refresh(domaine)
            return domaine
        except Exception:
            self.db.rollback()
            raise

    def save(self, domaine_id: str, nom: str, commit: bool = True) -> DomaineDB:
        """
        Insert or update a domain, matching first by id, then by name.

        Returns the stored row (its id may differ from `domaine_id` when an
        existing domain with the same name was reused).
        """
        domaine = self.get_by_id(domaine_id) or self.db.query(DomaineDB).filter(DomaineDB.nom == nom).first()
        if domaine is None:
            domaine = DomaineDB(id=domaine_id, nom=nom)
            self.db.add(domaine)
        else:
            domaine.nom = nom
        _finish(self.db, commit)
        return domaine

    def get_by_id(self, domaine_id: str) -> Optional[DomaineDB]:
        return self.db.query(DomaineDB).filter(DomaineDB.id == domaine_id).first()

    def get_all(self) -> List[DomaineDB]:
        """All domains ordered by name"""
        return self.db.query(DomaineDB).order_by(DomaineDB.nom, DomaineDB.id).all()

    def delete(self, domaine_id: str) -> bool:
        """Delete a domain; its competences (and their links and levels) cascade"""
        domaine = self.get_by_id(domaine_id)
        if not domaine:
            return False

        competence_count = self.db.query(CompetenceDB).filter(CompetenceDB.domaine_id == domaine_id).count()
        try:
            self.db.delete(domaine)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.warning(
            f"Domaine {domaine_id} deleted with {competence_count} competences",
            extra={"domaine_id": domaine_id, "competence_count": competence_count},
        )
        return True


class CompetenceRepository:
    """Repository for competences (reference data)"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(
        self,
        nom: str,
        description: str,
        domaine_id: str,
        competence_id: Optional[str] = None,
    ) -> CompetenceDB:
        try:
            competence = CompetenceDB(
                id=competence_id or str(uuid4()),
                nom=nom,
                description=description,
                domaine_id=domaine_id,
            )
            self.db.add(competence)
            self.db.commit()
            self.db.refresh(competence)
            return competence
        except Exception:
            self.db.rollback()
            raise

    def save(
        self,
        competence_id: str,
        nom: str,
        description: str,
        domaine_id: str,
        commit: bool = True,
    ) -> CompetenceDB:
        """Insert or update, matching by id, then by (name, domain)"""
        competence = self.get_by_id(competence_id) or (
            self.db.query(CompetenceDB)
            .filter(CompetenceDB.nom == nom, CompetenceDB.domaine_id == domaine_id)
            .first()
        )
        if competence is None:
            competence = CompetenceDB(id=competence_id, nom=nom, description=description, domaine_id=domaine_id)
            self.db.add(competence)
        else:
            competence.nom = nom
            competence.description = description
            competence.domaine_id = domaine_id
        _finish(self.db, commit)
        return competence

    def get_by_id(self, competence_id: str) -> Optional[CompetenceDB]:
        return self.db.query(CompetenceDB).filter(CompetenceDB.id == competence_id).first()

    def exists(self, competence_id: str) -> bool:
        """Check existence without loading the row"""
        return self.db.query(exists().where(CompetenceDB.id == competence_id)).scalar()

    def get_all(self) -> List[Tuple[CompetenceDB, str]]:
        """All competences with their domain name, ordered by domain name then competence name"""
        return (
            self.db.query(CompetenceDB, DomaineDB.nom)
            .join(DomaineDB, CompetenceDB.domaine_id == DomaineDB.id)
            .order_by(DomaineDB.nom, CompetenceDB.nom, CompetenceDB.id)
            .all()
        )

    def list_with_user_niveaux(self, user_id: str) -> List[Tuple[CompetenceDB, str, Optional[int]]]:
        """
        Every competence with its domain name and the user's niveau.

        Competences the user never assessed are returned with niveau None.
        """
        return (
            self.db.query(CompetenceDB, DomaineDB.nom, UserCompetenceNiveauDB.niveau)
            .join(DomaineDB, CompetenceDB.domaine_id == DomaineDB.id)
            .outerjoin(
                UserCompetenceNiveauDB,
                and_(
                    UserCompetenceNiveauDB.competence_id == CompetenceDB.id,
                    UserCompetenceNiveauDB.user_id == user_id,
                ),
            )
            .order_by(DomaineDB.nom, CompetenceDB.nom, CompetenceDB.id)
            .all()
        )

    def delete(self, competence_id: str) -> bool:
        """Delete a competence; module links and user levels cascade"""
        competence = self.get_by_id(competence_id)
        if not competence:
            return False
        try:
            self.db.delete(competence)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.warning("Competence deleted", extra={"competence_id": competence_id})
        return True


class ModuleRepository:
    """Repository for curriculum modules (reference data)"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(
        self,
        nom: str,
        code: str,
        annee: int,
        is_cie: bool = False,
        module_id: Optional[str] = None,
    ) -> ModuleDB:
        try:
            module = ModuleDB(id=module_id or str(uuid4()), nom=nom, code=code, annee=annee, is_cie=is_cie)
            self.db.add(module)
            self.db.commit()
            self.db.refresh(module)
            return module
        except Exception:
            self.db.rollback()
            raise

    def save(
        self,
        module_id: str,
        nom: str,
        code: str,
        annee: int,
        is_cie: bool,
        commit: bool = True,
    ) -> ModuleDB:
        """Insert or update, matching by id, then by the unique code"""
        module = self.get_by_id(module_id) or self.get_by_code(code)
        if module is None:
            module = ModuleDB(id=module_id, nom=nom, code=code, annee=annee, is_cie=is_cie)
            self.db.add(module)
        else:
            module.nom = nom
            module.code = code
            module.annee = annee
            module.is_cie = is_cie
        _finish(self.db, commit)
        return module

    def get_by_id(self, module_id: str) -> Optional[ModuleDB]:
        return self.db.query(ModuleDB).filter(ModuleDB.id == module_id).first()

    def get_by_code(self, code: str) -> Optional[ModuleDB]:
        return self.db.query(ModuleDB).filter(ModuleDB.code == code).first()

    def exists(self, module_id: str) -> bool:
        """Check existence without loading the row"""
        return self.db.query(exists().where(ModuleDB.id == module_id)).scalar()

    def get_all(self) -> List[ModuleDB]:
        """All modules ordered by year then code"""
        return self.db.query(ModuleDB).order_by(ModuleDB.annee, ModuleDB.code).all()

    def list_with_user_notes(
        self,
        user_id: str,
        annee: Optional[int] = None,
    ) -> List[Tuple[ModuleDB, Optional[UserModuleNoteDB]]]:
        """
        Modules left-joined with the user's notes, ordered by year then code.

        Args:
            user_id: Owner of the notes
            annee: Restrict to one year when given
        """
        query = (
            self.db.query(ModuleDB, UserModuleNoteDB)
            .outerjoin(
                UserModuleNoteDB,
                and_(
                    UserModuleNoteDB.module_id == ModuleDB.id,
                    UserModuleNoteDB.user_id == user_id,
                ),
            )
        )
        if annee is not None:
            query = query.filter(ModuleDB.annee == annee)
        return query.order_by(ModuleDB.annee, ModuleDB.code).all()

    def delete(self, module_id: str) -> bool:
        """Delete a module; competence links and user notes cascade"""
        module = self.get_by_id(module_id)
        if not module:
            return False

        note_count = self.db.query(UserModuleNoteDB).filter(UserModuleNoteDB.module_id == module_id).count()
        try:
            self.db.delete(module)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.warning(
            f"Module {module.code} deleted with {note_count} notes",
            extra={"module_id": module_id, "note_count": note_count},
        )
        return True


class CompetenceModuleRepository:
    """Repository for competence <-> module links"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def link(self, competence_id: str, module_id: str, commit: bool = True) -> CompetenceModuleDB:
        """Create the link unless it already exists"""
        existing = (
            self.db.query(CompetenceModuleDB)
            .filter(
                CompetenceModuleDB.competence_id == competence_id,
                CompetenceModuleDB.module_id == module_id,
            )
            .first()
        )
        if existing:
            return existing

        link = CompetenceModuleDB(competence_id=competence_id, module_id=module_id)
        self.db.add(link)
        _finish(self.db, commit)
        return link

    def get_all(self) -> List[CompetenceModuleDB]:
        return (
            self.db.query(CompetenceModuleDB)
            .order_by(CompetenceModuleDB.competence_id, CompetenceModuleDB.module_id)
            .all()
        )

    def list_modules_with_user_notes(
        self,
        user_id: str,
    ) -> List[Tuple[str, ModuleDB, Optional[UserModuleNoteDB]]]:
        """(competence_id, module, user's note or None) for every link"""
        return (
            self.db.query(CompetenceModuleDB.competence_id, ModuleDB, UserModuleNoteDB)
            .join(ModuleDB, CompetenceModuleDB.module_id == ModuleDB.id)
            .outerjoin(
                UserModuleNoteDB,
                and_(
                    UserModuleNoteDB.module_id == ModuleDB.id,
                    UserModuleNoteDB.user_id == user_id,
                ),
            )
            .order_by(CompetenceModuleDB.competence_id, ModuleDB.annee, ModuleDB.code)
            .all()
        )


class UserModuleNoteRepository:
    """Repository for the notes a user records on modules"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def upsert(
        self,
        user_id: str,
        module_id: str,
        note: float,
        commit: bool = True,
    ) -> Tuple[UserModuleNoteDB, bool]:
        """
        Create or update the user's note on a module.

        Returns:
            (row, created)
        """
        return _upsert_owned_row(
            self.db, UserModuleNoteDB, user_id, "module_id", module_id, "note", note, commit=commit
        )

    def get(self, user_id: str, module_id: str) -> Optional[UserModuleNoteDB]:
        return (
            self.db.query(UserModuleNoteDB)
            .filter(UserModuleNoteDB.user_id == user_id, UserModuleNoteDB.module_id == module_id)
            .first()
        )

    def get_by_user(self, user_id: str) -> List[UserModuleNoteDB]:
        return (
            self.db.query(UserModuleNoteDB)
            .filter(UserModuleNoteDB.user_id == user_id)
            .order_by(UserModuleNoteDB.module_id)
            .all()
        )

    def count_for(self, user_id: str, module_id: str) -> int:
        return (
            self.db.query(func.count(UserModuleNoteDB.id))
            .filter(UserModuleNoteDB.user_id == user_id, UserModuleNoteDB.module_id == module_id)
            .scalar()
        )


class UserCompetenceNiveauRepository:
    """Repository for the levels a user records on competences"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def upsert(
        self,
        user_id: str,
        competence_id: str,
        niveau: int,
        commit: bool = True,
    ) -> Tuple[UserCompetenceNiveauDB, bool]:
        """
        Create or update the user's level on a competence.

        Returns:
            (row, created)
        """
        return _upsert_owned_row(
            self.db, UserCompetenceNiveauDB, user_id, "competence_id", competence_id, "niveau", niveau,
            commit=commit,
        )

    def get(self, user_id: str, competence_id: str) -> Optional[UserCompetenceNiveauDB]:
        return (
            self.db.query(UserCompetenceNiveauDB)
            .filter(
                UserCompetenceNiveauDB.user_id == user_id,
                UserCompetenceNiveauDB.competence_id == competence_id,
            )
            .first()
        )

    def get_by_user(self, user_id: str) -> List[UserCompetenceNiveauDB]:
        return (
            self.db.query(UserCompetenceNiveauDB)
            .filter(UserCompetenceNiveauDB.user_id == user_id)
            .order_by(UserCompetenceNiveauDB.competence_id)
            .all()
        )

    def count_for(self, user_id: str, competence_id: str) -> int:
        return (
            self.db.query(func.count(UserCompetenceNiveauDB.id))
            .filter(
                UserCompetenceNiveauDB.user_id == user_id,
                UserCompetenceNiveauDB.competence_id == competence_id,
            )
            .scalar()
        )
