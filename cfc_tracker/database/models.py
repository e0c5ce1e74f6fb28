"""
SQLAlchemy ORM models for persistence

Models:
- UserDB: Learner identity (owns notes and competence levels)
- UserSessionDB: Session tokens resolved by the authentication collaborator
- DomaineDB: Named group of competences (reference data)
- CompetenceDB: Skill descriptor belonging to one domain (reference data)
- ModuleDB: Curriculum unit with a unique code, a year and a CIE flag (reference data)
- CompetenceModuleDB: Many-to-many link between competences and modules
- UserModuleNoteDB: A user's note on a module, at most one per (user, module)
- UserCompetenceNiveauDB: A user's level on a competence, at most one per (user, competence)
"""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base, BaseModel


class UserDB(Base, BaseModel):
    """
    Learner account.

    Sign-up and login are handled by an external authentication service;
    this table only mirrors the identity the tracker needs.
    """

    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    email_verified = Column(Boolean, default=False, server_default="0", nullable=False)

    # Deleting a user removes everything the user owns
    sessions = relationship(
        "UserSessionDB", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    notes = relationship(
        "UserModuleNoteDB", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    niveaux = relationship(
        "UserCompetenceNiveauDB", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class UserSessionDB(Base, BaseModel):
    """Session token issued by the authentication service"""

    __tablename__ = "user_sessions"

    token = Column(String(255), unique=True, nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("UserDB", back_populates="sessions")


class DomaineDB(Base, BaseModel):
    """Named grouping of competences"""

    __tablename__ = "domaines"

    nom = Column(String(255), nullable=False)

    competences = relationship(
        "CompetenceDB", back_populates="domaine", cascade="all, delete-orphan", passive_deletes=True
    )


class CompetenceDB(Base, BaseModel):
    """Skill descriptor; belongs to exactly one domain"""

    __tablename__ = "competences"

    nom = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    domaine_id = Column(String(36), ForeignKey("domaines.id", ondelete="CASCADE"), nullable=False, index=True)

    domaine = relationship("DomaineDB", back_populates="competences")
    module_links = relationship(
        "CompetenceModuleDB", back_populates="competence", cascade="all, delete-orphan", passive_deletes=True
    )
    user_niveaux = relationship(
        "UserCompetenceNiveauDB", back_populates="competence", cascade="all, delete-orphan", passive_deletes=True
    )


class ModuleDB(Base, BaseModel):
    """
    Curriculum unit.

    `code` is the human readable identifier taken from the module title
    (e.g. "431" for "431 - Exécuter des tâches de manière autonome").
    CIE modules count for 20% of the final mark.
    """

    __tablename__ = "modules"

    nom = Column(String(255), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    annee = Column(Integer, nullable=False)
    is_cie = Column(Boolean, default=False, server_default="0", nullable=False)

    competence_links = relationship(
        "CompetenceModuleDB", back_populates="module", cascade="all, delete-orphan", passive_deletes=True
    )
    user_notes = relationship(
        "UserModuleNoteDB", back_populates="module", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        # Query: modules of a year ordered by code
        Index("idx_module_annee_code", "annee", "code"),
        CheckConstraint("annee >= 1 AND annee <= 4", name="ck_module_annee_range"),
    )


class CompetenceModuleDB(Base, BaseModel):
    """Many-to-many link between a competence and a module"""

    __tablename__ = "competence_modules"

    competence_id = Column(String(36), ForeignKey("competences.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(String(36), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)

    competence = relationship("CompetenceDB", back_populates="module_links")
    module = relationship("ModuleDB", back_populates="competence_links")

    __table_args__ = (
        UniqueConstraint("competence_id", "module_id", name="uq_competence_module"),
    )


class UserModuleNoteDB(Base, BaseModel):
    """
    Note of a user on a module, on a 0-6 scale with decimals (4.5, 5.0...).

    No row means "not graded yet". The unique constraint on (user_id, module_id)
    backs the upsert in UserModuleNoteRepository.
    """

    __tablename__ = "user_module_notes"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(String(36), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    note = Column(Float, nullable=False)

    user = relationship("UserDB", back_populates="notes")
    module = relationship("ModuleDB", back_populates="user_notes")

    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_user_module_note"),
        CheckConstraint("note >= 0 AND note <= 6", name="ck_note_range"),
    )


class UserCompetenceNiveauDB(Base, BaseModel):
    """Self-assessed acquisition level (1 to 5) of a user on a competence"""

    __tablename__ = "user_competence_niveaux"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    competence_id = Column(String(36), ForeignKey("competences.id", ondelete="CASCADE"), nullable=False, index=True)
    niveau = Column(Integer, nullable=False)

    user = relationship("UserDB", back_populates="niveaux")
    competence = relationship("CompetenceDB", back_populates="user_niveaux")

    __table_args__ = (
        UniqueConstraint("user_id", "competence_id", name="uq_user_competence_niveau"),
        CheckConstraint("niveau >= 1 AND niveau <= 5", name="ck_niveau_range"),
    )
