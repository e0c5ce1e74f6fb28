"""
Database package for the CFC tracker

Provides:
- SQLAlchemy configuration and the storage handle (Database)
- Base model for ORM
- ORM models (reference data, users, notes, niveaux)
- Repository pattern implementations
- Transaction management utilities
"""
from .config import Database, DatabaseConfig, get_db
from .base import Base
from .transaction import transaction

# ORM Models
from .models import (
    UserDB,
    UserSessionDB,
    DomaineDB,
    CompetenceDB,
    ModuleDB,
    CompetenceModuleDB,
    UserModuleNoteDB,
    UserCompetenceNiveauDB,
)

# Repositories
from .repositories import (
    UserRepository,
    UserSessionRepository,
    DomaineRepository,
    CompetenceRepository,
    ModuleRepository,
    CompetenceModuleRepository,
    UserModuleNoteRepository,
    UserCompetenceNiveauRepository,
)

__all__ = [
    # Configuration
    "Database",
    "DatabaseConfig",
    "get_db",
    "Base",
    "transaction",
    # Models
    "UserDB",
    "UserSessionDB",
    "DomaineDB",
    "CompetenceDB",
    "ModuleDB",
    "CompetenceModuleDB",
    "UserModuleNoteDB",
    "UserCompetenceNiveauDB",
    # Repositories
    "UserRepository",
    "UserSessionRepository",
    "DomaineRepository",
    "CompetenceRepository",
    "ModuleRepository",
    "CompetenceModuleRepository",
    "UserModuleNoteRepository",
    "UserCompetenceNiveauRepository",
]
