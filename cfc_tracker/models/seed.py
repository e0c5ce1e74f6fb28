"""
Seed document: the JSON export format, also accepted by the seed loader

Field names are camelCase on the wire (domaineId, isCie, notesUtilisateur...)
so an export can be fed back into another environment unchanged.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _SeedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SeedDomaine(_SeedModel):
    id: str = Field(..., min_length=1)
    nom: str = Field(..., min_length=1)


class SeedCompetence(_SeedModel):
    id: str = Field(..., min_length=1)
    nom: str = Field(..., min_length=1)
    description: str
    domaine_id: str = Field(..., alias="domaineId", min_length=1)
    # Domain name, informative only (the loader uses domaineId)
    domaine: Optional[str] = None


class SeedModule(_SeedModel):
    id: str = Field(..., min_length=1)
    nom: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    annee: int = Field(..., ge=1, le=4)
    is_cie: bool = Field(False, alias="isCie")


class SeedLien(_SeedModel):
    competence_id: str = Field(..., alias="competenceId")
    module_id: str = Field(..., alias="moduleId")


class SeedNote(_SeedModel):
    module_id: str = Field(..., alias="moduleId")
    note: float = Field(..., ge=0, le=6)


class SeedNiveau(_SeedModel):
    competence_id: str = Field(..., alias="competenceId")
    niveau: int = Field(..., ge=1, le=5)


class SeedMetadata(_SeedModel):
    export_date: datetime = Field(..., alias="exportDate")
    user_id: Optional[str] = Field(None, alias="userId")
    total_domaines: int = Field(0, alias="totalDomaines")
    total_competences: int = Field(0, alias="totalCompetences")
    total_modules: int = Field(0, alias="totalModules")
    total_notes: int = Field(0, alias="totalNotes")
    total_niveaux: int = Field(0, alias="totalNiveaux")


class SeedDocument(_SeedModel):
    """Reference data plus one user's notes and levels"""

    domaines: List[SeedDomaine] = Field(default_factory=list)
    competences: List[SeedCompetence] = Field(default_factory=list)
    modules: List[SeedModule] = Field(default_factory=list)
    liens_competence_module: List[SeedLien] = Field(default_factory=list, alias="liensCompetenceModule")
    notes_utilisateur: List[SeedNote] = Field(default_factory=list, alias="notesUtilisateur")
    niveaux_competences: List[SeedNiveau] = Field(default_factory=list, alias="niveauxCompetences")
    metadata: Optional[SeedMetadata] = None

    def to_json_dict(self) -> dict:
        """Wire form (camelCase keys, ISO dates)"""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# CURRICULUM FILES (competence.json / db.json)
# =============================================================================

class CurriculumCompetence(_SeedModel):
    nom: str = Field(..., min_length=1)
    description: str = ""
    # Module titles ("431 - Exécuter des mandats..."), matched on their code
    modules: List[str] = Field(default_factory=list)


class CurriculumDomaine(_SeedModel):
    domaine: str = Field(..., min_length=1)
    competences: List[CurriculumCompetence] = Field(default_factory=list)


class CurriculumModule(_SeedModel):
    nom: str = Field(..., min_length=1)
    is_cie: bool = Field(False, alias="isCie")
    # 0 means no note yet
    note: float = Field(0, ge=0, le=6)


class CurriculumYear(_SeedModel):
    id: int = Field(..., ge=1, le=4)
    modules: List[CurriculumModule] = Field(default_factory=list)
