"""
Schemas for the modules and competences endpoints

Missing notes / niveaux are None internally and rendered as 0 here.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...core.aggregation import CompetenceLevelStats, GradeAverages, YearSummary
from ...core.constants import UNSET_VALUE
from ...models.progress import CompetenceWithModules, CompetenceWithNiveau, ModuleWithNote


# =============================================================================
# REQUESTS
# =============================================================================

class NoteUpdateRequest(BaseModel):
    """Body of PUT /modules/{module_id}/note"""
    note: float = Field(..., ge=0, le=6, strict=True, description="Note on 6, decimals allowed")


class NiveauUpdateRequest(BaseModel):
    """Body of PUT /competences/{competence_id}/niveau"""
    niveau: int = Field(..., ge=1, le=5, description="Acquisition level 1-5")


# =============================================================================
# RESPONSES
# =============================================================================

class ModuleSchema(BaseModel):
    id: str
    nom: str
    code: str
    annee: int
    is_cie: bool = Field(..., serialization_alias="isCie")
    note: float
    note_id: Optional[str] = Field(None, serialization_alias="noteId")

    @classmethod
    def from_result(cls, module: ModuleWithNote) -> "ModuleSchema":
        return cls(
            id=module.id,
            nom=module.nom,
            code=module.code,
            annee=module.annee,
            is_cie=module.is_cie,
            note=module.note if module.note is not None else UNSET_VALUE,
            note_id=module.note_id,
        )


class AveragesSchema(BaseModel):
    normal: float
    cie: float
    weighted: float
    total_modules: int
    graded_modules: int

    @classmethod
    def from_result(cls, averages: GradeAverages) -> "AveragesSchema":
        return cls(
            normal=averages.normal_average,
            cie=averages.cie_average,
            weighted=averages.weighted_average,
            total_modules=averages.total_modules,
            graded_modules=averages.graded_modules,
        )


class YearSummarySchema(BaseModel):
    annee: int
    averages: AveragesSchema

    @classmethod
    def from_result(cls, summary: YearSummary) -> "YearSummarySchema":
        return cls(annee=summary.annee, averages=AveragesSchema.from_result(summary.averages))


class ModulesResponse(BaseModel):
    success: bool = True
    modules: Dict[int, List[ModuleSchema]]
    averages: AveragesSchema
    years: List[YearSummarySchema]


class YearModulesResponse(BaseModel):
    success: bool = True
    annee: int
    modules: List[ModuleSchema]
    averages: AveragesSchema


class NoteSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    module_id: str
    note: float
    created_at: datetime
    updated_at: datetime


class NoteUpdateResponse(BaseModel):
    """Upserted row plus the recomputed averages, enough for a local update"""
    success: bool = True
    message: str
    note: NoteSchema
    averages: AveragesSchema


class DomaineRefSchema(BaseModel):
    id: str
    nom: str


class CompetenceSchema(BaseModel):
    id: str
    nom: str
    description: str
    domaine: DomaineRefSchema
    niveau: int

    @classmethod
    def from_result(cls, competence: CompetenceWithNiveau) -> "CompetenceSchema":
        return cls(
            id=competence.id,
            nom=competence.nom,
            description=competence.description,
            domaine=DomaineRefSchema(id=competence.domaine_id, nom=competence.domaine_nom),
            niveau=competence.niveau if competence.niveau is not None else UNSET_VALUE,
        )


class CompetenceWithModulesSchema(CompetenceSchema):
    modules: List[ModuleSchema]

    @classmethod
    def from_linked(cls, item: CompetenceWithModules) -> "CompetenceWithModulesSchema":
        base = CompetenceSchema.from_result(item.competence)
        return cls(
            **base.model_dump(),
            modules=[ModuleSchema.from_result(m) for m in item.modules],
        )


class LevelStatsSchema(BaseModel):
    beginner: int
    intermediate: int
    mastered: int
    unset: int
    total: int

    @classmethod
    def from_result(cls, stats: CompetenceLevelStats) -> "LevelStatsSchema":
        return cls(
            beginner=stats.beginner,
            intermediate=stats.intermediate,
            mastered=stats.mastered,
            unset=stats.unset,
            total=stats.total,
        )


class CompetencesResponse(BaseModel):
    competences: List[CompetenceSchema]
    by_domaine: Dict[str, List[CompetenceSchema]]
    stats: LevelStatsSchema


class CompetencesWithModulesResponse(BaseModel):
    competences: List[CompetenceWithModulesSchema]


class NiveauSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    competence_id: str
    niveau: int
    created_at: datetime
    updated_at: datetime


class NiveauUpdateResponse(BaseModel):
    success: bool = True
    niveau: NiveauSchema
