"""
Competences endpoints: self-assessed levels, grouped by domain
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.aggregation import competence_level_stats, group_by_domain
from ...database.config import get_db
from ...services.progress_service import ProgressService
from ...services.query_service import ProgressQueryService
from ..deps import CurrentUser, get_current_user
from ..schemas.progress import (
    CompetenceSchema,
    CompetencesResponse,
    CompetencesWithModulesResponse,
    CompetenceWithModulesSchema,
    LevelStatsSchema,
    NiveauSchema,
    NiveauUpdateRequest,
    NiveauUpdateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/competences", tags=["Competences"])


@router.get("", response_model=CompetencesResponse)
def list_competences(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Competences with the caller's niveau (0 when unset), by domain, plus level counts"""
    competences = ProgressQueryService(db).competences(user.user_id)

    return CompetencesResponse(
        competences=[CompetenceSchema.from_result(c) for c in competences],
        by_domaine={
            domaine: [CompetenceSchema.from_result(c) for c in items]
            for domaine, items in group_by_domain(competences).items()
        },
        stats=LevelStatsSchema.from_result(competence_level_stats(competences)),
    )


@router.get("/modules", response_model=CompetencesWithModulesResponse)
def list_competences_with_modules(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Each competence with its linked modules and the caller's note on them"""
    items = ProgressQueryService(db).competences_with_modules(user.user_id)
    return CompetencesWithModulesResponse(
        competences=[CompetenceWithModulesSchema.from_linked(item) for item in items]
    )


@router.put("/{competence_id}/niveau", response_model=NiveauUpdateResponse)
def update_competence_niveau(
    competence_id: str,
    payload: NiveauUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = ProgressService(db).set_competency_level(user.user_id, competence_id, payload.niveau)
    return NiveauUpdateResponse(niveau=NiveauSchema.model_validate(row))
