"""
Modules endpoints: the caller's notes grouped by training year

Endpoints:
- GET /modules                       - All modules by year, with averages
- GET /modules/year/{annee}          - Modules of one year
- PUT /modules/{module_id}/note      - Create or update the caller's note
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.aggregation import compute_averages, group_by_year, year_summaries
from ...database.config import get_db
from ...services.progress_service import ProgressService
from ...services.query_service import ProgressQueryService
from ..deps import CurrentUser, get_current_user
from ..schemas.progress import (
    AveragesSchema,
    ModuleSchema,
    ModulesResponse,
    NoteSchema,
    NoteUpdateRequest,
    NoteUpdateResponse,
    YearModulesResponse,
    YearSummarySchema,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/modules", tags=["Modules"])


@router.get("", response_model=ModulesResponse)
def list_modules(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Every module with the caller's note, grouped by year (ascending).

    Averages ignore ungraded modules; the weighted one is 80% normal, 20% CIE.
    """
    modules = ProgressQueryService(db).all_modules(user.user_id)

    return ModulesResponse(
        modules={
            annee: [ModuleSchema.from_result(m) for m in year_modules]
            for annee, year_modules in group_by_year(modules).items()
        },
        averages=AveragesSchema.from_result(compute_averages(modules)),
        years=[YearSummarySchema.from_result(s) for s in year_summaries(modules)],
    )


@router.get("/year/{annee}", response_model=YearModulesResponse)
def list_modules_for_year(
    annee: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Modules of one training year (1-4), ordered by code"""
    modules = ProgressQueryService(db).modules_for_year(user.user_id, annee)

    return YearModulesResponse(
        annee=annee,
        modules=[ModuleSchema.from_result(m) for m in modules],
        averages=AveragesSchema.from_result(compute_averages(modules)),
    )


@router.put("/{module_id}/note", response_model=NoteUpdateResponse)
def update_module_note(
    module_id: str,
    payload: NoteUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create or update the caller's note on a module.

    Repeating the call with the same value keeps a single row (same id).
    The response carries the recomputed overall averages.
    """
    row = ProgressService(db).set_grade(user.user_id, module_id, payload.note)
    modules = ProgressQueryService(db).all_modules(user.user_id)

    return NoteUpdateResponse(
        message="Note mise à jour",
        note=NoteSchema.model_validate(row),
        averages=AveragesSchema.from_result(compute_averages(modules)),
    )
