"""
Export endpoints

- GET /export/csv  - Graded modules as "Module;Note" (decimal comma)
- GET /export/json - Reference data plus the caller's notes and levels,
                     in the format accepted by the seed loader
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...core.constants import CSV_MEDIA_TYPE, utc_now
from ...core.errors import InternalError
from ...core.exporters import build_notes_csv, csv_filename, json_filename
from ...database.config import get_db
from ...services.query_service import ProgressQueryService
from ...services.seed_service import build_seed_export
from ..deps import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["Export"])


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.get("/csv", response_class=Response)
def export_csv(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Graded modules only, latest note per module"""
    modules = ProgressQueryService(db).all_modules(user.user_id)
    content = build_notes_csv(modules)

    logger.info("CSV export", extra={"user_id": user.user_id, "modules": len(modules)})
    return Response(
        content=content,
        media_type=CSV_MEDIA_TYPE,
        headers=_attachment(csv_filename(utc_now().date())),
    )


@router.get("/json")
def export_json(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        document = build_seed_export(db, user.user_id)
    except SQLAlchemyError as e:
        logger.error(f"JSON export failed: {e}", extra={"user_id": user.user_id}, exc_info=True)
        raise InternalError("export json") from e

    return JSONResponse(
        content=document.to_json_dict(),
        headers=_attachment(json_filename(utc_now().date())),
    )
