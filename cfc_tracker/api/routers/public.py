"""
Public endpoints: printable notes report and health check (no authentication)
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...core.aggregation import group_by_year
from ...core.config import Settings
from ...core.constants import utc_now
from ...core.errors import NotFoundError
from ...core.exporters import render_printable_report
from ...database.config import get_db
from ...database.models import UserDB
from ...database.repositories import UserRepository
from ...services.query_service import ProgressQueryService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Public"])


def _report_user(db: Session, settings: Settings) -> UserDB:
    users = UserRepository(db)
    if settings.public_report_user_name:
        user = users.get_by_name(settings.public_report_user_name)
        if user:
            return user
        logger.warning(
            "Configured report user not found, falling back to first user with notes",
            extra={"report_user": settings.public_report_user_name},
        )

    user = users.get_first_with_notes()
    if user is None:
        raise NotFoundError("user", settings.public_report_user_name or "public")
    return user


@router.get("/notes-public", response_class=HTMLResponse)
def public_notes_report(request: Request, db: Session = Depends(get_db)):
    """Printable HTML report of the configured user's notes"""
    user = _report_user(db, request.app.state.settings)
    modules = ProgressQueryService(db).all_modules(user.id)

    return HTMLResponse(
        render_printable_report(user.name, group_by_year(modules), utc_now().date())
    )


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    database = "connected"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}", exc_info=True)
        database = "unavailable"

    return {"status": "healthy" if database == "connected" else "degraded", "database": database}
