"""
API dependencies: database session and caller identity

The caller is resolved by a session lookup (the authentication collaborator).
The default lookup reads a bearer token or the session cookie and resolves
it against the user_sessions table. Tests and deployments with another auth
provider can replace it through `app.state.session_lookup`.

The caller's identity always comes from here, never from a request body.
"""
import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import AuthError
from ..database.config import get_db
from ..database.repositories import UserSessionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    email: str
    name: str


class SessionLookup(Protocol):
    def __call__(self, headers: Mapping[str, str], db: Session) -> Optional[CurrentUser]: ...


def _extract_token(headers: Mapping[str, str], cookie_name: str) -> Optional[str]:
    authorization = headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()

    for part in headers.get("cookie", "").split(";"):
        name, _, value = part.strip().partition("=")
        if name == cookie_name and value:
            return value
    return None


class DatabaseSessionLookup:
    """Resolves `Authorization: Bearer <token>` or the session cookie to a user"""

    def __init__(self, cookie_name: str = "session_token"):
        self.cookie_name = cookie_name

    def __call__(self, headers: Mapping[str, str], db: Session) -> Optional[CurrentUser]:
        token = _extract_token(headers, self.cookie_name)
        if not token:
            return None

        try:
            session = UserSessionRepository(db).get_active_by_token(token)
        except SQLAlchemyError as e:
            logger.error(f"Session lookup failed: {e}", exc_info=True)
            return None

        if session is None or session.user is None:
            return None
        user = session.user
        return CurrentUser(user_id=user.id, email=user.email, name=user.name)


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[CurrentUser]:
    lookup: SessionLookup = request.app.state.session_lookup
    return lookup(request.headers, db)


def get_current_user(user: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    """Authenticated caller; AuthError (401) before any storage access otherwise"""
    if user is None or not user.user_id:
        raise AuthError()
    return user
