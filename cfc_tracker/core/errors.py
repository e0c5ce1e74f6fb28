"""
Domain errors raised by the services

The API layer translates them into HTTP responses (see api/exceptions.py).
"""
from typing import Any, Dict, Optional


class TrackerError(Exception):
    """Base class for every error raised by the tracker services"""

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class AuthError(TrackerError):
    """No resolvable caller identity"""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class NotFoundError(TrackerError):
    """A referenced module, competence, domain or user does not exist"""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity.capitalize()} '{entity_id}' not found",
            extra={"entity": entity, "entity_id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(TrackerError):
    """Value out of its declared bounds or malformed input shape"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, extra={"field": field} if field else None)
        self.field = field


class InternalError(TrackerError):
    """Storage failure or unexpected exception. Details are only logged."""

    def __init__(self, operation: str):
        super().__init__(f"Operation failed: {operation}", extra={"operation": operation})
        self.operation = operation
