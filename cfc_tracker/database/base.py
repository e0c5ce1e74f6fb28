"""
Declarative base and common columns for every ORM model
"""
from uuid import uuid4

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import declarative_base

from ..core.constants import utc_now

Base = declarative_base()


def _new_id() -> str:
    return str(uuid4())


class BaseModel:
    """
    Mixin with the columns shared by all tables.

    - id: UUID4 string primary key (generated client-side)
    - created_at / updated_at: UTC timestamps
    """

    id = Column(String(36), primary_key=True, default=_new_id)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
