"""
Services: upserts, read gateways and the seed loader
"""
from .progress_service import ProgressService
from .query_service import ProgressQueryService
from .seed_service import SeedReport, SeedService, build_seed_export

__all__ = [
    "ProgressService",
    "ProgressQueryService",
    "SeedService",
    "SeedReport",
    "build_seed_export",
]
