"""
CFC Tracker - grade and competency tracker for the CFC vocational training

Packages:
- database: SQLAlchemy models, configuration and repositories
- core: aggregation engine, export formatters, errors and settings
- models: named result types returned by the query gateways
- services: upsert, query and seed services
- api: FastAPI application, routers and schemas
"""

__version__ = "1.0.0"
