"""
Funnel Analytics Backend Package.

FastAPI service layer for the marketing funnel dashboard. Aggregates sessions,
leads, purchases and survey responses, compares them against a prior period,
and serves filtered, paginated event listings.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, dependencies and exceptions
    - models: Pydantic schemas and enums
    - services: Period model, bucketing, metric math and aggregation orchestration
    - sql: Aggregate sources, query builders and the advanced filter compiler
"""

__version__ = "1.0.0"
