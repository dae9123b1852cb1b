"""Infrastructure layer: database schema, engine, and the Store repository.

The schema and engine modules depend only on stdlib and SQLAlchemy. The
Store maps rows to domain models so services never see raw rows.
"""
