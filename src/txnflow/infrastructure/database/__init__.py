"""SQLite database engine and schema via SQLAlchemy Core."""

from txnflow.infrastructure.database.engine import create_db_engine, init_database
from txnflow.infrastructure.database.schema import (
    application_records,
    legacy_templates,
    metadata,
    tasks,
    template_tasks,
    transactions,
    workflow_templates,
)

__all__ = [
    "application_records",
    "create_db_engine",
    "init_database",
    "legacy_templates",
    "metadata",
    "tasks",
    "template_tasks",
    "transactions",
    "workflow_templates",
]
