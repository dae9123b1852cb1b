"""SQLAlchemy Core table definitions for the txnflow database.

Two template stores live side by side: ``legacy_templates`` embeds its
task list as a JSON array, ``workflow_templates`` keeps task definitions
in ``template_tasks``. Dates are ISO ``YYYY-MM-DD`` text, timestamps are
ISO 8601 text.
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
)

metadata = MetaData()

transactions = Table(
    "transactions",
    metadata,
    Column("id", Text, primary_key=True),
    Column("transaction_type", Text, nullable=False),
    Column("service_tier", Text),
    Column("contract_date", Text),
    Column("closing_date", Text),
    Column("inspection_date", Text),
    Column("appraisal_date", Text),
    Column("financing_date", Text),
)

legacy_templates = Table(
    "legacy_templates",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("category", Text),
    Column("transaction_type", Text),
    Column("service_tier", Text),  # NULL = any tier
    Column("description", Text),
    Column("is_active", Integer, nullable=False, default=1, server_default="1"),
    Column("tasks", Text, nullable=False, default="[]", server_default="[]"),  # JSON array
)

workflow_templates = Table(
    "workflow_templates",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("type", Text, nullable=False),
    Column("service_tier", Text),  # NULL = any tier
    Column("description", Text),
    Column("is_active", Integer, nullable=False, default=1, server_default="1"),
)

template_tasks = Table(
    "template_tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("template_id", Text, ForeignKey("workflow_templates.id"), nullable=False),
    Column("subject", Text),
    Column("description_notes", Text),
    Column("priority", Text),
    Column("due_date_rule", Text),  # JSON object
    Column("is_agent_visible", Integer, default=0, server_default="0"),
    Column("sort_order", Integer, default=0, server_default="0"),
)

# template_id is not a foreign key: it may point into either template store.
application_records = Table(
    "application_records",
    metadata,
    Column("id", Text, primary_key=True),
    Column("transaction_id", Text, ForeignKey("transactions.id"), nullable=False),
    Column("template_id", Text, nullable=False),
    Column("template_variant", Text, nullable=False),
    Column("template_name", Text),
    Column("status", Text, nullable=False),
    Column("applied_at", Text, nullable=False),
    Column("applied_by", Text),
    Column("task_count", Integer, nullable=False, default=0, server_default="0"),
)

tasks = Table(
    "tasks",
    metadata,
    Column("id", Text, primary_key=True),
    Column("transaction_id", Text, ForeignKey("transactions.id"), nullable=False),
    Column("application_id", Text, ForeignKey("application_records.id")),
    Column("title", Text, nullable=False),
    Column("description", Text),
    Column("priority", Text, nullable=False),
    Column("due_date", Text),
    Column("is_completed", Integer, nullable=False, default=0, server_default="0"),
    Column("is_agent_visible", Integer, nullable=False, default=0, server_default="0"),
    # order within one application batch
    Column("position", Integer, nullable=False, default=0, server_default="0"),
    Column("created_at", Text, nullable=False),
)

# ---------------------------------------------------------------------------
# Indexes for frequently filtered columns
# ---------------------------------------------------------------------------

Index("ix_template_tasks_template", template_tasks.c.template_id)
Index("ix_tasks_transaction", tasks.c.transaction_id)
Index(
    "ix_application_records_pair",
    application_records.c.transaction_id,
    application_records.c.template_id,
    application_records.c.template_variant,
)
