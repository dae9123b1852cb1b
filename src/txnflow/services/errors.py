"""Error codes returned in ``ServiceError.code``.

Retryable failures (the caller may simply try again) are listed in
:data:`RETRYABLE`.
"""

from __future__ import annotations

TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
CATALOG_UNAVAILABLE = "CATALOG_UNAVAILABLE"
VALIDATION_FAILURE = "VALIDATION_FAILURE"
PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
ALREADY_APPLIED = "ALREADY_APPLIED"
INVALID_FILTER = "INVALID_FILTER"
INVALID_FIXTURE = "INVALID_FIXTURE"

RETRYABLE = frozenset({CATALOG_UNAVAILABLE})

CATALOG_UNAVAILABLE_MESSAGE = "Template catalog unavailable, try again"
NO_VALID_TASKS_MESSAGE = "Template has no valid tasks"
