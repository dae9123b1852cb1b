"""BaseService: foundation for all txnflow services.

Every service receives a :class:`Store` at construction time. Services own
their write boundaries via ``self._store.transaction()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from txnflow.config.settings import TxnSettings
    from txnflow.infrastructure.store import Store


class BaseService:
    """Base for all service-layer classes.

    Usage::

        class ApplicationService(BaseService):
            def apply(self, transaction_id: str, template_id: str) -> ServiceResult:
                with self._store.transaction() as txn:
                    ...
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    @property
    def _settings(self) -> TxnSettings:
        return self._store.settings
