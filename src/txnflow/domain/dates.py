"""Due-date resolution against transaction anchor dates.

Arithmetic is on :class:`datetime.date` only: no time of day, no time
zone, so a rule always lands on the same calendar day.
"""

from __future__ import annotations

from datetime import date, timedelta

from txnflow.domain.templates import FixedDateRule, OffsetRule
from txnflow.domain.transactions import Transaction
from txnflow.domain.types import Anchor


def resolve_due_date(
    rule: object,
    transaction: Transaction,
    *,
    default_anchor: Anchor = Anchor.CONTRACT,
) -> date | None:
    """Compute the absolute due date for *rule* on *transaction*.

    Returns None when there is no rule, when the selected anchor date is
    not yet known, or when the rule is malformed.

    Examples:
        >>> txn = Transaction(id="t", transaction_type="buyer", contract_date=date(2024, 3, 1))
        >>> resolve_due_date(OffsetRule(days=-3), txn)
        datetime.date(2024, 2, 27)
        >>> resolve_due_date(OffsetRule(days=5, anchor=Anchor.CLOSING), txn) is None
        True
    """
    if isinstance(rule, FixedDateRule):
        return rule.on
    if not isinstance(rule, OffsetRule):
        return None

    anchor_date = transaction.anchor_date(rule.anchor or default_anchor)
    if anchor_date is None:
        return None
    try:
        return anchor_date + timedelta(days=rule.days)
    except OverflowError:
        return None
