"""Classification enums and type-tag matching rules.

Type tags arrive from two template stores with different vocabularies:
the legacy store uses lowercase sides plus the ``both`` wildcard, the
normalized store uses ``Buyer``/``Listing`` plus the ``General`` wildcard.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum


class TemplateVariant(StrEnum):
    """On-disk template shape."""

    LEGACY = "legacy"
    WORKFLOW = "workflow"


class Priority(StrEnum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Anchor(StrEnum):
    """Transaction anchor dates a due-date rule can be relative to."""

    CONTRACT = "contract"
    CLOSING = "closing"
    INSPECTION = "inspection"
    APPRAISAL = "appraisal"
    FINANCING = "financing"


class ApplicationStatus(StrEnum):
    """Status of a persisted application record."""

    APPLIED = "applied"


class ReapplyPolicy(StrEnum):
    """What ``apply`` does when the template was already applied to the transaction."""

    REJECT = "reject"
    ALLOW = "allow"


DEFAULT_WILDCARD_TYPES: tuple[str, ...] = ("both", "general")

# Sides that name the same thing in the two template vocabularies.
_SIDE_SYNONYMS: tuple[frozenset[str], ...] = (frozenset({"seller", "listing"}),)


def canonical_tag(tag: str) -> str:
    """Lowercase and trim a type or tier tag."""
    return tag.strip().lower()


def type_tag_candidates(
    transaction_type: str,
    wildcards: Iterable[str] = DEFAULT_WILDCARD_TYPES,
) -> frozenset[str]:
    """Template type tags (lowercased) applicable to *transaction_type*.

    Examples:
        >>> sorted(type_tag_candidates("Buyer"))
        ['both', 'buyer', 'general']
        >>> sorted(type_tag_candidates("seller", wildcards=["both"]))
        ['both', 'listing', 'seller']
    """
    tag = canonical_tag(transaction_type)
    candidates = {tag}
    for group in _SIDE_SYNONYMS:
        if tag in group:
            candidates |= group
    candidates |= {canonical_tag(w) for w in wildcards}
    return frozenset(candidates)
