"""Client-side facade over a hub transport."""

from .facade import (
    CATEGORY_KEYWORDS,
    HubClient,
    NotFoundError,
    QueryOutcome,
    QueryStatus,
    classify_query,
)

__all__ = [
    'CATEGORY_KEYWORDS',
    'HubClient',
    'NotFoundError',
    'QueryOutcome',
    'QueryStatus',
    'classify_query',
]
