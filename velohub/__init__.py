"""
velohub - Decentralized Event Hub

A small social event hub with:
- Follow-graph admission and toggle semantics for inbound events
- Fan-out of owner events to followers
- VIP-01 filters evaluated identically by hub and client
- Schema validation at every boundary
- Pluggable transports (in-process, Redis)
"""

__version__ = "0.1.0"

from .schemas.validator import SchemaValidator, ValidationError
from .protocol.event import Event, Kinds
from .protocol.filters import Filter, create_filter, evaluate
from .protocol.results import process_results, merge_legacy_filters
from .protocol.hub import Hub, Outcome
from .protocol.signing import Wallet
from .transport.base import TransportError
from .client.facade import HubClient, NotFoundError, QueryOutcome, QueryStatus

__all__ = [
    "SchemaValidator",
    "ValidationError",
    "Event",
    "Kinds",
    "Filter",
    "create_filter",
    "evaluate",
    "process_results",
    "merge_legacy_filters",
    "Hub",
    "Outcome",
    "Wallet",
    "TransportError",
    "HubClient",
    "NotFoundError",
    "QueryOutcome",
    "QueryStatus",
]
