"""Event model, acceptance engine and VIP-01 filter protocol."""

from .event import Event, Kinds, decode_p, encode_p, get_tag
from .clock import HubClock
from .signing import SignedMessage, Wallet
from .filters import (
    CLIENT_DEFAULT_LIMIT,
    CLIENT_MAX_LIMIT,
    HUB_DEFAULT_LIMIT,
    HUB_HARD_CAP,
    Filter,
    create_filter,
    evaluate,
    parse_filter_set,
)
from .results import (
    FilterResult,
    FilterStats,
    apply_client_side_filtering,
    generate_filter_stats,
    is_properly_sorted,
    merge_legacy_filters,
    process_results,
)
from .hub import Hub, Outcome, UnknownActionError

__all__ = [
    'Event',
    'Kinds',
    'decode_p',
    'encode_p',
    'get_tag',
    'HubClock',
    'SignedMessage',
    'Wallet',
    'CLIENT_DEFAULT_LIMIT',
    'CLIENT_MAX_LIMIT',
    'HUB_DEFAULT_LIMIT',
    'HUB_HARD_CAP',
    'Filter',
    'create_filter',
    'evaluate',
    'parse_filter_set',
    'FilterResult',
    'FilterStats',
    'apply_client_side_filtering',
    'generate_filter_stats',
    'is_properly_sorted',
    'merge_legacy_filters',
    'process_results',
    'Hub',
    'Outcome',
    'UnknownActionError',
]
