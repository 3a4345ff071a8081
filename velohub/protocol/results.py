"""
VIP-01 result processing.

Client-side sorting, limiting and metadata, filter classification for
telemetry, and the legacy filter merge.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from ..schemas.validator import get_validator
from .event import Event
from .filters import (
    HUB_DEFAULT_LIMIT,
    HUB_HARD_CAP,
    Filter,
    coerce_filter,
    evaluate,
)

logger = logging.getLogger(__name__)

EventLike = Union[Event, Dict[str, Any]]


@dataclass
class FilterResult:
    events: List[EventLike]
    has_more: Optional[bool] = None
    total_count: Optional[int] = None
    newest_timestamp: Optional[int] = None
    oldest_timestamp: Optional[int] = None


@dataclass
class FilterStats:
    filter_type: str
    optimization_hint: str
    efficiency: float
    parameters: List[str] = field(default_factory=list)


def extract_timestamp(event: Any) -> int:
    """Timestamp of an Event or wire dict; 0 when absent or unparsable."""
    if isinstance(event, Event):
        return event.timestamp
    if not isinstance(event, dict):
        return 0
    value = event.get("Timestamp", event.get("timestamp"))
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value, 10)
        except ValueError:
            return 0
    return 0


def extract_timestamps(events: Iterable[Any]) -> List[int]:
    return [ts for ts in (extract_timestamp(e) for e in events) if ts > 0]


def is_properly_sorted(events: Iterable[Any]) -> bool:
    """True when no older event precedes a newer one."""
    timestamps = extract_timestamps(events)
    return all(a >= b for a, b in zip(timestamps, timestamps[1:]))


def sort_by_timestamp(events: Iterable[Any]) -> List[Any]:
    return sorted(events, key=extract_timestamp, reverse=True)


def process_results(events: Iterable[EventLike], flt: Union[Filter, Dict[str, Any], None] = None,
                    enable_sorting: bool = True,
                    enable_client_limiting: bool = True,
                    include_metadata: bool = False) -> FilterResult:
    """
    Post-process a hub reply the way VIP-01 expects.

    ``has_more`` is always set; the count and timestamp metadata only
    when ``include_metadata`` is requested.
    """
    flt = coerce_filter(flt) if flt is not None else Filter()
    processed = list(events)
    original_count = len(processed)

    if enable_sorting:
        processed = sort_by_timestamp(processed)

    has_more = False
    limit = int(flt.limit) if flt.limit else None
    if enable_client_limiting and limit and len(processed) > limit:
        processed = processed[:limit]
        has_more = True

    result = FilterResult(events=processed, has_more=has_more)
    if include_metadata:
        result.total_count = original_count
        timestamps = extract_timestamps(processed)
        if timestamps:
            result.newest_timestamp = max(timestamps)
            result.oldest_timestamp = min(timestamps)
    return result


def generate_filter_stats(flt: Union[Filter, Dict[str, Any]], original_count: int,
                          final_count: int) -> FilterStats:
    """Classify a filter for optimization telemetry."""
    flt = coerce_filter(flt)
    parameters = []

    if flt.ids is not None:
        parameters.append("ids")
    if flt.authors is not None:
        parameters.append("single_author" if len(flt.authors) == 1 else "multi_author")
    if flt.kinds is not None:
        parameters.append("single_kind" if len(flt.kinds) == 1 else "multi_kind")
    if flt.tags is not None:
        parameters.append("tags")
    if flt.search is not None:
        parameters.append("search")
    if flt.since is not None or flt.until is not None:
        parameters.append("time_range")

    # First match wins.
    if flt.ids is not None:
        filter_type, hint = "direct_lookup", "index_by_id"
    elif flt.authors is not None and len(flt.authors) == 1:
        filter_type, hint = "author_lookup", "index_by_author"
    elif flt.kinds is not None and len(flt.kinds) == 1:
        filter_type, hint = "kind_lookup", "index_by_kind"
    elif flt.search is not None:
        filter_type, hint = "text_search", "full_scan"
    else:
        filter_type, hint = "complex", "full_scan"

    efficiency = (original_count - final_count) / original_count if original_count > 0 else 0
    return FilterStats(
        filter_type=filter_type,
        optimization_hint=hint,
        efficiency=round(efficiency, 2),
        parameters=parameters,
    )


def merge_legacy_filters(legacy_filters: Iterable[Dict[str, Any]]) -> Filter:
    """
    Fold older, looser filters into one canonical Filter.

    ids/kinds are concatenated in order, tag maps shallow-merged with later
    keys winning, and the last non-empty search wins.
    """
    validator = get_validator()
    merged = Filter()
    for legacy in legacy_filters:
        validator.check(legacy, 'legacy_filter')
        if legacy.get("kinds"):
            merged.kinds = (merged.kinds or []) + list(legacy["kinds"])
        if legacy.get("ids"):
            merged.ids = (merged.ids or []) + list(legacy["ids"])
        if legacy.get("tags"):
            merged.tags = {**(merged.tags or {}), **legacy["tags"]}
        if legacy.get("search"):
            merged.search = legacy["search"]
    return merged


def apply_client_side_filtering(events: Iterable[EventLike],
                                filter_set: Iterable[Union[Filter, Dict[str, Any]]],
                                default_limit: int = HUB_DEFAULT_LIMIT,
                                hard_cap: int = HUB_HARD_CAP) -> List[Event]:
    """
    Fallback evaluation over a locally cached event list.

    Runs the same evaluator with the same default and cap as the hub, so
    a fallback answer matches what the hub would have returned.
    """
    local = [Event.coerce(e) for e in events]
    return evaluate(filter_set, local, default_limit=default_limit, hard_cap=hard_cap)
