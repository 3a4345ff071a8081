"""
VIP-01 filter clauses and the shared evaluator.

`evaluate` is the only implementation of filter semantics. The hub runs it
authoritatively and the client runs it as a fallback over a local cache,
so both sides sort and paginate identically.
"""
import json
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..schemas.validator import ValidationError, get_validator
from .event import Event

logger = logging.getLogger(__name__)

# Authoritative pair, enforced by the hub.
HUB_DEFAULT_LIMIT = 50
HUB_HARD_CAP = 500

# Client boundary only; the hub still caps at HUB_HARD_CAP.
CLIENT_DEFAULT_LIMIT = 100
CLIENT_MAX_LIMIT = 1000

_ARRAY_FIELDS = ("ids", "authors", "kinds")


@dataclass
class Filter:
    """A single query clause. Absent fields (None) do not constrain."""
    ids: Optional[List[str]] = None
    authors: Optional[List[str]] = None
    kinds: Optional[List[str]] = None
    since: Optional[float] = None
    until: Optional[float] = None
    tags: Optional[Dict[str, List[str]]] = None
    search: Optional[str] = None
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape; absent fields are omitted."""
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                out[f.name] = value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Filter':
        """Strict parse: any shape violation raises ValidationError."""
        get_validator().check(data, 'filter')
        return cls(
            ids=_copy_list(data.get("ids")),
            authors=_copy_list(data.get("authors")),
            kinds=_copy_list(data.get("kinds")),
            since=data.get("since"),
            until=data.get("until"),
            tags={k: list(v) for k, v in data["tags"].items()} if "tags" in data else None,
            search=data.get("search"),
            limit=int(data["limit"]) if data.get("limit") is not None else None,
        )

    def is_empty(self) -> bool:
        return not self.to_dict()


def _copy_list(value: Optional[Sequence[str]]) -> Optional[List[str]]:
    return None if value is None else list(value)


def create_filter(**params: Any) -> Filter:
    """
    Build a validated filter from loose parameters.

    Empty values are dropped and ``limit`` is clamped into the client
    range 1..CLIENT_MAX_LIMIT; anything else malformed is rejected.
    """
    unknown = set(params) - {f.name for f in fields(Filter)}
    if unknown:
        raise ValidationError(f"Unknown filter fields: {sorted(unknown)}")

    data: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == [] or value == {} or value == "":
            continue
        data[key] = value

    limit = data.get("limit")
    if isinstance(limit, (int, float)) and not isinstance(limit, bool):
        data["limit"] = int(min(max(1, limit), CLIENT_MAX_LIMIT))

    return Filter.from_dict(data)


def coerce_filter(value: Union[Filter, Dict[str, Any]]) -> Filter:
    if isinstance(value, Filter):
        return value
    if not isinstance(value, dict):
        raise ValidationError(f"Filter must be an object, got {type(value).__name__}")
    return Filter.from_dict(value)


def parse_filter_set(raw: Union[str, Iterable[Union[Filter, Dict[str, Any]]], None]) -> List[Filter]:
    """Decode a FilterSet from its JSON payload or an in-memory list."""
    if raw is None or raw == "":
        return []
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise ValidationError(f"Filter set is not valid JSON: {e}")
        if not isinstance(raw, list):
            raise ValidationError("Filter set must be a JSON array")
    return [coerce_filter(f) for f in raw]


def encode_filter_set(filter_set: Iterable[Union[Filter, Dict[str, Any]]]) -> str:
    return json.dumps([coerce_filter(f).to_dict() for f in filter_set])


def effective_limit(limit: Optional[int], default_limit: int = HUB_DEFAULT_LIMIT,
                    hard_cap: int = HUB_HARD_CAP) -> int:
    return int(min(limit or default_limit, hard_cap))


def sort_events(events: Iterable[Event]) -> List[Event]:
    """Newest first; equal timestamps keep their relative order."""
    return sorted(events, key=lambda e: e.timestamp, reverse=True)


def _matches_search(event: Event, needle: str) -> bool:
    for _, value in event.tags:
        if needle in (value or "").lower():
            return True
    return False


def _matches_tag_field(event: Event, key: str, accepted: Sequence[str]) -> bool:
    value = event.field(key)
    if value is None:
        return False
    return str(value) in accepted


def apply_filter(flt: Filter, events: Iterable[Event],
                 default_limit: int = HUB_DEFAULT_LIMIT,
                 hard_cap: int = HUB_HARD_CAP) -> List[Event]:
    """Narrow, sort and truncate one clause."""
    result = list(events)

    if flt.ids is not None:
        ids = set(flt.ids)
        result = [e for e in result if e.id in ids]

    if flt.authors is not None:
        authors = set(flt.authors)
        result = [e for e in result if e.from_ in authors]

    if flt.kinds is not None:
        kinds = set(flt.kinds)
        result = [e for e in result if e.kind in kinds]

    if flt.since is not None:
        result = [e for e in result if e.timestamp > flt.since]

    if flt.until is not None:
        result = [e for e in result if e.timestamp < flt.until]

    if flt.tags is not None:
        for key, accepted in flt.tags.items():
            result = [e for e in result if _matches_tag_field(e, key, accepted)]

    if flt.search is not None:
        needle = flt.search.lower()
        result = [e for e in result if _matches_search(e, needle)]

    result = sort_events(result)
    return result[:effective_limit(flt.limit, default_limit, hard_cap)]


def evaluate(filter_set: Iterable[Union[Filter, Dict[str, Any]]], events: Iterable[Event],
             default_limit: int = HUB_DEFAULT_LIMIT,
             hard_cap: int = HUB_HARD_CAP) -> List[Event]:
    """
    Apply clauses in order, each narrowing the previous result.

    An empty filter set returns the input unchanged.
    """
    result = list(events)
    for flt in filter_set:
        result = apply_filter(coerce_filter(flt), result, default_limit, hard_cap)
    logger.debug("Evaluated filter set -> %d events", len(result))
    return result
