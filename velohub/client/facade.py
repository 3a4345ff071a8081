"""
Hub client facade.

Builds VIP-01 filter sets from caller intent, submits them to a hub and
post-processes the reply. Every query returns a QueryOutcome:

- SUCCESS      the hub answered; ``events`` is its post-processed reply
- UNCONFIRMED  the transport failed; ``attempted`` holds the filters that
               were tried and ``events`` the local fallback, if any
- INVALID      a filter failed validation; nothing was sent
"""
import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..protocol.event import Event, Kinds
from ..protocol.filters import CLIENT_DEFAULT_LIMIT, Filter
from ..protocol.results import (
    FilterResult,
    apply_client_side_filtering,
    generate_filter_stats,
    process_results,
)
from ..protocol.signing import Wallet
from ..schemas.validator import ValidationError, get_validator
from ..transport.base import (
    ACTION_EVENT,
    ACTION_FETCH_EVENTS,
    ACTION_INFO,
    Transport,
    TransportError,
)

logger = logging.getLogger(__name__)

PROCESS_INTEGRATION_LIMIT = 50

# Checked in order; the first category with a matching keyword wins.
CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("defi", ("defi", "token", "swap")),
    ("nft", ("nft", "marketplace")),
    ("governance", ("dao", "governance", "vote")),
)

_PROCESS_ID = re.compile(r'^[a-zA-Z0-9_-]+$')


class NotFoundError(Exception):
    """A single-event lookup matched nothing."""
    pass


class QueryStatus(Enum):
    SUCCESS = "success"
    UNCONFIRMED = "unconfirmed"
    INVALID = "invalid"


@dataclass
class QueryOutcome:
    status: QueryStatus
    events: List[Dict[str, Any]] = field(default_factory=list)
    attempted: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    result: Optional[FilterResult] = None

    @property
    def ok(self) -> bool:
        return self.status is QueryStatus.SUCCESS


TagInput = Union[Tuple[str, str], List[str], Dict[str, str]]


def _normalize_tags(tags: Iterable[TagInput]) -> List[Tuple[str, str]]:
    out = []
    for tag in tags or []:
        if isinstance(tag, dict):
            out.append((str(tag["name"]), str(tag["value"])))
        else:
            out.append((str(tag[0]), str(tag[1])))
    return out


def classify_query(query: Optional[str], limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Turn free text into a process-integration filter set.

    A long identifier-like string is a process id, a known keyword maps to
    a category, anything else becomes a text search.
    """
    base: Dict[str, Any] = {
        "kinds": [Kinds.PROCESS_INTEGRATION],
        "limit": limit or PROCESS_INTEGRATION_LIMIT,
    }
    if not query:
        return [base]

    lowered = query.lower()
    if len(lowered) > 20 and _PROCESS_ID.match(lowered):
        return [{**base, "tags": {"process_id": [query]}}]
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return [{**base, "tags": {"category": [category]}}]
    return [{**base, "search": query}]


class HubClient:
    """
    Caller-facing API for one wallet against any number of hubs.

    Successful replies are remembered per hub so a later transport failure
    can still be answered from the local cache.
    """

    def __init__(self, transport: Transport, wallet: Wallet,
                 timeout: Optional[float] = None, cache_size: int = 1000):
        self.transport = transport
        self.wallet = wallet
        self.timeout = timeout
        self.cache_size = cache_size
        self._cache: Dict[str, Dict[str, Dict[str, Any]]] = {}

    # ============ Publishing ============

    async def create_event(self, hub_id: str, tags: Iterable[TagInput],
                           data: Optional[str] = None) -> str:
        """Publish an event; returns the message id."""
        message = self.wallet.message(hub_id, ACTION_EVENT, _normalize_tags(tags), data)
        await self._call(self.transport.send(message))
        logger.debug("Published %s to %s", message.id, hub_id)
        return message.id

    async def publish_process_integration(self, hub_id: str, tags: Iterable[TagInput],
                                          process_markdown: str) -> str:
        tags = _normalize_tags(tags)
        if not any(name == "Kind" for name, _ in tags):
            tags.append(("Kind", Kinds.PROCESS_INTEGRATION))
        return await self.create_event(hub_id, tags, process_markdown)

    # ============ Queries ============

    async def query(self, hub_id: str, filter_set: Sequence[Union[Filter, Dict[str, Any]]],
                    local_cache: Optional[Iterable[Any]] = None,
                    include_metadata: bool = False) -> QueryOutcome:
        """Validate, submit and post-process one filter set."""
        try:
            filters = [Filter.from_dict(f.to_dict() if isinstance(f, Filter) else f)
                       for f in filter_set]
        except ValidationError as e:
            logger.info("Rejected filter set for %s: %s", hub_id, e)
            return QueryOutcome(
                status=QueryStatus.INVALID,
                attempted=[f.to_dict() if isinstance(f, Filter) else f for f in filter_set],
                error=str(e),
            )

        attempted = [f.to_dict() for f in filters]
        message = self.wallet.message(
            hub_id, ACTION_FETCH_EVENTS, [("Filters", json.dumps(attempted))])

        try:
            raw = await self._call(self.transport.request(message))
            events = json.loads(raw) if raw else []
            if not isinstance(events, list):
                raise TransportError(f"Expected a list of events, got {type(events).__name__}")
        except (TransportError, ValueError) as e:
            logger.warning("Query to %s unconfirmed: %s", hub_id, e)
            cache = local_cache if local_cache is not None else self.cached_events(hub_id)
            fallback = apply_client_side_filtering(cache, filters)
            return QueryOutcome(
                status=QueryStatus.UNCONFIRMED,
                events=[event.to_wire() for event in fallback],
                attempted=attempted,
                error=str(e),
            )

        last = filters[-1] if filters else Filter()
        processed = process_results(events, last, include_metadata=include_metadata)
        stats = generate_filter_stats(last, len(events), len(processed.events))
        logger.debug("Query %s: %s hint=%s efficiency=%.2f", hub_id,
                     stats.filter_type, stats.optimization_hint, stats.efficiency)
        self._remember(hub_id, processed.events)
        return QueryOutcome(
            status=QueryStatus.SUCCESS,
            events=list(processed.events),
            attempted=attempted,
            result=processed,
        )

    async def fetch(self, hub_id: str) -> QueryOutcome:
        """All memories with content."""
        outcome = await self.query(hub_id, [
            {"kinds": [Kinds.MEMORY], "limit": CLIENT_DEFAULT_LIMIT},
        ])
        return _with_content(outcome)

    async def fetch_by_user(self, hub_id: str, user: str) -> QueryOutcome:
        """Memories addressed to one participant."""
        outcome = await self.query(hub_id, [
            {"kinds": [Kinds.MEMORY], "limit": CLIENT_DEFAULT_LIMIT},
            {"tags": {"p": [user]}},
        ])
        return _with_content(outcome)

    async def get(self, hub_id: str, event_id: str) -> Dict[str, Any]:
        """
        Exact-id lookup.

        Raises NotFoundError on zero matches, TransportError when the hub
        could not be asked and ValidationError for a malformed id.
        """
        outcome = await self.query(hub_id, [
            {"ids": [event_id], "kinds": [Kinds.MEMORY], "limit": 1},
        ])
        if outcome.status is QueryStatus.INVALID:
            raise ValidationError(outcome.error or "Invalid lookup")
        if outcome.status is QueryStatus.UNCONFIRMED:
            raise TransportError(outcome.error or f"{hub_id} unreachable")
        if not outcome.events:
            raise NotFoundError(f"Event {event_id} not found on {hub_id}")
        return outcome.events[0]

    async def search(self, hub_id: str, value: str, kind: str) -> QueryOutcome:
        return await self.query(hub_id, [
            {"kinds": [kind], "limit": CLIENT_DEFAULT_LIMIT, "search": value},
        ])

    async def load_process_integrations(self, hub_id: str, query: Optional[str] = None,
                                        limit: Optional[int] = None) -> QueryOutcome:
        return await self.query(hub_id, classify_query(query, limit))

    async def info(self, hub_id: str) -> Dict[str, Any]:
        """Hub owner, Spec block and follow graph."""
        message = self.wallet.message(hub_id, ACTION_INFO)
        raw = await self._call(self.transport.request(message))
        try:
            info = json.loads(raw)
        except ValueError as e:
            raise TransportError(f"Malformed info from {hub_id}: {e}") from e
        is_valid, error = get_validator().validate(info, 'hub_info')
        if not is_valid:
            raise TransportError(f"Unexpected info from {hub_id}: {error}")
        return info

    # ============ Cache ============

    def cached_events(self, hub_id: str) -> List[Dict[str, Any]]:
        return list(self._cache.get(hub_id, {}).values())

    def _remember(self, hub_id: str, events: Iterable[Any]) -> None:
        cache = self._cache.setdefault(hub_id, {})
        for event in events:
            wire = event.to_wire() if isinstance(event, Event) else event
            event_id = wire.get("Id")
            if event_id:
                cache[event_id] = wire
        while len(cache) > self.cache_size:
            cache.pop(next(iter(cache)))

    # ============ Plumbing ============

    async def _call(self, awaitable):
        if self.timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"Timed out after {self.timeout}s") from e


def _with_content(outcome: QueryOutcome) -> QueryOutcome:
    outcome.events = [e for e in outcome.events if e.get("Content")]
    return outcome
