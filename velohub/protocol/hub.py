"""
Hub: the single writer of one event collection.

Every inbound event runs through `Hub.event`, which decides whether it is
stored, toggled off, turned into an unfollow, or silently dropped, and
fans accepted owner events out to followers.

Decision order (first match wins):
1. Owner-authored: re-stamp to the hub identity, then
   follow with p -> store, notify p and current follow list;
   reaction with content/e/p -> toggle;
   anything else -> store, broadcast to followers.
2. Remote follow -> unfollow if the hub is not in p, else store.
3. Remote reaction with content/e/p -> toggle.
4. Remote reply note with content/e/p -> toggle.
5. Remote author the hub follows -> store.
6. Drop.
"""
import json
import logging
import threading
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..transport.base import (
    ACTION_EVENT,
    ACTION_FETCH_EVENTS,
    ACTION_INFO,
    Transport,
)
from .clock import HubClock
from ..schemas.validator import ValidationError
from .event import REPLY_MARKER, Event, Kinds
from .filters import Filter, evaluate, parse_filter_set
from .signing import SignedMessage, Wallet

logger = logging.getLogger(__name__)

# Identity fields come from the envelope, never from tags.
_RESERVED_TAGS = ("Action", "Id", "From", "Original-Id", "originalId", "Timestamp")


class Outcome(Enum):
    STORED = "stored"
    REMOVED = "removed"
    UNFOLLOWED = "unfollowed"
    DROPPED = "dropped"


class UnknownActionError(Exception):
    """Raised for a message action the hub has no handler for."""
    pass


class Hub:
    """
    Authoritative event store with follow-graph admission rules.

    All reads and writes go through one re-entrant lock, so a single hub
    processes inbound events strictly one at a time.
    """

    SPEC_VERSION = "0.1"

    def __init__(self, hub_id: str, owner: str,
                 transport: Optional[Transport] = None,
                 clock: Optional[HubClock] = None,
                 id_factory: Optional[Callable[[], str]] = None,
                 trusted: Optional[Dict[str, Wallet]] = None):
        self.hub_id = hub_id
        self.owner = owner
        self.transport = transport
        self.clock = clock or HubClock(hub_id)
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self._trusted = trusted or {}
        self._events: List[Event] = []
        self._lock = threading.RLock()
        self.version = 0

    # ============ State views ============

    @property
    def events(self) -> Tuple[Event, ...]:
        """Snapshot in insertion order."""
        with self._lock:
            return tuple(self._events)

    def follow_list(self) -> List[str]:
        """Participants of the newest follow event the hub itself authored."""
        with self._lock:
            for event in reversed(self._events):
                if event.kind == Kinds.FOLLOW and event.from_ == self.hub_id:
                    return event.participants
        return []

    def followers(self) -> List[str]:
        """Distinct remote follow authors, most recently active first."""
        seen = set()
        followers = []
        with self._lock:
            for event in reversed(self._events):
                if event.kind == Kinds.FOLLOW and event.from_ != self.hub_id:
                    if event.from_ not in seen:
                        seen.add(event.from_)
                        followers.append(event.from_)
        return followers

    def info(self) -> Dict[str, Any]:
        return {
            "User": self.owner,
            "Spec": {
                "type": "hub",
                "description": "Social message hub",
                "version": self.SPEC_VERSION,
                "processId": self.hub_id,
            },
            "Followers": self.followers(),
            "Following": self.follow_list(),
        }

    # ============ Acceptance ============

    def event(self, incoming: Union[Event, Dict[str, Any]]) -> Outcome:
        """Run one inbound event through the admission rules."""
        event = Event.coerce(incoming)
        with self._lock:
            outcome = self._accept(event)
        logger.debug("hub=%s from=%s kind=%s -> %s",
                     self.hub_id, event.from_, event.kind, outcome.value)
        return outcome

    def _accept(self, event: Event) -> Outcome:
        following = self.follow_list()

        if event.from_ == self.owner:
            event = event.restamp(self.hub_id, self._new_id(), self.clock.tick())
            if event.kind == Kinds.FOLLOW and event.p is not None:
                self._insert(event)
                notice = [("Kind", event.kind), ("p", event.p)]
                for recipient in event.participants:
                    self._deliver(recipient, notice)
                for recipient in following:
                    self._deliver(recipient, notice)
                return Outcome.STORED
            if event.kind == Kinds.REACTION and _has_reference(event):
                return self._toggle(event)
            self._insert(event)
            self._broadcast(event)
            return Outcome.STORED

        if event.kind == Kinds.FOLLOW:
            if self.hub_id not in event.participants:
                self._remove_follows(event.from_)
                return Outcome.UNFOLLOWED
            self._insert(self._stamp(event))
            return Outcome.STORED

        if event.kind == Kinds.REACTION and _has_reference(event):
            return self._toggle(self._stamp(event))

        if (event.kind == Kinds.NOTE and _has_reference(event)
                and event.marker == REPLY_MARKER):
            # Replies share the reaction toggle: a repeat removes the first.
            return self._toggle(self._stamp(event))

        if event.from_ in following:
            self._insert(self._stamp(event))
            return Outcome.STORED

        return Outcome.DROPPED

    def _stamp(self, event: Event) -> Event:
        return event.stamped(event.id or self._new_id(), self.clock.tick())

    def _insert(self, event: Event) -> None:
        self._events.append(event)
        self.version += 1

    def _toggle(self, event: Event) -> Outcome:
        key = event.toggle_key
        for i, existing in enumerate(self._events):
            if existing.toggle_key == key:
                del self._events[i]
                self.version += 1
                return Outcome.REMOVED
        self._insert(event)
        return Outcome.STORED

    def _remove_follows(self, author: str) -> None:
        kept = [e for e in self._events
                if not (e.kind == Kinds.FOLLOW and e.from_ == author)]
        if len(kept) != len(self._events):
            self._events = kept
            self.version += 1

    # ============ Fan-out ============

    def _broadcast(self, event: Event) -> None:
        tags = list(event.tags)
        names = {name for name, _ in tags}
        for name, value in (("Kind", event.kind), ("e", event.e),
                            ("p", event.p), ("marker", event.marker)):
            if value is not None and name not in names:
                tags.append((name, value))
        for follower in self.followers():
            self._deliver(follower, tags, event.content)

    def _deliver(self, target: str, tags: List[Tuple[str, str]],
                 data: Optional[str] = None) -> None:
        if self.transport is None:
            return
        message = SignedMessage(
            target=target,
            action=ACTION_EVENT,
            sender=self.hub_id,
            tags=list(tags),
            data=data,
        )
        try:
            self.transport.deliver(message)
        except Exception as e:
            logger.warning("Fan-out to %s failed: %s", target, e)

    # ============ Queries ============

    def fetch(self, filter_set: Iterable[Union[Filter, Dict[str, Any]]]) -> List[Event]:
        with self._lock:
            snapshot = list(self._events)
        return evaluate(filter_set, snapshot)

    def fetch_events(self, filters: Union[str, Iterable[Union[Filter, Dict[str, Any]]], None]) -> List[Dict[str, Any]]:
        """FetchEvents handler: wire-shaped events for a filter set."""
        return [e.to_wire() for e in self.fetch(parse_filter_set(filters))]

    # ============ Message dispatch ============

    def handle(self, message: SignedMessage) -> Optional[str]:
        """
        Dispatch one transport message.

        Returns the reply payload for queries, None for events.
        """
        if message.action == ACTION_EVENT:
            if not self._is_authentic(message):
                logger.warning("Rejected unverifiable message %s from %s",
                               message.id, message.sender)
                return None
            try:
                event = event_from_message(message)
            except ValidationError as e:
                logger.warning("Malformed event %s from %s: %s", message.id, message.sender, e)
                return None
            self.event(event)
            return None
        if message.action == ACTION_FETCH_EVENTS:
            filters = _tag_value(message.tags, "Filters")
            if filters is None:
                filters = message.data
            return json.dumps(self.fetch_events(filters or "[]"))
        if message.action == ACTION_INFO:
            return json.dumps(self.info())
        raise UnknownActionError(f"Unknown action: {message.action}")

    def _is_authentic(self, message: SignedMessage) -> bool:
        wallet = self._trusted.get(message.sender)
        if wallet is None:
            return True
        return wallet.verify(message)

    def __repr__(self) -> str:
        return f"Hub({self.hub_id}, events={len(self._events)}, v{self.version})"


def _has_reference(event: Event) -> bool:
    return event.content is not None and event.e is not None and event.p is not None


def _tag_value(tags: Iterable[Tuple[str, str]], name: str) -> Optional[str]:
    for key, value in tags:
        if key == name:
            return value
    return None


def event_from_message(message: SignedMessage) -> Event:
    """Inbound Event for an ``Event`` action; the sender is the author."""
    wire: Dict[str, Any] = {
        "Id": message.id,
        "From": message.sender,
        "Tags": [list(t) for t in message.tags if t[0] not in _RESERVED_TAGS],
    }
    if message.data is not None:
        wire["Content"] = message.data
    return Event.from_wire(wire)
